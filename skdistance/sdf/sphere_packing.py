from logging import getLogger

import numpy as np
from scipy.spatial import cKDTree


logger = getLogger(__name__)


def _empty_spheres():
    return np.zeros((0, 3)), np.zeros(0)


def _isosurface_points(values, isovalue):
    """Linear zero crossings between interior voxels and their neighbors.

    Returns
    -------
    points : numpy.ndarray
        (n_point, 3) crossing points in (float) index coordinates of
        the block.
    """
    interior = values < isovalue
    points = []
    for axis in range(3):
        lo = [slice(None)] * 3
        hi = [slice(None)] * 3
        lo[axis] = slice(None, -1)
        hi[axis] = slice(1, None)
        lo, hi = tuple(lo), tuple(hi)
        v_lo = values[lo]
        v_hi = values[hi]
        unit = np.zeros(3)
        unit[axis] = 1.0

        # inside at the lower index, outside at the upper index
        mask = np.logical_and(interior[lo], ~interior[hi])
        idx = np.argwhere(mask)
        if len(idx) > 0:
            a, b = v_lo[mask], v_hi[mask]
            t = (isovalue - a) / (b - a)
            points.append(idx + t[:, None] * unit[None, :])

        # outside at the lower index, inside at the upper index
        mask = np.logical_and(~interior[lo], interior[hi])
        idx = np.argwhere(mask)
        if len(idx) > 0:
            a, b = v_hi[mask], v_lo[mask]
            t = (isovalue - a) / (b - a)
            points.append(idx + unit[None, :] - t[:, None] * unit[None, :])
    if len(points) == 0:
        return np.zeros((0, 3))
    return np.vstack(points)


def fill_with_spheres(field, max_sphere_count=20, overlapping=True,
                      min_radius=1.0, max_radius=np.inf, isovalue=0.0,
                      instance_count=100000, seed=0):
    """Approximate the solid region of a field with spheres.

    Interior voxel centers are used as seed points. The radius of a seed
    is its distance to the closest iso-surface point. The seed with the
    largest radius becomes a sphere, seeds whose centers fall inside the
    sphere are retired, and this repeats until `max_sphere_count`
    spheres are found or the largest remaining radius is below
    `min_radius`. The first sphere is always emitted if any seed exists.

    Parameters
    ----------
    field : skdistance.sdf.DistanceField
        field to approximate.
    max_sphere_count : int
        maximum number of spheres.
    overlapping : bool
        If True, spheres may overlap each other. If False, radii of the
        remaining seeds shrink to their clearance from chosen spheres.
    min_radius : float
        minimum sphere radius in voxels.
    max_radius : float
        maximum sphere radius in voxels.
    isovalue : float
        distance value at which the surface exists; 0.0 for solid models.
    instance_count : int
        number of interior voxels considered as seeds.
    seed : int
        random seed used to subsample the interior voxels.

    Returns
    -------
    centers : numpy.ndarray
        (n_sphere, 3) sphere centers w.r.t. the field frame.
    radii : numpy.ndarray
        (n_sphere,) sphere radii.
    """
    if field.is_empty:
        logger.warning('Unable to fill an empty grid with spheres.')
        return _empty_spheres()

    values = field.values
    voxel_size = field.voxel_size
    interior_idx = np.argwhere(values < isovalue)
    surface = _isosurface_points(values, isovalue)
    if len(interior_idx) == 0 or len(surface) == 0:
        logger.warning('Unable to fill grid with spheres.')
        return _empty_spheres()

    if len(interior_idx) > instance_count:
        rng = np.random.RandomState(seed)
        chosen = rng.choice(len(interior_idx), instance_count, replace=False)
        interior_idx = interior_idx[chosen]

    offset = field.offset
    seeds = (interior_idx + offset[None, :]) * voxel_size
    surface = (surface + offset[None, :]) * voxel_size
    radius_list, _ = cKDTree(surface).query(seeds)

    min_radius = min_radius * voxel_size
    max_radius = max_radius * voxel_size
    mask = np.zeros(len(seeds), dtype=bool)
    centers = []
    radii = []
    for s in range(min(max_sphere_count, len(seeds))):
        candidates = np.where(mask, -np.inf, radius_list)
        index = int(np.argmax(candidates))
        if mask[index]:
            break
        radius = min(radius_list[index], max_radius)
        if s >= 1 and radius < min_radius:
            break
        center = seeds[index]
        centers.append(center)
        radii.append(radius)

        mask[index] = True
        dists = np.sqrt(np.sum((seeds - center[None, :])**2, axis=1))
        mask |= dists < radius
        if not overlapping:
            radius_list = np.minimum(radius_list, dists - radius)

    logger.debug('filled grid with {} spheres'.format(len(centers)))
    return np.array(centers).reshape(-1, 3), np.array(radii)
