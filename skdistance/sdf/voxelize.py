"""Conversion of collision shapes into truncated signed distance volumes.

Every shape is sampled at voxel centers of a node-centered grid,
``p = ijk * voxel_size``. Primitive shapes use exact analytic signed
distances; triangle meshes use ``trimesh`` for voxels near their surface.
Distances are negative inside the shape.
"""

from logging import getLogger

import numpy as np
from scipy import ndimage
from scipy.spatial import cKDTree

from skdistance._lazy_imports import _lazy_trimesh
from skdistance.math import inverse_transform
from skdistance.math import transform_points
from skdistance.model.shapes import Box
from skdistance.model.shapes import Cone
from skdistance.model.shapes import Cylinder
from skdistance.model.shapes import Mesh
from skdistance.model.shapes import Sphere


logger = getLogger(__name__)

_PRIMITIVE_TYPES = (Box, Sphere, Cylinder, Cone)

# points per batch of analytic distances
_BATCH_SIZE = 65536
# points per trimesh proximity call, whose memory grows with the number
# of candidate faces of every point
_MESH_BATCH_SIZE = 1000


class UnsupportedShapeError(ValueError):
    """Raised when a shape kind cannot be converted into a volume."""


def box_signed_distance(points, half_extent):
    sd_vals_each_axis = np.abs(points) - half_extent[None, :]

    positive_dists_each_axis = np.maximum(sd_vals_each_axis, 0.0)
    positive_dists = np.sqrt(np.sum(positive_dists_each_axis**2, axis=1))

    negative_dists_each_axis = np.max(sd_vals_each_axis, axis=1)
    negative_dists = np.minimum(negative_dists_each_axis, 0.0)

    return positive_dists + negative_dists


def sphere_signed_distance(points, radius):
    dists_from_origin = np.sqrt(np.sum(points**2, axis=1))
    return dists_from_origin - radius


def cylinder_signed_distance(points, radius, length):
    radius_from_center = np.sqrt(points[:, 0]**2 + points[:, 1]**2)
    height_from_center = points[:, 2]

    # Now the problem is reduced to 2 dim [radius, height] box sdf
    half_extent_2d = np.array([radius, 0.5 * length])
    pts_from_center_2d = np.vstack(
        [radius_from_center, height_from_center]).T
    return box_signed_distance(pts_from_center_2d, half_extent_2d)


def cone_signed_distance(points, radius, length):
    """Signed distance to a cone whose apex points to +z.

    The cone is treated as a capped cone with bottom radius `radius` and
    top radius zero, reduced to the 2 dim [radius, height] half plane.
    """
    half_height = 0.5 * length
    qx = np.sqrt(points[:, 0]**2 + points[:, 1]**2)
    qy = points[:, 2]

    # closest point on the caps
    cap_radius = np.where(qy < 0.0, radius, 0.0)
    ca_x = qx - np.minimum(qx, cap_radius)
    ca_y = np.abs(qy) - half_height

    # closest point on the slanted side
    k2_x, k2_y = -radius, 2.0 * half_height
    t = ((0.0 - qx) * k2_x + (half_height - qy) * k2_y) \
        / (k2_x**2 + k2_y**2)
    t = np.clip(t, 0.0, 1.0)
    cb_x = qx + k2_x * t
    cb_y = qy - half_height + k2_y * t

    sign = np.where(np.logical_and(cb_x < 0.0, ca_y < 0.0), -1.0, 1.0)
    dists = np.sqrt(np.minimum(ca_x**2 + ca_y**2, cb_x**2 + cb_y**2))
    return sign * dists


def _as_trimesh(shape):
    trimesh = _lazy_trimesh()
    mesh = trimesh.Trimesh(vertices=shape.vertices, faces=shape.faces,
                           process=False)
    mesh.merge_vertices(digits_vertex=4)
    return mesh


def _trimesh_signed_distance(mesh, points):
    trimesh = _lazy_trimesh()
    sd_vals = np.empty(len(points), dtype=np.float64)
    for start in range(0, len(points), _MESH_BATCH_SIZE):
        stop = start + _MESH_BATCH_SIZE
        # trimesh returns positive distances inside the mesh
        sd_vals[start:stop] = -trimesh.proximity.signed_distance(
            mesh, points[start:stop])
    return sd_vals


def mesh_signed_distance(points, shape):
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return _trimesh_signed_distance(_as_trimesh(shape), points)


def signed_distance(shape, points):
    """Signed distances of points given in the shape frame.

    Parameters
    ----------
    shape : skdistance.model.Shape
        collision shape.
    points : numpy.ndarray
        (n_point, 3) points w.r.t. the shape frame.

    Returns
    -------
    sd_vals : numpy.ndarray
        (n_point,) signed distances, negative inside.
    """
    if isinstance(shape, Box):
        return box_signed_distance(points, shape.half_extents())
    elif isinstance(shape, Sphere):
        return sphere_signed_distance(points, shape.radius)
    elif isinstance(shape, Cylinder):
        return cylinder_signed_distance(points, shape.radius, shape.length)
    elif isinstance(shape, Cone):
        return cone_signed_distance(points, shape.radius, shape.length)
    elif isinstance(shape, Mesh):
        return mesh_signed_distance(points, shape)
    raise UnsupportedShapeError(
        'primitive type {0} is not supported'.format(
            getattr(shape, 'kind', type(shape).__name__)))


def shape_bounds(shape, pose):
    """Axis aligned bounds of a posed shape.

    Returns
    -------
    bounds : numpy.ndarray
        (2, 3) array of minimum and maximum corners.
    """
    if isinstance(shape, Mesh):
        points = transform_points(pose, shape.vertices)
    elif isinstance(shape, _PRIMITIVE_TYPES):
        half = shape.half_extents()
        signs = np.array([[sx, sy, sz]
                          for sx in (-1, 1)
                          for sy in (-1, 1)
                          for sz in (-1, 1)])
        points = transform_points(pose, signs * half[None, :])
    else:
        raise UnsupportedShapeError(
            'primitive type {0} is not supported'.format(
                getattr(shape, 'kind', type(shape).__name__)))
    return np.array([points.min(axis=0), points.max(axis=0)])


def _grid_points(lower, dims, voxel_size, flat_indices):
    ijk = np.stack(np.unravel_index(flat_indices, tuple(dims)), axis=1)
    return (ijk + lower) * voxel_size


def _truncate(sd_vals, voxel_size, background, ex_band, in_band):
    sd_vals = np.where(sd_vals > ex_band * voxel_size, background, sd_vals)
    sd_vals = np.where(sd_vals < -in_band * voxel_size, -background, sd_vals)
    return np.clip(sd_vals, -background, background)


def _mesh_signed_distance_volume(shape, to_shape, lower, dims, voxel_size,
                                 near):
    """Signed distances of a mesh over a block, exact only near the surface.

    Voxels farther than `near` from the surface get ``inf`` outside and
    ``-inf`` inside. The near shell is at least one voxel thick, so it
    separates the far voxels inside the mesh from those outside. Far
    components touching the block border are outside.

    Returns
    -------
    sd_vals : numpy.ndarray
        (n_voxel,) signed distances in flat block order.
    """
    trimesh = _lazy_trimesh()
    mesh = _as_trimesh(shape)
    # vertices of edges no longer than a voxel lie within one voxel of
    # every surface point
    samples, _ = trimesh.remesh.subdivide_to_size(
        mesh.vertices, mesh.faces, max_edge=voxel_size, max_iter=20)
    tree = cKDTree(samples)

    n_voxel = int(np.prod(dims))
    is_near = np.zeros(n_voxel, dtype=bool)
    for start in range(0, n_voxel, _BATCH_SIZE):
        flat = np.arange(start, min(start + _BATCH_SIZE, n_voxel))
        points = transform_points(
            to_shape, _grid_points(lower, dims, voxel_size, flat))
        dists, _ = tree.query(points, distance_upper_bound=near + voxel_size)
        is_near[flat] = np.isfinite(dists)

    labels, _ = ndimage.label(~is_near.reshape(tuple(dims)))
    border = np.unique(np.concatenate([
        labels[0].ravel(), labels[-1].ravel(),
        labels[:, 0].ravel(), labels[:, -1].ravel(),
        labels[:, :, 0].ravel(), labels[:, :, -1].ravel()]))
    outside = np.isin(labels.ravel(), border[border > 0])
    sd_vals = np.where(outside, np.inf, -np.inf)

    near_indices = np.flatnonzero(is_near)
    points = transform_points(
        to_shape, _grid_points(lower, dims, voxel_size, near_indices))
    sd_vals[near_indices] = _trimesh_signed_distance(mesh, points)
    logger.debug('evaluated {} of {} mesh voxels exactly'.format(
        len(near_indices), n_voxel))
    return sd_vals


def shape_to_volume(shape, pose, voxel_size, background,
                    ex_band, in_band):
    """Voxelize a posed shape into a truncated signed distance block.

    Voxels are evaluated in batches. Meshes get exact distances only for
    voxels within the band of their surface.

    Parameters
    ----------
    shape : skdistance.model.Shape
        collision shape.
    pose : numpy.ndarray
        4x4 pose of the shape w.r.t. the field frame.
    voxel_size : float
        edge length of a voxel.
    background : float
        value of voxels beyond the exterior band. Voxels deeper than the
        interior band are set to `-background`.
    ex_band : float
        exterior band width in voxels.
    in_band : float
        interior band width in voxels.

    Returns
    -------
    offset : numpy.ndarray
        (3,) int index of the first voxel of `values`.
    values : numpy.ndarray
        3 dim float32 array of truncated signed distances.
    """
    bounds = shape_bounds(shape, pose)
    margin = ex_band * voxel_size + voxel_size
    lower = np.floor((bounds[0] - margin) / voxel_size).astype(np.int64)
    upper = np.ceil((bounds[1] + margin) / voxel_size).astype(np.int64)
    dims = upper - lower + 1
    n_voxel = int(np.prod(dims))
    to_shape = inverse_transform(pose)

    if isinstance(shape, Mesh):
        near = max(ex_band, in_band, 1.0) * voxel_size
        sd_vals = _mesh_signed_distance_volume(
            shape, to_shape, lower, dims, voxel_size, near)
        values = _truncate(sd_vals, voxel_size, background,
                           ex_band, in_band).astype(np.float32)
    else:
        values = np.empty(n_voxel, dtype=np.float32)
        for start in range(0, n_voxel, _BATCH_SIZE):
            flat = np.arange(start, min(start + _BATCH_SIZE, n_voxel))
            points = transform_points(
                to_shape, _grid_points(lower, dims, voxel_size, flat))
            values[flat] = _truncate(signed_distance(shape, points),
                                     voxel_size, background,
                                     ex_band, in_band)
    values = values.reshape(tuple(dims))
    logger.debug('voxelized {} into {} voxels'.format(
        shape.kind, values.size))
    return lower, values
