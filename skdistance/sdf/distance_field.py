from logging import getLogger
import time

import numpy as np

from skdistance.sdf.voxelize import shape_to_volume
from skdistance.sdf.voxelize import UnsupportedShapeError


logger = getLogger(__name__)


class DistanceField(object):
    """Truncated signed distance field on a node-centered voxel grid.

    The field stores signed distances in a block covering only the region
    around inserted shapes. Index coordinates relate to points of the
    field frame by ``ijk = round(p / voxel_size)``. Any voxel outside the
    block, or farther than the exterior band from every inserted shape,
    reads `background`, which means "no information, assume far".

    Parameters
    ----------
    voxel_size : float
        edge length of a voxel.
    background : float
        sentinel distance returned where the field holds no information.

    Examples
    --------
    >>> import numpy as np
    >>> from skdistance.model import Sphere
    >>> from skdistance.sdf import DistanceField
    >>> field = DistanceField(voxel_size=0.05, background=1.0)
    >>> field.insert_shape(Sphere(radius=0.2), np.eye(4), 5.0, 5.0)
    >>> round(field.distance([0.3, 0.0, 0.0]), 3)
    0.1
    >>> field.distance([10.0, 0.0, 0.0])
    1.0
    """

    def __init__(self, voxel_size, background):
        if voxel_size <= 0.0:
            raise ValueError('voxel_size must be positive, get {}'
                             .format(voxel_size))
        if background <= 0.0:
            raise ValueError('background must be positive, get {}'
                             .format(background))
        self._voxel_size = float(voxel_size)
        self._background = float(background)
        self._offset = None
        self._values = None

    def __repr__(self):
        return '#<{} {} voxel_size={} voxels={}>'.format(
            self.__class__.__name__, hex(id(self)),
            self._voxel_size, self.voxel_count)

    @property
    def voxel_size(self):
        return self._voxel_size

    @property
    def background(self):
        return self._background

    @property
    def is_empty(self):
        return self._values is None

    @property
    def voxel_count(self):
        if self._values is None:
            return 0
        return self._values.size

    @property
    def offset(self):
        """Index of the first voxel of the stored block."""
        if self._offset is None:
            return None
        return self._offset.copy()

    @property
    def values(self):
        """Read-only view of the stored block."""
        if self._values is None:
            return None
        view = self._values.view()
        view.flags.writeable = False
        return view

    def index_bounds(self):
        """Return minimum and maximum index of the stored block.

        Returns
        -------
        bounds : None or tuple(numpy.ndarray, numpy.ndarray)
            None for an empty field.
        """
        if self._values is None:
            return None
        return (self._offset.copy(),
                self._offset + np.array(self._values.shape) - 1)

    def memory_usage(self):
        """Return bytes held by the field."""
        if self._values is None:
            return 0
        return self._values.nbytes + self._offset.nbytes

    def world_to_index(self, points):
        """Convert points to the nearest voxel indices.

        Parameters
        ----------
        points : numpy.ndarray
            (3,) or (n_point, 3) points w.r.t. the field frame.

        Returns
        -------
        ijk : numpy.ndarray
            int indices of the same shape as `points`.
        """
        points = np.asarray(points, dtype=np.float64)
        return np.floor(points / self._voxel_size + 0.5).astype(np.int64)

    def index_to_world(self, ijk):
        return np.asarray(ijk, dtype=np.float64) * self._voxel_size

    def insert_shape(self, shape, pose=None, ex_band=3.0, in_band=3.0):
        """Voxelize a shape and merge it into the field.

        The first insertion becomes the field. Later insertions are
        merged by union, taking the minimum distance at each voxel.

        Parameters
        ----------
        shape : skdistance.model.Shape
            shape to insert.
        pose : None or numpy.ndarray
            4x4 pose of the shape w.r.t. the field frame.
        ex_band : float
            exterior band width in voxels.
        in_band : float
            interior band width in voxels.
        """
        if pose is None:
            pose = np.eye(4)
        offset, values = shape_to_volume(
            shape, pose, self._voxel_size, self._background,
            ex_band, in_band)
        if self._values is None:
            self._offset, self._values = offset, values
            return
        start = time.time()
        self._union(offset, values)
        logger.info('CSG union time elapsed: {:.6f} (sec)'
                    .format(time.time() - start))

    def add_link(self, link, pose=None, ex_band=3.0, in_band=3.0):
        """Insert all collision shapes of a link.

        Shapes that cannot be voxelized are skipped with an error log.

        Parameters
        ----------
        link : skdistance.model.Link
            link whose collision shapes are inserted.
        pose : None or numpy.ndarray
            4x4 pose of the link frame w.r.t. the field frame.

        Returns
        -------
        n_inserted : int
            number of shapes merged into the field.
        """
        if pose is None:
            pose = np.eye(4)
        n_inserted = 0
        for shape, origin in link.collision_geometry():
            try:
                self.insert_shape(shape, np.dot(pose, origin),
                                  ex_band, in_band)
            except UnsupportedShapeError as e:
                logger.error('Skipped a collision shape of link {}: {}'
                             .format(link.name, e))
                continue
            n_inserted += 1
        return n_inserted

    def _union(self, offset, values):
        lower = np.minimum(self._offset, offset)
        upper = np.maximum(self._offset + np.array(self._values.shape),
                           offset + np.array(values.shape))
        merged = np.full(tuple(upper - lower), self._background,
                         dtype=np.float32)

        def region(block_offset, block):
            start = block_offset - lower
            return tuple(slice(s, s + n)
                         for s, n in zip(start, block.shape))

        merged[region(self._offset, self._values)] = self._values
        sl = region(offset, values)
        merged[sl] = np.minimum(merged[sl], values)
        self._offset, self._values = lower, merged

    def _lookup(self, ijk):
        """Re-entrant lookup of voxel values.

        Parameters
        ----------
        ijk : numpy.ndarray
            (n, 3) int indices.

        Returns
        -------
        values : numpy.ndarray
            (n,) float values, `background` outside the block.
        """
        ijk = np.asarray(ijk, dtype=np.int64).reshape(-1, 3)
        result = np.full(len(ijk), self._background, dtype=np.float64)
        if self._values is None:
            return result
        local = ijk - self._offset
        inside = np.all(
            np.logical_and(local >= 0, local < np.array(self._values.shape)),
            axis=1)
        if np.any(inside):
            idx = local[inside]
            result[inside] = self._values[idx[:, 0], idx[:, 1], idx[:, 2]]
        return result

    def accessor(self):
        """Create a cached accessor for sequential single-threaded access.

        Returns
        -------
        accessor : skdistance.sdf.FieldAccessor
            accessor owned by the caller. Use it as a context manager to
            bound its lifetime to one sequence of queries.
        """
        return FieldAccessor(self)

    def _resolve_accessor(self, thread_safe, accessor):
        if thread_safe:
            return None
        if accessor is None:
            accessor = FieldAccessor(self)
        return accessor

    def distance_at_index(self, ijk, thread_safe=True, accessor=None):
        """Return the signed distance stored at a voxel.

        Parameters
        ----------
        ijk : array-like
            (3,) int index.
        thread_safe : bool
            If True, perform a re-entrant lookup that can be shared
            among threads. If False, use `accessor` which caches voxel
            values and must be owned by a single thread.
        accessor : None or skdistance.sdf.FieldAccessor
            accessor for the cached mode. A temporary one is used if None.
        """
        accessor = self._resolve_accessor(thread_safe, accessor)
        if accessor is None:
            return float(self._lookup(ijk)[0])
        return accessor.get_value(ijk)

    def distance(self, point, thread_safe=True, accessor=None):
        """Return the signed distance at the voxel nearest to a point.

        Parameters
        ----------
        point : array-like
            (3,) point w.r.t. the field frame.

        Returns
        -------
        distance : float
            signed distance, or `background` if the field has no
            information at the point.
        """
        return self.distance_at_index(self.world_to_index(point),
                                      thread_safe=thread_safe,
                                      accessor=accessor)

    def distances(self, points):
        """Vectorized thread-safe version of distance().

        Parameters
        ----------
        points : numpy.ndarray
            (n_point, 3) points w.r.t. the field frame.

        Returns
        -------
        distances : numpy.ndarray
            (n_point,) signed distances.
        """
        return self._lookup(self.world_to_index(points))

    def distances_at_indices(self, ijk):
        """Vectorized thread-safe version of distance_at_index()."""
        return self._lookup(ijk)

    def raw_gradient_at_index(self, ijk, thread_safe=True, accessor=None):
        """Return the un-normalized distance gradient at a voxel.

        The thread-safe mode takes central differences divided by twice
        the voxel size. The cached mode evaluates the second order central
        difference stencil in index space through the accessor and maps it
        to the field frame.

        Returns
        -------
        gradient : numpy.ndarray
            (3,) gradient w.r.t. the field frame.
        """
        ijk = np.asarray(ijk, dtype=np.int64).reshape(3)
        accessor = self._resolve_accessor(thread_safe, accessor)
        if accessor is None:
            offsets = np.vstack([np.eye(3, dtype=np.int64),
                                 -np.eye(3, dtype=np.int64)])
            vals = self._lookup(ijk[None, :] + offsets)
            return (vals[:3] - vals[3:]) / (2.0 * self._voxel_size)
        index_gradient = accessor.index_gradient(ijk)
        return index_gradient / self._voxel_size

    def gradient_at_index(self, ijk, thread_safe=True, accessor=None):
        """Return the normalized distance gradient at a voxel.

        Returns
        -------
        gradient : None or numpy.ndarray
            (3,) unit vector, or None when the raw gradient is zero.
        """
        if self._values is None and not thread_safe:
            logger.error('Tried to get gradient data from an empty field.')
            return None
        gradient = self.raw_gradient_at_index(
            ijk, thread_safe=thread_safe, accessor=accessor)
        norm = np.linalg.norm(gradient)
        if norm == 0.0:
            return None
        return gradient / norm

    def gradient(self, point, thread_safe=True, accessor=None):
        """Return the normalized distance gradient at a point.

        Parameters
        ----------
        point : array-like
            (3,) point w.r.t. the field frame.

        Returns
        -------
        gradient : None or numpy.ndarray
            (3,) unit vector, or None in flat or undefined regions.
        """
        return self.gradient_at_index(self.world_to_index(point),
                                      thread_safe=thread_safe,
                                      accessor=accessor)


class FieldAccessor(object):
    """Cached voxel accessor bound to one field.

    An accessor remembers voxel values it has looked up, which amortizes
    repeated nearby queries such as gradient stencils. It is not
    thread-safe; every thread or query has to own its accessor.

    Examples
    --------
    >>> with field.accessor() as acc:  # doctest: +SKIP
    ...     d = acc.distance([0.1, 0.0, 0.0])
    """

    def __init__(self, field):
        self.field = field
        self._cache = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.clear()

    def clear(self):
        self._cache.clear()

    def get_value(self, ijk):
        if self.field.is_empty:
            logger.error('Tried to get distance data from an empty field.')
            return self.field.background
        key = tuple(int(i) for i in np.asarray(ijk).reshape(3))
        value = self._cache.get(key)
        if value is None:
            value = float(self.field._lookup(np.array(key))[0])
            self._cache[key] = value
        return value

    def distance(self, point):
        return self.get_value(self.field.world_to_index(point))

    def index_gradient(self, ijk):
        """Second order central difference in index space."""
        i, j, k = (int(v) for v in np.asarray(ijk).reshape(3))
        return 0.5 * np.array([
            self.get_value((i + 1, j, k)) - self.get_value((i - 1, j, k)),
            self.get_value((i, j + 1, k)) - self.get_value((i, j - 1, k)),
            self.get_value((i, j, k + 1)) - self.get_value((i, j, k - 1)),
        ])

    def gradient(self, point):
        return self.field.gradient(point, thread_safe=False, accessor=self)
