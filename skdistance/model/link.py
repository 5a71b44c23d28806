import numpy as np

from skdistance.math import _check_valid_transform
from skdistance.model.shapes import Shape


class Link(object):
    """Rigid body segment of a kinematic model.

    Parameters
    ----------
    name : str
        unique name of the link.
    collision_shapes : None or list[skdistance.model.Shape]
        collision geometry of this link.
    collision_origins : None or list[numpy.ndarray]
        4x4 pose of each collision shape in the link frame.
        identity for every shape if None.
    """

    def __init__(self, name, collision_shapes=None, collision_origins=None):
        self.name = name
        self.joint = None
        self._child_links = []
        self._parent_link = None

        collision_shapes = list(collision_shapes or [])
        for shape in collision_shapes:
            if not isinstance(shape, Shape):
                raise TypeError('collision shape should be '
                                'skdistance.model.Shape, get type {}'
                                .format(type(shape)))
        if collision_origins is None:
            collision_origins = [np.eye(4) for _ in collision_shapes]
        collision_origins = [_check_valid_transform(origin)
                             for origin in collision_origins]
        if len(collision_origins) != len(collision_shapes):
            raise ValueError(
                'number of collision origins ({}) does not match '
                'number of collision shapes ({})'.format(
                    len(collision_origins), len(collision_shapes)))
        self._collision_shapes = collision_shapes
        self._collision_origins = collision_origins

    def __repr__(self):
        return '#<{} {} {}>'.format(
            self.__class__.__name__, hex(id(self)), self.name)

    @property
    def parent_link(self):
        return self._parent_link

    @property
    def child_links(self):
        return self._child_links

    def add_joint(self, j):
        self.joint = j

    def add_child_link(self, child_link):
        """Add child link."""
        if child_link is not None and child_link not in self._child_links:
            self._child_links.append(child_link)

    def add_parent_link(self, parent_link):
        self._parent_link = parent_link

    @property
    def collision_shapes(self):
        return self._collision_shapes

    @property
    def collision_origins(self):
        return self._collision_origins

    @property
    def has_collision_geometry(self):
        return len(self._collision_shapes) > 0

    def collision_geometry(self):
        """Iterate over pairs of collision shape and its pose.

        Returns
        -------
        pairs : list[tuple(skdistance.model.Shape, numpy.ndarray)]
            collision shapes with their 4x4 poses in the link frame.
        """
        return list(zip(self._collision_shapes, self._collision_origins))
