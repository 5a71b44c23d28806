"""Collision shape descriptions.

The set of shape kinds is closed: ``Box``, ``Sphere``, ``Cylinder``,
``Cone``, ``Mesh`` and ``Plane``. Shapes carry dimensions only; their pose
is given by the owning link's collision origins.

Example
-------
>>> from skdistance.model import Box, Cylinder
>>> box = Box(size=(0.1, 0.2, 0.3))
>>> box.kind
'box'
>>> Cylinder(radius=0.05, length=0.4).half_extents()
array([0.05, 0.05, 0.2 ])
"""

from dataclasses import dataclass
from dataclasses import field

import numpy as np


@dataclass(frozen=True)
class Shape:
    """Base class of collision shapes."""

    kind = 'unknown'

    def half_extents(self):
        """Half extents of the axis aligned bounding box in the shape frame.

        Returns
        -------
        half_extents : numpy.ndarray
            (3,) array.
        """
        raise NotImplementedError


@dataclass(frozen=True)
class Box(Shape):
    """Box centered at the origin with full side lengths `size`."""
    size: tuple

    kind = 'box'

    def __post_init__(self):
        size = np.abs(np.asarray(self.size, dtype=np.float64))
        if size.shape != (3,):
            raise ValueError('size of Box must be 3 dim, get {}'
                             .format(size.shape))
        object.__setattr__(self, 'size', tuple(size.tolist()))

    def half_extents(self):
        return 0.5 * np.array(self.size)


@dataclass(frozen=True)
class Sphere(Shape):
    radius: float

    kind = 'sphere'

    def half_extents(self):
        return np.full(3, self.radius, dtype=np.float64)


@dataclass(frozen=True)
class Cylinder(Shape):
    """Cylinder along the z axis centered at the origin."""
    radius: float
    length: float

    kind = 'cylinder'

    def half_extents(self):
        return np.array([self.radius, self.radius, 0.5 * self.length])


@dataclass(frozen=True)
class Cone(Shape):
    """Cone along the z axis.

    The base disk of `radius` lies at ``z = -length / 2`` and the apex
    at ``z = length / 2``.
    """
    radius: float
    length: float

    kind = 'cone'

    def half_extents(self):
        return np.array([self.radius, self.radius, 0.5 * self.length])


@dataclass(frozen=True, eq=False)
class Mesh(Shape):
    """Indexed triangle mesh.

    Parameters
    ----------
    vertices : numpy.ndarray
        (n_vertex, 3) vertex positions.
    faces : numpy.ndarray
        (n_face, 3) vertex indices of each triangle.
    """
    vertices: np.ndarray
    faces: np.ndarray = field(repr=False)

    kind = 'mesh'

    def __post_init__(self):
        vertices = np.asarray(self.vertices, dtype=np.float64)
        faces = np.asarray(self.faces, dtype=np.int64)
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError('vertices must be (n, 3), get {}'
                             .format(vertices.shape))
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError('faces must be (n, 3), get {}'
                             .format(faces.shape))
        object.__setattr__(self, 'vertices', vertices)
        object.__setattr__(self, 'faces', faces)

    def half_extents(self):
        return np.max(np.abs(self.vertices), axis=0)

    @classmethod
    def from_trimesh(cls, mesh):
        """Create Mesh from trimesh.Trimesh

        Parameters
        ----------
        mesh : trimesh.Trimesh
            source mesh.

        Returns
        -------
        Mesh
            mesh shape sharing no memory with `mesh`.
        """
        return cls(vertices=np.array(mesh.vertices),
                   faces=np.array(mesh.faces))


@dataclass(frozen=True)
class Plane(Shape):
    """Infinite plane ``normal . x = d``."""
    normal: tuple
    d: float = 0.0

    kind = 'plane'

    def half_extents(self):
        return np.full(3, np.inf)
