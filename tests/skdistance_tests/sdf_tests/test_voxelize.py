import unittest
from unittest import mock

import numpy as np
from numpy import testing
import trimesh

from skdistance.math import make_transform
from skdistance.math import rotation_matrix
from skdistance.model import Box
from skdistance.model import Cone
from skdistance.model import Cylinder
from skdistance.model import Mesh
from skdistance.model import Plane
from skdistance.model import Sphere
from skdistance.sdf import shape_to_volume
from skdistance.sdf import signed_distance
from skdistance.sdf import UnsupportedShapeError
from skdistance.sdf import voxelize
from skdistance.sdf.voxelize import cone_signed_distance
from skdistance.sdf.voxelize import shape_bounds


class TestSignedDistance(unittest.TestCase):

    def test_box(self):
        box = Box((0.1, 0.2, 0.1))
        self.assertEqual(
            signed_distance(box, np.zeros((1, 3)))[0], -0.05)
        testing.assert_almost_equal(
            signed_distance(box, np.array([[0.05, 0.1, 0.05],
                                           [-0.05, -0.1, -0.05]])),
            [0, 0])
        testing.assert_almost_equal(
            signed_distance(box, np.array([[0.25, 0.0, 0.0]])), [0.2])

    def test_sphere(self):
        radius = 0.5
        vecs = np.random.randn(100, 3)
        norm = np.sqrt(np.sum(vecs**2, axis=1))
        vecs_unit = radius * vecs / norm[:, None]
        testing.assert_almost_equal(
            signed_distance(Sphere(radius), vecs_unit), np.zeros(100))
        self.assertEqual(
            signed_distance(Sphere(radius), np.zeros((1, 3)))[0], -radius)

    def test_cylinder(self):
        cylinder = Cylinder(radius=0.1, length=0.4)
        testing.assert_almost_equal(
            signed_distance(cylinder, np.array([[0.0, 0.0, 0.0],
                                                [0.3, 0.0, 0.0],
                                                [0.0, 0.0, 0.5],
                                                [0.0, 0.1, 0.2]])),
            [-0.1, 0.2, 0.3, 0.0])

    def test_cone(self):
        points = np.array([[0.0, 0.0, 0.3],
                           [0.0, 0.0, -0.3],
                           [0.3, 0.0, -0.1],
                           [0.0, 0.0, 0.1],
                           [0.0, 0.0, 0.0]])
        testing.assert_almost_equal(
            cone_signed_distance(points, 0.1, 0.2),
            [0.2, 0.2, 0.2, 0.0, -0.1 / np.sqrt(5.0)])
        testing.assert_almost_equal(
            signed_distance(Cone(0.1, 0.2), points),
            cone_signed_distance(points, 0.1, 0.2))

    def test_mesh(self):
        mesh = Mesh.from_trimesh(trimesh.creation.box(extents=[0.2] * 3))
        points = np.array([[0.0, 0.0, 0.0],
                           [0.3, 0.0, 0.0],
                           [0.0, -0.15, 0.0]])
        testing.assert_almost_equal(
            signed_distance(mesh, points), [-0.1, 0.2, 0.05])

    def test_unsupported(self):
        with self.assertRaises(UnsupportedShapeError):
            signed_distance(Plane((0, 0, 1)), np.zeros((1, 3)))
        with self.assertRaises(ValueError):
            shape_bounds(Plane((0, 0, 1)), np.eye(4))


class TestShapeToVolume(unittest.TestCase):

    def test_shape_bounds(self):
        pose = make_transform([1.0, 0, 0], rotation_matrix(np.pi / 2, 'z'))
        bounds = shape_bounds(Box((0.2, 0.4, 0.6)), pose)
        testing.assert_almost_equal(bounds, [[0.8, -0.1, -0.3],
                                             [1.2, 0.1, 0.3]])

    def test_sphere_volume(self):
        voxel_size = 0.02
        background = 1.0
        offset, values = shape_to_volume(
            Sphere(0.1), np.eye(4), voxel_size, background, 3.0, 3.0)
        self.assertEqual(values.dtype, np.float32)
        self.assertTrue(np.all(offset <= -5))

        def value(ijk):
            i, j, k = np.array(ijk) - offset
            return values[i, j, k]

        # deeper than the interior band
        self.assertEqual(value((0, 0, 0)), -background)
        testing.assert_almost_equal(value((4, 0, 0)), -0.02, decimal=6)
        testing.assert_almost_equal(value((7, 0, 0)), 0.04, decimal=6)
        # corner of the block is beyond the exterior band
        self.assertEqual(values[0, 0, 0], background)
        self.assertTrue(np.all(np.abs(values) <= background))

    def test_pose(self):
        voxel_size = 0.05
        pose = make_transform([0.5, 0.0, 0.0])
        offset, values = shape_to_volume(
            Box((0.2, 0.2, 0.2)), pose, voxel_size, 1.0, 4.0, 4.0)
        i, j, k = np.array([10, 0, 0]) - offset
        testing.assert_almost_equal(values[i, j, k], -0.1, decimal=6)
        i, j, k = np.array([14, 0, 0]) - offset
        testing.assert_almost_equal(values[i, j, k], 0.1, decimal=6)

    def test_unsupported(self):
        with self.assertRaises(UnsupportedShapeError):
            shape_to_volume(Plane((0, 0, 1)), np.eye(4), 0.1, 1.0, 3, 3)

    def test_mesh_volume(self):
        voxel_size = 0.02
        background = 1.0
        pose = make_transform([0.1, 0.0, -0.04])
        box_mesh = Mesh.from_trimesh(trimesh.creation.box(extents=[0.2] * 3))
        offset, values = shape_to_volume(
            box_mesh, pose, voxel_size, background, 2.5, 1.5)
        box_offset, box_values = shape_to_volume(
            Box((0.2, 0.2, 0.2)), pose, voxel_size, background, 2.5, 1.5)
        testing.assert_equal(offset, box_offset)
        testing.assert_almost_equal(values, box_values, decimal=5)
        # inside, deeper than the interior band
        i, j, k = np.array([5, 0, -2]) - offset
        self.assertEqual(values[i, j, k], -background)

    def test_mesh_volume_evaluates_near_surface(self):
        sphere_mesh = Mesh.from_trimesh(
            trimesh.creation.icosphere(subdivisions=2, radius=0.1))
        with mock.patch.object(
                voxelize, '_trimesh_signed_distance',
                wraps=voxelize._trimesh_signed_distance) as exact:
            offset, values = shape_to_volume(
                sphere_mesh, np.eye(4), 0.01, 1.0, 1.0, 1.0)
        n_exact = sum(len(call[0][1]) for call in exact.call_args_list)
        self.assertGreater(n_exact, 0)
        self.assertLess(n_exact, values.size // 2)
        i, j, k = -offset
        self.assertEqual(values[i, j, k], -1.0)
        self.assertEqual(values[0, 0, 0], 1.0)
        # the icosphere lies inside the sphere it approximates
        i, j, k = np.array([10, 0, 0]) - offset
        self.assertGreaterEqual(values[i, j, k], 0.0)
        self.assertLess(values[i, j, k], 0.005)
