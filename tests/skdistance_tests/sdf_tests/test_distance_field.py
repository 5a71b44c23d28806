import unittest

import numpy as np
from numpy import testing

from skdistance.math import translation_transform
from skdistance.model import Box
from skdistance.model import Link
from skdistance.model import Plane
from skdistance.model import Sphere
from skdistance.sdf import DistanceField
from skdistance.sdf import FieldAccessor


class TestDistanceField(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.voxel_size = 0.05
        cls.background = 1.0
        sphere_field = DistanceField(cls.voxel_size, cls.background)
        sphere_field.insert_shape(Sphere(0.2), np.eye(4), 5.0, 5.0)
        cls.sphere_field = sphere_field

        box_field = DistanceField(cls.voxel_size, cls.background)
        box_field.insert_shape(Box((0.2, 0.2, 0.2)), np.eye(4), 10.0, 3.0)
        cls.box_field = box_field

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            DistanceField(0.0, 1.0)
        with self.assertRaises(ValueError):
            DistanceField(0.1, -1.0)

    def test_world_to_index(self):
        field = self.sphere_field
        testing.assert_equal(field.world_to_index([0.024, -0.026, 0.1]),
                             [0, -1, 2])
        testing.assert_almost_equal(field.index_to_world([1, 2, -3]),
                                    [0.05, 0.1, -0.15])

    def test_distance(self):
        field = self.sphere_field
        testing.assert_almost_equal(field.distance([0.3, 0.0, 0.0]), 0.1)
        testing.assert_almost_equal(field.distance([0.0, -0.1, 0.0]), -0.1)
        points = np.array([[0.3, 0.0, 0.0], [0.0, 0.0, 0.25]])
        testing.assert_almost_equal(field.distances(points), [0.1, 0.05])

    def test_background(self):
        field = self.sphere_field
        # beyond the exterior band inside the block
        self.assertEqual(field.distance([0.4, 0.4, 0.0]), self.background)
        # outside the block
        self.assertEqual(field.distance([10.0, 0.0, 0.0]), self.background)
        self.assertEqual(
            field.distance([10.0, 0.0, 0.0], thread_safe=False),
            self.background)

    def test_interior_band(self):
        field = DistanceField(0.05, 1.0)
        field.insert_shape(Sphere(0.3), np.eye(4), 2.0, 1.0)
        self.assertEqual(field.distance([0.0, 0.0, 0.0]), -1.0)
        self.assertEqual(field.distance([0.2, 0.0, 0.0]), -1.0)
        testing.assert_almost_equal(field.distance([0.3, 0.0, 0.0]), 0.0)

    def test_union_idempotence(self):
        box = Box((0.2, 0.3, 0.1))
        pose = translation_transform([0.1, 0.0, 0.0])
        once = DistanceField(0.05, 0.5)
        once.insert_shape(box, pose, 3.0, 3.0)
        twice = DistanceField(0.05, 0.5)
        twice.insert_shape(box, pose, 3.0, 3.0)
        twice.insert_shape(box, pose, 3.0, 3.0)
        testing.assert_equal(once.offset, twice.offset)
        testing.assert_almost_equal(once.values, twice.values)

    def test_union(self):
        field = DistanceField(0.05, 1.0)
        field.insert_shape(Sphere(0.1),
                           translation_transform([-0.5, 0, 0]), 3.0, 3.0)
        field.insert_shape(Sphere(0.1),
                           translation_transform([0.5, 0, 0]), 3.0, 3.0)
        testing.assert_almost_equal(field.distance([-0.5, 0, 0]), -0.1)
        testing.assert_almost_equal(field.distance([0.5, 0, 0]), -0.1)
        testing.assert_almost_equal(field.distance([0.65, 0, 0]), 0.05)
        # gap between the two blocks
        self.assertEqual(field.distance([0.0, 0.0, 0.0]), 1.0)
        lower, upper = field.index_bounds()
        self.assertLessEqual(lower[0], -12)
        self.assertGreaterEqual(upper[0], 12)

    def test_add_link(self):
        link = Link('link', [Sphere(0.1), Plane((0, 0, 1)), Box((0.1,) * 3)],
                    [np.eye(4), np.eye(4), translation_transform([0.5, 0, 0])])
        field = DistanceField(0.05, 1.0)
        self.assertEqual(field.add_link(link, np.eye(4), 3.0, 3.0), 2)
        testing.assert_almost_equal(field.distance([0.0, 0.0, 0.0]), -0.1)
        testing.assert_almost_equal(field.distance([0.5, 0.0, 0.0]), -0.05)

        field = DistanceField(0.05, 1.0)
        field.add_link(link, translation_transform([0, 1.0, 0]), 3.0, 3.0)
        testing.assert_almost_equal(field.distance([0.0, 1.0, 0.0]), -0.1)

    def test_gradient(self):
        field = self.box_field
        for thread_safe in [True, False]:
            testing.assert_almost_equal(
                field.gradient([0.3, 0.0, 0.0], thread_safe=thread_safe),
                [1, 0, 0])
            testing.assert_almost_equal(
                field.gradient([0.0, -0.3, 0.0], thread_safe=thread_safe),
                [0, -1, 0])
            self.assertIsNone(
                field.gradient([10.0, 0.0, 0.0], thread_safe=thread_safe))
        testing.assert_almost_equal(
            field.raw_gradient_at_index([6, 0, 0]), [1, 0, 0], decimal=5)
        testing.assert_almost_equal(
            field.raw_gradient_at_index([6, 0, 0], thread_safe=False),
            [1, 0, 0], decimal=5)

    def test_accessor(self):
        field = self.box_field
        points = np.random.uniform(-0.6, 0.6, (50, 3))
        expected = field.distances(points)
        with field.accessor() as accessor:
            self.assertIsInstance(accessor, FieldAccessor)
            for point, d in zip(points, expected):
                testing.assert_almost_equal(accessor.distance(point), d)
                testing.assert_almost_equal(
                    field.distance(point, thread_safe=False,
                                   accessor=accessor), d)
            self.assertGreater(len(accessor._cache), 0)
        self.assertEqual(len(accessor._cache), 0)
        testing.assert_almost_equal(
            field.accessor().gradient([0.3, 0.0, 0.0]), [1, 0, 0])

    def test_empty_field(self):
        field = DistanceField(0.1, 2.0)
        self.assertTrue(field.is_empty)
        self.assertEqual(field.voxel_count, 0)
        self.assertEqual(field.memory_usage(), 0)
        self.assertIsNone(field.index_bounds())
        self.assertEqual(field.distance([0, 0, 0]), 2.0)
        self.assertEqual(field.distance([0, 0, 0], thread_safe=False), 2.0)
        self.assertIsNone(field.gradient([0, 0, 0]))
        self.assertIsNone(field.gradient([0, 0, 0], thread_safe=False))

    def test_memory_usage(self):
        field = self.sphere_field
        self.assertFalse(field.is_empty)
        self.assertEqual(field.memory_usage(),
                         field.voxel_count * 4 + 3 * 8)
        self.assertFalse(field.values.flags.writeable)
