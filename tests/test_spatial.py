"""Unit tests for the x-y kd-tree index."""

import unittest

import numpy as np

from stitch.spatial import SpatialIndex


class TestSpatialIndex(unittest.TestCase):
    def setUp(self):
        self.pts = np.array(
            [[0.0, 0.0, 5.0], [1.0, 0.0, -1.0], [0.0, 2.0, 0.0], [3.0, 3.0, 0.0]]
        )
        self.idx = SpatialIndex(self.pts)

    def test_radius_is_inclusive_and_sorted(self):
        j, d2 = self.idx.query_radius([0.0, 0.0], 1.0, 10)
        np.testing.assert_array_equal(j, [0, 1])
        np.testing.assert_allclose(d2, [0.0, 1.0])

    def test_radius_respects_max_count(self):
        j, _ = self.idx.query_radius([0.0, 0.0], 5.0, 2)
        self.assertEqual(len(j), 2)
        self.assertEqual(j[0], 0)

    def test_radius_miss(self):
        j, d2 = self.idx.query_radius([10.0, 10.0], 0.5, 10)
        self.assertEqual(j.size, 0)
        self.assertEqual(d2.size, 0)

    def test_height_is_ignored(self):
        j, d2 = self.idx.query_nearest([0.0, 0.0, 100.0], 1)
        self.assertEqual(j[0], 0)
        self.assertAlmostEqual(d2[0], 0.0)

    def test_nearest_dist_batch(self):
        d = self.idx.nearest_dist([[0.0, 0.5], [3.0, 4.0]])
        np.testing.assert_allclose(d, [0.5, 1.0])

    def test_has_neighbors(self):
        mask = self.idx.has_neighbors([[0.1, 0.0], [10.0, 10.0]], 0.5)
        np.testing.assert_array_equal(mask, [True, False])

    def test_empty_index(self):
        idx = SpatialIndex(np.empty((0, 3)))
        self.assertEqual(len(idx), 0)
        self.assertEqual(idx.query_radius([0.0, 0.0], 1.0, 10)[0].size, 0)
        self.assertEqual(idx.query_nearest([0.0, 0.0], 1)[0].size, 0)
        self.assertTrue(np.isinf(idx.nearest_dist([[0.0, 0.0]])).all())
        self.assertFalse(idx.has_neighbors([[0.0, 0.0]], 1.0).any())


if __name__ == "__main__":
    unittest.main()
