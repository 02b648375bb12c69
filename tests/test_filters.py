"""Unit tests for per-frame and output filtering."""

import unittest

import numpy as np
import open3d as o3d

from stitch.config import FilterCfg, FinalCfg
from stitch.filters import (
    filter_cloud,
    finalize_cloud,
    remove_nans,
    remove_outliers,
    voxel_down_xy,
)


def pcd_of(P, rgb=(0.5, 0.5, 0.5)):
    pc = o3d.geometry.PointCloud()
    pc.points = o3d.utility.Vector3dVector(np.asarray(P, dtype=float))
    pc.colors = o3d.utility.Vector3dVector(np.tile(rgb, (len(P), 1)))
    return pc


def dense_cluster(n=100, spread=0.01, seed=5):
    rng = np.random.default_rng(seed)
    return rng.uniform(-spread, spread, size=(n, 3))


class TestRemoveNans(unittest.TestCase):
    def test_drops_non_finite(self):
        P = np.array([[0.0, 0.0, 0.0], [np.nan, 1.0, 1.0], [1.0, np.inf, 0.0]])
        pc = remove_nans(pcd_of(P))
        self.assertEqual(len(pc.points), 1)

    def test_input_is_not_modified(self):
        src = pcd_of([[np.nan, 0.0, 0.0], [0.0, 0.0, 0.0]])
        remove_nans(src)
        self.assertEqual(len(src.points), 2)


class TestVoxelGrid(unittest.TestCase):
    def setUp(self):
        self.P = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.2], [0.1, 0.0, 0.0]])

    def test_tall_z_leaf_merges_columns(self):
        pc = voxel_down_xy(pcd_of(self.P), 0.005, 0.5)
        self.assertEqual(len(pc.points), 2)
        z = np.sort(np.asarray(pc.points)[:, 2])
        self.assertAlmostEqual(z[-1], 0.1, places=6)

    def test_isotropic_grid_keeps_heights_apart(self):
        pc = voxel_down_xy(pcd_of(self.P), 0.005, 0.005)
        self.assertEqual(len(pc.points), 3)

    def test_zero_leaf_is_noop(self):
        pc = voxel_down_xy(pcd_of(self.P), 0.0, 0.5)
        self.assertEqual(len(pc.points), 3)


class TestOutliers(unittest.TestCase):
    def test_far_point_is_removed(self):
        P = np.vstack([dense_cluster(), [[1.0, 1.0, 1.0]]])
        pc, removed = remove_outliers(
            pcd_of(P), radius=0.04, radius_min_nn=50, stat_mean_k=40, stat_std=2.0
        )
        self.assertGreaterEqual(removed, 1)
        far = np.asarray(pc.points)
        self.assertFalse(np.any(np.all(np.isclose(far, 1.0), axis=1)))

    def test_empty_cloud(self):
        pc, removed = remove_outliers(o3d.geometry.PointCloud(), 0.04, 50, 40, 2.0)
        self.assertEqual(len(pc.points), 0)
        self.assertEqual(removed, 0)


class TestFilterStages(unittest.TestCase):
    def test_filter_without_grid_or_outliers(self):
        P = dense_cluster()
        pc = filter_cloud(pcd_of(P), FilterCfg(voxel=0.0, remove_outliers=False))
        self.assertEqual(len(pc.points), len(P))

    def test_finalize_passthrough(self):
        P = dense_cluster()
        pc = finalize_cloud(pcd_of(P), FinalCfg(voxel=0.0, remove_outliers=False))
        self.assertEqual(len(pc.points), len(P))

    def test_finalize_is_deterministic(self):
        P = np.vstack([dense_cluster(), [[1.0, 1.0, 1.0]]])
        a = np.asarray(finalize_cloud(pcd_of(P), FinalCfg()).points)
        b = np.asarray(finalize_cloud(pcd_of(P), FinalCfg()).points)
        np.testing.assert_array_equal(a, b)


if __name__ == "__main__":
    unittest.main()
