"""
End-to-end tests of the reconstruction run on a temporary session directory.

Each session holds ``clouds/*.pcd`` frames and a ``graph_vertices.txt`` pose
list; frames are 10x10 grids on the default 5 mm voxel pitch.
"""

import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

import numpy as np
import open3d as o3d

from stitch.config import FilterCfg, FinalCfg, LockCfg, PipelineCfg
from stitch.errors import OutputDirectoryError, PoseFileError, PoseListLockedError
from stitch.pipeline import merge_sequence, reconstruct
from stitch.poses import load_pose_sequence
from stitch.workspace import Workspace

STEP = 0.005
SHIFT = 5 * STEP


def grid_points(n=10):
    xs, ys = np.meshgrid(np.arange(n) * STEP, np.arange(n) * STEP)
    return np.column_stack([xs.ravel(), ys.ravel(), np.zeros(xs.size)])


class SessionTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        (self.root / "clouds").mkdir()
        self.cfg = PipelineCfg(
            work_dir=self.root,
            filter=FilterCfg(voxel=0.0, remove_outliers=False),
            final=FinalCfg(voxel=0.0, remove_outliers=False),
            show_progress=False,
        )

    def tearDown(self):
        self.tmp.cleanup()

    def write_frame(self, name, rgb):
        P = grid_points()
        pc = o3d.geometry.PointCloud()
        pc.points = o3d.utility.Vector3dVector(P)
        pc.colors = o3d.utility.Vector3dVector(np.tile(rgb, (len(P), 1)))
        o3d.io.write_point_cloud(str(self.root / "clouds" / f"{name}.pcd"), pc)

    def write_graph(self, entries):
        rows = []
        for i, (name, tx) in enumerate(entries):
            rows.append(f"{i},{name},0,0,0,{tx!r},0.0,0.0,0.0,0.0,0.0,1.0")
        (self.root / "graph_vertices.txt").write_text("\n".join(rows) + "\n")


class TestReconstruct(SessionTestCase):
    def test_two_frames_end_to_end(self):
        self.write_frame("000000", (0.2, 0.2, 0.2))
        self.write_frame("000001", (0.8, 0.8, 0.8))
        self.write_graph([("000000", 0.0), ("000001", SHIFT)])

        cloud, stats = reconstruct(self.cfg)

        out = self.root / "reconstruction.pcd"
        self.assertTrue(out.is_file())
        self.assertEqual(stats.frames_merged, 2)
        self.assertEqual(stats.frames_skipped, 0)
        self.assertEqual(stats.points_processed, 200)
        self.assertEqual(len(stats.point_counts), 2)
        self.assertEqual(stats.point_counts[0], ("000000.pcd", 100))
        n = len(cloud.points)
        self.assertGreater(n, 100)
        self.assertLessEqual(n, 200)
        self.assertEqual(len(o3d.io.read_point_cloud(str(out)).points), n)

    def test_missing_frame_is_skipped(self):
        self.write_frame("000000", (0.2, 0.2, 0.2))
        self.write_frame("000002", (0.8, 0.8, 0.8))
        self.write_graph([("000000", 0.0), ("000001", 0.0), ("000002", SHIFT)])

        _, stats = reconstruct(self.cfg)

        self.assertEqual(stats.frames_total, 3)
        self.assertEqual(stats.frames_merged, 2)
        self.assertEqual(stats.frames_skipped, 1)

    def test_output_directory_is_wiped(self):
        stale = self.root / "clouds" / "output" / "old.pcd"
        stale.parent.mkdir(parents=True)
        stale.write_text("stale")
        self.write_frame("000000", (0.5, 0.5, 0.5))
        self.write_graph([("000000", 0.0)])

        reconstruct(self.cfg)

        self.assertTrue(stale.parent.is_dir())
        self.assertFalse(stale.exists())

    def test_output_directory_error(self):
        (self.root / "clouds" / "output").write_text("not a directory")
        self.write_graph([("000000", 0.0)])
        with self.assertRaises(OutputDirectoryError):
            reconstruct(self.cfg)

    def test_missing_pose_file(self):
        with self.assertRaises(PoseFileError):
            reconstruct(self.cfg)

    def test_locked_pose_list_times_out(self):
        self.write_graph([("000000", 0.0)])
        (self.root / ".graph.block").touch()
        cfg = replace(self.cfg, lock=LockCfg(timeout_s=0.0))
        with self.assertRaises(PoseListLockedError):
            reconstruct(cfg)

    def test_empty_pose_list_writes_nothing_useful(self):
        (self.root / "graph_vertices.txt").write_text("")
        cloud, stats = reconstruct(self.cfg)
        self.assertEqual(len(cloud.points), 0)
        self.assertEqual(stats.frames_total, 0)


class TestMergeSequence(SessionTestCase):
    def test_first_usable_frame_is_moved_to_reference(self):
        self.write_frame("000001", (0.5, 0.5, 0.5))
        self.write_graph([("000000", 0.0), ("000001", SHIFT)])
        ws = Workspace.from_cfg(self.cfg)
        poses = load_pose_sequence(ws.graph_file, ws.cloud_suffix)

        acc, stats = merge_sequence(poses, ws, self.cfg)

        self.assertEqual(stats.frames_merged, 1)
        expected = grid_points() + [SHIFT, 0.0, 0.0]
        np.testing.assert_allclose(acc.points, expected, atol=1e-6)


if __name__ == "__main__":
    unittest.main()
