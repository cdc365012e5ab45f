import os
import sys
import json
import math
import tempfile
import unittest
import argparse
from pathlib import Path
from unittest import mock

import numpy as np
import pandas as pd
import matplotlib
from sklearn.cluster import OPTICS
from sklearn.datasets import make_blobs

THIS_DIR = os.path.dirname(__file__)
sys.path.append(os.path.abspath(THIS_DIR + "/../src"))

matplotlib.use("Agg")

import gdscconstants as GDSC_C
import gdscoptics as GDSC_O

def blobs(n_samples=90):
  X, _ = make_blobs(n_samples=n_samples, centers=[[0, 0], [10, 10], [10, -10]],
                    cluster_std=0.5, random_state=3)
  return X[:, 0], X[:, 1]


class TestOPTICSManager(unittest.TestCase):
  def test_length_mismatch(self):
    with self.assertRaises(ValueError):
      GDSC_O.OPTICSManager([0, 1, 2], [0, 1])

  def test_invalid_parameters(self):
    x, y = blobs()
    manager = GDSC_O.OPTICSManager(x, y)
    with self.assertRaises(ValueError):
      manager.optics(5.0, 1)
    with self.assertRaises(ValueError):
      manager.optics(0.0, 5)
    with self.assertRaises(ValueError):
      manager.optics(math.nan, 5)
    with self.assertRaises(ValueError):
      GDSC_O.OPTICSManager([0, 1, 2], [0, 1, 2]).optics(5.0, 5)

  def test_original_coordinates(self):
    manager = GDSC_O.OPTICSManager([1.5, 2.5], [3.5, 4.5])
    self.assertEqual(manager.size(), 2)
    self.assertEqual(manager.get_original_x(1), 2.5)
    self.assertEqual(manager.get_original_y(0), 3.5)

  def test_matches_sklearn(self):
    x, y = blobs()
    result = GDSC_O.OPTICSManager(x, y).optics(4.0, 5)
    model = OPTICS(min_samples=5, max_eps=4.0).fit(np.column_stack((x, y)))
    self.assertEqual(result.size(), x.size)
    self.assertEqual(result.min_pts, 5)
    self.assertEqual(result.generating_distance, 4.0)
    self.assertTrue(np.array_equal(result.get_order() - 1,
                                   np.argsort(model.ordering_)))
    self.assertTrue(np.array_equal(result.get_reachability_distance(),
                                   model.reachability_))
    self.assertTrue(np.array_equal(result.get_core_distance(),
                                   model.core_distances_))
    self.assertTrue(np.array_equal(result.get_predecessor(),
                                   model.predecessor_))

  def test_dbscan_matches_sklearn_clusters(self):
    x, y = blobs()
    result = GDSC_O.OPTICSManager(x, y).optics(4.0, 5)
    self.assertEqual(result.extract_dbscan_clustering(2.0), 3)
    clusters = result.get_clusters()
    model = OPTICS(min_samples=5, max_eps=4.0, cluster_method="dbscan",
                   eps=2.0).fit(np.column_stack((x, y)))
    # Same partition up to the numbering
    pairs = set(zip(clusters.tolist(), model.labels_.tolist()))
    self.assertEqual(len(pairs), 3)

  def test_hulls_available(self):
    x, y = blobs()
    result = GDSC_O.OPTICSManager(x, y).optics(4.0, 5)
    result.extract_dbscan_clustering(2.0)
    result.compute_convex_hulls()
    for cluster_id in (1, 2, 3):
      self.assertIsNotNone(result.get_convex_hull(cluster_id))


class TestOPTICSAnalysis(unittest.TestCase):
  def setUp(self):
    self.tmp = tempfile.TemporaryDirectory()
    self.dir = Path(self.tmp.name)
    x, y = blobs()
    self.points = Path(self.dir, "points.csv")
    pd.DataFrame({"east": x, "north": y}).to_csv(self.points, index=False)

  def tearDown(self):
    self.tmp.cleanup()

  def metadata(self, **kwargs):
    metadata = {
      "points": str(self.points),
      "x_col": "east",
      "y_col": "north",
      "min_pts": 5,
      "generating_distance": 4.0,
    }
    metadata.update(kwargs)
    return metadata

  def test_defaults(self):
    run = GDSC_O.OPTICSAnalysis({})
    self.assertEqual(run.metadata_method, GDSC_C.XI_STR)
    self.assertEqual(run.metadata_min_pts, GDSC_C.DEFAULT_MIN_PTS)
    self.assertEqual(run.metadata_xi, GDSC_C.DEFAULT_XI)
    self.assertEqual(run.metadata_generating_distance, math.inf)
    self.assertEqual(run.metadata_options, 0)
    self.assertIsNone(run.metadata_points)
    with self.assertRaises(ValueError):
      run.run()

  def test_options(self):
    run = GDSC_O.OPTICSAnalysis({"options": ["top_level", "upper_limit"]})
    self.assertEqual(run.metadata_options,
                     GDSC_C.XI_OPTION_TOP_LEVEL | GDSC_C.XI_OPTION_UPPER_LIMIT)

  def test_unknown_method(self):
    x, y = blobs()
    run = GDSC_O.OPTICSAnalysis(self.metadata(method="kmeans"))
    with self.assertRaises(ValueError):
      run.cluster(x, y)

  def test_unknown_column(self):
    run = GDSC_O.OPTICSAnalysis(self.metadata(x_col="lon"))
    with self.assertRaises(ValueError):
      run.run()

  def test_assignments_before_cluster(self):
    run = GDSC_O.OPTICSAnalysis(self.metadata())
    with self.assertRaises(ValueError):
      run.assignments(pd.DataFrame())

  def test_run_dbscan(self):
    output = Path(self.dir, "assignments.csv")
    run = GDSC_O.OPTICSAnalysis(self.metadata(
      method=GDSC_C.DBSCAN_STR, dbscan_distance=2.0, hulls=True,
      output=str(output)))
    table = run.run()
    self.assertTrue(output.exists())
    self.assertEqual(len(table), 90)
    self.assertEqual(list(table.columns), [
      GDSC_C.X_STR, GDSC_C.Y_STR, GDSC_C.ORDER_STR, GDSC_C.REACHABILITY_STR,
      GDSC_C.CORE_DISTANCE_STR, GDSC_C.PREDECESSOR_STR, GDSC_C.CLUSTER_STR,
      GDSC_C.TOP_LEVEL_STR])
    self.assertEqual(set(table[GDSC_C.CLUSTER_STR]), {1, 2, 3})
    self.assertTrue(run.result.has_convex_hulls())
    saved = pd.read_csv(output)
    self.assertTrue(np.array_equal(saved[GDSC_C.ORDER_STR],
                                   table[GDSC_C.ORDER_STR]))

  def test_dbscan_requires_finite_distance(self):
    x, y = blobs()
    run = GDSC_O.OPTICSAnalysis({"method": GDSC_C.DBSCAN_STR})
    with self.assertRaises(ValueError):
      run.cluster(x, y)
    self.assertIsNone(run.result)

  def test_dbscan_generating_distance_fallback(self):
    x, y = blobs()
    run = GDSC_O.OPTICSAnalysis({"method": GDSC_C.DBSCAN_STR,
                                 "generating_distance": 4.0})
    result = run.cluster(x, y)
    self.assertEqual(result.get_number_of_clusters(), 3)
    self.assertTrue(np.all(result.get_clusters() != GDSC_C.NOISE))

  def test_run_xi_with_plot(self):
    plot = Path(self.dir, "reachability.png")
    run = GDSC_O.OPTICSAnalysis(self.metadata(
      xi=0.05, upper_limit=3.0, options=["upper_limit"], plot=str(plot)))
    table = run.run()
    self.assertTrue(plot.exists())
    self.assertEqual(run.result.upper_limit, 3.0)
    self.assertTrue(np.array_equal(np.sort(table[GDSC_C.ORDER_STR]),
                                   np.arange(1, 91)))

  @mock.patch("sys.argv", ["gdscoptics.py", "-i", "missing.json"])
  def test_parse_arguments_missing_file(self):
    with self.assertRaises(FileNotFoundError):
      GDSC_O.parse_arguments()

  def test_main(self):
    output = Path(self.dir, "assignments.csv")
    config = Path(self.dir, "config.json")
    with open(config, 'w') as outfile:
      json.dump(self.metadata(method=GDSC_C.DBSCAN_STR, dbscan_distance=2.0,
                              output=str(output)), outfile)
    with mock.patch("sys.argv", ["gdscoptics.py", "-i", str(config), "-v"]):
      args = GDSC_O.parse_arguments()
    self.assertTrue(args.verbose)
    self.assertEqual(args.input, Path(os.path.abspath(config)))
    GDSC_O.main(args)
    self.assertEqual(len(pd.read_csv(output)), 90)

  def test_parse_arguments_overrides(self):
    config = Path(self.dir, "config.json")
    config.write_text("{}")
    argv = ["gdscoptics.py", "-i", str(config), "-m", "4", "-d", "3.5",
            "-x", "0.1"]
    with mock.patch("sys.argv", argv):
      args = GDSC_O.parse_arguments()
    self.assertEqual((args.min_pts, args.distance, args.xi), (4, 3.5, 0.1))
    with mock.patch("sys.argv", ["gdscoptics.py", "-i", str(config),
                                 "-x", "1.5"]):
      with self.assertRaises(SystemExit):
        GDSC_O.parse_arguments()

  def test_main_overrides(self):
    output = Path(self.dir, "assignments.csv")
    config = Path(self.dir, "config.json")
    with open(config, 'w') as outfile:
      json.dump(self.metadata(min_pts=100, output=str(output)), outfile)
    # The metadata min_pts exceeds the 90 points
    GDSC_O.main(argparse.Namespace(input=config, verbose=False, min_pts=5,
                                   distance=None, xi=None))
    self.assertTrue(output.exists())

  def test_main_namespace(self):
    output = Path(self.dir, "assignments.csv")
    config = Path(self.dir, "config.json")
    with open(config, 'w') as outfile:
      json.dump(self.metadata(output=str(output)), outfile)
    GDSC_O.main(argparse.Namespace(input=config, verbose=False))
    self.assertTrue(output.exists())


if __name__ == "__main__":
  unittest.main()
