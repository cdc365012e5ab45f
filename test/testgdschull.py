import os
import sys
import unittest

import numpy as np

THIS_DIR = os.path.dirname(__file__)
sys.path.append(os.path.abspath(THIS_DIR + "/../src"))

from gdschull import ConvexHull, ScratchSpace

SQUARE_X = [0.0, 1.0, 1.0, 0.0]
SQUARE_Y = [0.0, 0.0, 1.0, 1.0]


class TestConvexHull(unittest.TestCase):
  def test_square(self):
    hull = ConvexHull.create(SQUARE_X, SQUARE_Y)
    self.assertIsNotNone(hull)
    self.assertEqual(hull.size(), 4)
    self.assertAlmostEqual(hull.get_area(), 1.0)
    self.assertAlmostEqual(hull.get_length(), 4.0)

  def test_interior_point_dropped(self):
    hull = ConvexHull.create(SQUARE_X + [0.5, 0.25], SQUARE_Y + [0.5, 0.75])
    self.assertEqual(hull.size(), 4)

  def test_counter_clockwise(self):
    hull = ConvexHull.create([0, 4, 4, 0, 2], [0, 0, 3, 3, 5])
    signed = 0.5 * np.sum(hull.x * np.roll(hull.y, -1) -
                          hull.y * np.roll(hull.x, -1))
    self.assertGreater(signed, 0)
    self.assertEqual(hull.size(), 5)

  def test_first_n_points(self):
    hull = ConvexHull.create(SQUARE_X + [5.0], SQUARE_Y + [5.0], 4)
    self.assertAlmostEqual(hull.get_area(), 1.0)
    with self.assertRaises(ValueError):
      ConvexHull.create(SQUARE_X, SQUARE_Y, 5)

  def test_too_few_points(self):
    self.assertIsNone(ConvexHull.create([0, 1], [0, 1]))
    self.assertIsNone(ConvexHull.create([0, 0, 0, 1], [0, 0, 0, 1]))

  def test_collinear(self):
    self.assertIsNone(ConvexHull.create([0, 1, 2, 3], [0, 1, 2, 3]))
    self.assertIsNone(ConvexHull.create([0, 1, 2], [5, 5, 5]))

  def test_small_coordinates(self):
    scale = 1e-12
    hull = ConvexHull.create(np.multiply(SQUARE_X, scale),
                             np.multiply(SQUARE_Y, scale))
    self.assertIsNotNone(hull)
    self.assertEqual(hull.size(), 4)
    self.assertAlmostEqual(hull.get_area() / scale ** 2, 1.0)
    self.assertIsNone(ConvexHull.create(np.multiply([0, 1, 2], scale),
                                        np.multiply([0, 1, 2], scale)))

  def test_invalid_tolerance(self):
    with self.assertRaises(ValueError):
      ConvexHull.create(SQUARE_X, SQUARE_Y, tolerance=0)
    with self.assertRaises(ValueError):
      ConvexHull.create(SQUARE_X, SQUARE_Y, tolerance=float("nan"))

  def test_contains(self):
    hull = ConvexHull.create(SQUARE_X, SQUARE_Y)
    self.assertTrue(hull.contains(0.5, 0.5))
    self.assertFalse(hull.contains(1.5, 0.5))
    self.assertFalse(hull.contains(-0.1, -0.1))

  def test_bounds(self):
    hull = ConvexHull.create([1, 3, 2], [2, 2, 7])
    bounds = hull.get_bounds()
    self.assertEqual((bounds.x0, bounds.y0, bounds.x1, bounds.y1),
                     (1.0, 2.0, 3.0, 7.0))


class TestScratchSpace(unittest.TestCase):
  def test_add_grows_after_resize(self):
    scratch = ScratchSpace(2)
    scratch.resize(5)
    scratch.add([0, 1], [0, 0])
    scratch.add([1, 0], [1, 1])
    scratch.add(0.5, 0.5)
    self.assertEqual(scratch.n, 5)
    hull = scratch.get_convex_hull()
    self.assertEqual(hull.size(), 4)
    bounds = scratch.get_bounds()
    self.assertEqual((bounds.x0, bounds.y0, bounds.x1, bounds.y1),
                     (0.0, 0.0, 1.0, 1.0))

  def test_resize_resets(self):
    scratch = ScratchSpace(4)
    scratch.add([0, 1, 2], [0, 1, 0])
    scratch.resize(2)
    self.assertEqual(scratch.n, 0)
    self.assertIsNone(scratch.get_bounds())
    self.assertIsNone(scratch.get_convex_hull())


if __name__ == "__main__":
  unittest.main()
