"""
GDSC Convex Hull Module
Convex hull and bounding box of 2D point sets, and the scratch buffer used to
aggregate cluster points.
"""

import math
import numpy as np

from matplotlib.path import Path as mplPath
from matplotlib.transforms import Bbox
from scipy.spatial import ConvexHull as QhullConvexHull, QhullError

from typing import Optional, Sequence

from gdscconstants import HULL_TOLERANCE

class ConvexHull:
  """
  Convex hull of a set of 2D points.

  Vertices are stored counter-clockwise in `x` and `y`. Use `create()` to
  build a hull from arbitrary points.
  """

  def __init__(self, x: Sequence[float], y: Sequence[float]) -> None:
    self.x = np.asarray(x, dtype=float)
    self.y = np.asarray(y, dtype=float)
    self._path: Optional[mplPath] = None

  @staticmethod
  def create(x: Sequence[float],
             y: Sequence[float],
             n: Optional[int] = None,
             tolerance: float = HULL_TOLERANCE) -> Optional["ConvexHull"]:
    """
    Create a convex hull from the first n coordinates.

    Parameters
    ----------
    x, y : array-like
      Point coordinates.
    n : int, optional
      Number of coordinates to use. Defaults to all.
    tolerance : float
      Points whose spread orthogonal to the main axis is within the tolerance
      of the spread along it are treated as collinear.

    Returns
    -------
    ConvexHull or None
      None if the points are fewer than 3 distinct points, collinear, or
      Qhull could not build the hull.
    """
    if math.isnan(tolerance) or tolerance <= 0:
      raise ValueError(f"Tolerance must be strictly positive: {tolerance}")
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if n is None: n = x.size
    if x.size < n or y.size < n: raise ValueError(
      f"Fewer coordinates ({x.size}, {y.size}) than requested ({n})"
    )
    if n < 3: return None
    points = np.unique(np.column_stack((x[:n], y[:n])), axis=0)
    if len(points) < 3: return None
    spread = np.linalg.svd(points - points.mean(axis=0), compute_uv=False)
    if spread[0] == 0 or spread[1] <= tolerance * spread[0]: return None
    try: hull = QhullConvexHull(points)
    except QhullError: return None
    vertices = points[hull.vertices]
    return ConvexHull(vertices[:, 0], vertices[:, 1])

  def size(self) -> int:
    return int(self.x.size)

  def contains(self, x: float, y: float) -> bool:
    """Check if the point lies strictly inside the hull."""
    if self._path is None:
      self._path = mplPath(np.column_stack((self.x, self.y)))
    return bool(self._path.contains_point((x, y)))

  def get_bounds(self) -> Bbox:
    if self.size() == 0: return Bbox.from_extents(0, 0, 0, 0)
    return Bbox.from_extents(self.x.min(), self.y.min(),
                             self.x.max(), self.y.max())

  def get_length(self) -> float:
    """Perimeter of the hull."""
    if self.size() < 2: return 0.0
    return float(np.sum(np.hypot(self.x - np.roll(self.x, 1),
                                 self.y - np.roll(self.y, 1))))

  def get_area(self) -> float:
    return float(0.5 * abs(np.dot(self.x, np.roll(self.y, -1)) -
                           np.dot(self.y, np.roll(self.x, -1))))

  def __repr__(self) -> str:
    return f"ConvexHull(size={self.size()})"


class ScratchSpace:
  """
  Reusable coordinate buffer for aggregating the points of a cluster.

  Parameters
  ----------
  capacity : int
    Initial capacity.
  """

  def __init__(self, capacity: int) -> None:
    self.x = np.zeros(capacity)
    self.y = np.zeros(capacity)
    self.n = 0

  def resize(self, capacity: int) -> None:
    """Ensure the capacity and reset the number of values."""
    if self.x.size < capacity:
      self.x = np.zeros(capacity)
      self.y = np.zeros(capacity)
    self.n = 0

  def add(self, x: Sequence[float], y: Sequence[float]) -> None:
    x = np.atleast_1d(np.asarray(x, dtype=float))
    y = np.atleast_1d(np.asarray(y, dtype=float))
    size = x.size
    self.x[self.n:self.n + size] = x
    self.y[self.n:self.n + size] = y
    self.n += size

  def get_bounds(self) -> Optional[Bbox]:
    if self.n == 0: return None
    x = self.x[:self.n]
    y = self.y[:self.n]
    return Bbox.from_extents(x.min(), y.min(), x.max(), y.max())

  def get_convex_hull(self) -> Optional[ConvexHull]:
    return ConvexHull.create(self.x, self.y, self.n)
