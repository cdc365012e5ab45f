"""
GDSC OPTICS Order Module
Reachability profile produced by the OPTICS ordering phase.

The profile keeps one record per input point in the OPTICS processing order.
Each record maps back to the original input through its parent index, which
must form a permutation of [0, N).
"""

import math
import numpy as np

from typing import Optional, Sequence

from gdscconstants import NOISE

class OPTICSOrder:
  """
  A single entry of the OPTICS cluster ordering.

  Parameters
  ----------
  parent : int
    Index of the point in the original input.
  predecessor : int
    Parent index of the point that reached this point (-1 if undefined).
  core_distance : float
    Core distance, or +inf if the point is not a core point.
  reachability_distance : float
    Reachability distance, or +inf if undefined.
  cluster_id : int, default=NOISE
    Assigned cluster id.
  """

  __slots__ = ("parent", "predecessor", "core_distance",
               "reachability_distance", "cluster_id")

  def __init__(self,
               parent: int,
               predecessor: int,
               core_distance: float,
               reachability_distance: float,
               cluster_id: int = NOISE) -> None:
    self.parent = int(parent)
    self.predecessor = int(predecessor)
    self.core_distance = float(core_distance)
    self.reachability_distance = float(reachability_distance)
    self.cluster_id = int(cluster_id)

  def is_core_point(self) -> bool:
    return self.core_distance != math.inf

  def __repr__(self) -> str:
    return (f"OPTICSOrder(parent={self.parent}, "
            f"predecessor={self.predecessor}, "
            f"core_distance={self.core_distance}, "
            f"reachability_distance={self.reachability_distance}, "
            f"cluster_id={self.cluster_id})")


class OPTICSProfile:
  """
  Fixed-size reachability profile in OPTICS order.

  All arrays are indexed by the position in the ordering. Only `cluster_id`
  is writable; it is committed by the extraction algorithms.

  Parameters
  ----------
  parent : array-like of int
    Original input index for each ordered point. Must be a permutation.
  predecessor : array-like of int
    Parent index of the predecessor of each ordered point.
  core_distance : array-like of float
    Core distance of each ordered point (+inf if not a core point).
  reachability_distance : array-like of float
    Reachability distance of each ordered point (+inf if undefined).
  generating_distance : float
    The generating distance used to compute the ordering.
  """

  def __init__(self,
               parent: Sequence[int],
               predecessor: Sequence[int],
               core_distance: Sequence[float],
               reachability_distance: Sequence[float],
               generating_distance: float) -> None:
    generating_distance = float(generating_distance)
    if math.isnan(generating_distance) or generating_distance < 0:
      raise ValueError(
        f"Generating distance must be positive: {generating_distance}")
    self.parent = np.asarray(parent, dtype=int).ravel()
    self.predecessor = np.asarray(predecessor, dtype=int).ravel()
    self.core_distance = np.asarray(core_distance, dtype=float).ravel()
    self.reachability_distance = np.asarray(reachability_distance,
                                            dtype=float).ravel()
    n = self.parent.size
    for name, values in (("predecessor", self.predecessor),
                         ("core_distance", self.core_distance),
                         ("reachability_distance",
                          self.reachability_distance)):
      if values.size != n: raise ValueError(
        f"Length of {name} ({values.size}) does not match parent ({n})"
      )
    if not np.array_equal(np.sort(self.parent), np.arange(n)):
      raise ValueError("Parent indices must be a permutation of [0, N)")
    self.generating_distance = generating_distance
    self.cluster_id = np.full(n, NOISE, dtype=int)

  @classmethod
  def from_orders(cls,
                  orders: Sequence[OPTICSOrder],
                  generating_distance: float) -> "OPTICSProfile":
    """Build a profile from a sequence of OPTICSOrder records."""
    profile = cls([o.parent for o in orders],
                  [o.predecessor for o in orders],
                  [o.core_distance for o in orders],
                  [o.reachability_distance for o in orders],
                  generating_distance)
    profile.cluster_id[:] = [o.cluster_id for o in orders]
    return profile

  def size(self) -> int:
    return int(self.parent.size)

  def __len__(self) -> int:
    return self.size()

  def get(self, index: int) -> OPTICSOrder:
    """Return a snapshot of the record at the given ordering position."""
    if not 0 <= index < self.size():
      raise IndexError(f"Index {index} out of range [0, {self.size()})")
    return OPTICSOrder(self.parent[index],
                       self.predecessor[index],
                       self.core_distance[index],
                       self.reachability_distance[index],
                       self.cluster_id[index])

  def is_core_point(self) -> np.ndarray:
    """Boolean mask (OPTICS order) of the core points."""
    return self.core_distance <= self.generating_distance

  def convert(self, data: np.ndarray) -> np.ndarray:
    """Replace undefined (+inf) distances with the generating distance."""
    data[data == math.inf] = self.generating_distance
    return data

  def to_original(self,
                  values: np.ndarray,
                  dtype: Optional[type] = None) -> np.ndarray:
    """Scatter values given in OPTICS order into the original input order."""
    data = np.zeros(self.size(), dtype=dtype or values.dtype)
    data[self.parent] = values
    return data

  def reachability_profile(self, convert: bool = False) -> np.ndarray:
    data = self.reachability_distance.copy()
    return self.convert(data) if convert else data

  def core_distance_profile(self, convert: bool = False) -> np.ndarray:
    data = self.core_distance.copy()
    return self.convert(data) if convert else data

  def order(self) -> np.ndarray:
    """1-based position of each original input point in the ordering."""
    return self.to_original(np.arange(1, self.size() + 1))

  def reset_cluster_ids(self) -> None:
    self.cluster_id[:] = NOISE
