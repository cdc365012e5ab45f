"""
GDSC OPTICS Cluster Module
Cluster hierarchy nodes built by the extraction algorithms.
"""

from typing import Optional, Iterable

class OPTICSCluster:
  """
  A cluster spanning the inclusive range [start, end] of the OPTICS order.

  Children are strictly nested clusters. The level is 0 for a leaf and one
  more than the highest child level otherwise; it is updated whenever a child
  is attached.

  Parameters
  ----------
  start : int
    First position (0-based) in the OPTICS order.
  end : int
    Last position (inclusive) in the OPTICS order.
  cluster_id : int
    Cluster id (1-based).
  """

  def __init__(self, start: int, end: int, cluster_id: int) -> None:
    if start > end:
      raise ValueError(f"Cluster start {start} is after the end {end}")
    self.start = start
    self.end = end
    self.cluster_id = cluster_id
    self.children: list["OPTICSCluster"] = []
    self.level = 0

  def add_child_cluster(self, child: "OPTICSCluster") -> None:
    self.children.append(child)
    self.level = max(self.level, child.level + 1)

  def length(self) -> int:
    """Number of positions covered by the range."""
    return self.end - self.start + 1

  def size(self) -> int:
    """Number of points in the cluster."""
    return self.length()

  def get_level(self) -> int:
    return self.level

  def contains(self, other: "OPTICSCluster") -> bool:
    return self.start <= other.start and other.end <= self.end

  def __repr__(self) -> str:
    return (f"{self.__class__.__name__}(start={self.start}, end={self.end}, "
            f"cluster_id={self.cluster_id}, level={self.level}, "
            f"children={len(self.children)})")


class OPTICSDBSCANCluster(OPTICSCluster):
  """
  A flat cluster from DBSCAN-style extraction.

  In core-only mode the range may contain points that were not assigned to
  the cluster, so the number of assigned points is stored separately.
  """

  def __init__(self, start: int, end: int, cluster_id: int,
               size: int) -> None:
    super().__init__(start, end, cluster_id)
    self._size = size

  def size(self) -> int:
    return self._size


def iter_clusters(hierarchy: Optional[Iterable[OPTICSCluster]]):
  """Yield every cluster depth-first, children before their parent."""
  if hierarchy is None: return
  for cluster in hierarchy:
    yield from iter_clusters(cluster.children)
    yield cluster

def overlap(start: int, end: int, start2: int, end2: int) -> bool:
  """Check if the inclusive ranges [start, end] and [start2, end2] overlap."""
  if start <= start2: return end >= start2
  return start <= end2
