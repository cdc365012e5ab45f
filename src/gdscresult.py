"""
GDSC OPTICS Result Module
Result of the OPTICS algorithm: the reachability profile, the cluster
hierarchy extracted from it and the convex hulls of each cluster.

Query results are snapshots. Running a new extraction, resetting or
scrambling the cluster ids invalidates arrays returned earlier.
"""

import math
import logging
import numpy as np

from matplotlib.transforms import Bbox

from typing import Optional, Sequence, Any

import gdscconstants as GDSC_C
from gdscconstants import NOISE
from gdsccluster import (
  OPTICSCluster,
  OPTICSDBSCANCluster,
  iter_clusters,
  overlap,
)
from gdscorder import OPTICSOrder, OPTICSProfile
from gdschull import ConvexHull, ScratchSpace
from gdscextraction import extract_dbscan_clustering, extract_xi_clusters

EMPTY = np.zeros(0, dtype=int)

class OPTICSResult:
  """
  Contains the result of the OPTICS algorithm.

  Parameters
  ----------
  orders : sequence of OPTICSOrder
    The cluster ordering.
  min_pts : int
    The min points for a core object.
  generating_distance : float
    The generating distance for a core object.
  x, y : array-like, optional
    Coordinates of the original input points. Required for convex hulls.
  verbose : bool, default=False
    Enable debug logging.

  Attributes
  ----------
  min_pts : int
  generating_distance : float
  logger : logging.Logger
  """

  def __init__(self,
               orders: Sequence[OPTICSOrder],
               min_pts: int,
               generating_distance: float,
               x: Optional[Sequence[float]] = None,
               y: Optional[Sequence[float]] = None,
               verbose: bool = False) -> None:
    self._init(OPTICSProfile.from_orders(orders, generating_distance),
               min_pts, x, y, verbose)

  @classmethod
  def from_arrays(cls,
                  parent: Sequence[int],
                  predecessor: Sequence[int],
                  core_distance: Sequence[float],
                  reachability_distance: Sequence[float],
                  min_pts: int,
                  generating_distance: float,
                  x: Optional[Sequence[float]] = None,
                  y: Optional[Sequence[float]] = None,
                  verbose: bool = False) -> "OPTICSResult":
    """Create the result from parallel arrays given in OPTICS order."""
    result = cls.__new__(cls)
    result._init(OPTICSProfile(parent, predecessor, core_distance,
                               reachability_distance, generating_distance),
                 min_pts, x, y, verbose)
    return result

  def _init(self,
            profile: OPTICSProfile,
            min_pts: int,
            x: Optional[Sequence[float]],
            y: Optional[Sequence[float]],
            verbose: bool) -> None:
    if min_pts < 1: raise ValueError(f"Min points must be positive: {min_pts}")
    self.min_pts = int(min_pts)
    self.generating_distance = profile.generating_distance
    self._profile = profile
    self._x: Optional[np.ndarray] = None
    self._y: Optional[np.ndarray] = None
    if x is not None or y is not None:
      if x is None or y is None:
        raise ValueError("Both x and y coordinates are required")
      self._x = np.asarray(x, dtype=float)
      self._y = np.asarray(y, dtype=float)
      if self._x.size != profile.size() or self._y.size != profile.size():
        raise ValueError(
          f"Coordinates ({self._x.size}, {self._y.size}) do not match the "
          f"number of points ({profile.size()})")
    self._clustering: Optional[list[OPTICSCluster]] = None
    self._hulls: Optional[list[Optional[ConvexHull]]] = None
    self._bounds: Optional[list[Optional[Bbox]]] = None
    self._upper_limit = math.inf
    self._lower_limit = 0.0
    self.verbose = verbose
    self.logger = self._setup_logger()

  def _setup_logger(self) -> logging.Logger:
    """Configure and return a class-level logger."""
    logger = logging.getLogger(self.__class__.__name__)
    if not logger.handlers:
      handler = logging.StreamHandler()
      formatter = logging.Formatter(fmt=GDSC_C.LOG_FMT,
                                    datefmt=GDSC_C.LOG_DATE_FMT)
      handler.setFormatter(formatter)
      logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)
    logger.propagate = False
    return logger

  # ---------------------------------------------------------------------------
  # Reachability profile
  # ---------------------------------------------------------------------------
  def size(self) -> int:
    return self._profile.size()

  def __len__(self) -> int:
    return self.size()

  def get(self, index: int) -> OPTICSOrder:
    return self._profile.get(index)

  def get_reachability_distance_profile(self,
                                        convert: bool = False) -> np.ndarray:
    """
    Reachability distances in OPTICS order.

    Parameters
    ----------
    convert : bool, default=False
      Replace undefined (+inf) distances with the generating distance.
    """
    return self._profile.reachability_profile(convert)

  def get_reachability_distance(self, convert: bool = False) -> np.ndarray:
    """Reachability distances in the original input order."""
    return self._profile.to_original(
      self._profile.reachability_profile(convert))

  def get_core_distance_profile(self, convert: bool = False) -> np.ndarray:
    """Core distances in OPTICS order."""
    return self._profile.core_distance_profile(convert)

  def get_core_distance(self, convert: bool = False) -> np.ndarray:
    """Core distances in the original input order."""
    return self._profile.to_original(
      self._profile.core_distance_profile(convert))

  def get_order(self) -> np.ndarray:
    """OPTICS position (1-based) of each original input point."""
    return self._profile.order()

  def get_predecessor(self) -> np.ndarray:
    """Predecessor of each original input point."""
    return self._profile.to_original(self._profile.predecessor)

  # ---------------------------------------------------------------------------
  # Cluster hierarchy
  # ---------------------------------------------------------------------------
  def reset_cluster_ids(self) -> None:
    """Reset cluster ids to NOISE and drop the hierarchy and hulls."""
    self._profile.reset_cluster_ids()
    self._clustering = None
    self._hulls = None
    self._bounds = None

  def get_clustering_hierarchy(self) -> Optional[list[OPTICSCluster]]:
    """Root clusters of the last extraction (None if no extraction ran)."""
    return self._clustering

  def get_all_clusters(self) -> list[OPTICSCluster]:
    """All clusters, depth-first with children before their parent."""
    return list(iter_clusters(self._clustering))

  def get_number_of_clusters(self) -> int:
    return sum(1 for _ in iter_clusters(self._clustering))

  def get_number_of_levels(self) -> int:
    if self._clustering is None: return 0
    return max((c.level for c in self._clustering), default=0) + 1

  def _max_cluster_id(self) -> int:
    return max((c.cluster_id for c in iter_clusters(self._clustering)),
               default=0)

  def scramble_clusters(self, rng: Optional[Any] = None) -> None:
    """
    Renumber the cluster ids randomly within each hierarchy level.

    Ids of level 0 clusters come first, then level 1, and so on.

    Parameters
    ----------
    rng : object with a shuffle(sequence) method, optional
      E.g. numpy.random.Generator or random.Random. Defaults to a new
      numpy Generator.
    """
    self._hulls = None
    self._bounds = None
    clusters = self.get_all_clusters()
    if not clusters: return
    if rng is None: rng = np.random.default_rng()

    levels: list[list[int]] = [[] for _ in range(self.get_number_of_levels())]
    for c in clusters: levels[c.level].append(c.cluster_id)

    mapping = np.zeros(self._max_cluster_id() + 1, dtype=int)
    next_id = 1
    for ids in levels:
      rng.shuffle(ids)
      for cluster_id in ids:
        mapping[cluster_id] = next_id
        next_id += 1

    cluster_ids = self._profile.cluster_id
    assigned = cluster_ids > NOISE
    cluster_ids[assigned] = mapping[cluster_ids[assigned]]
    for c in clusters: c.cluster_id = int(mapping[c.cluster_id])
    self.logger.debug(f"Scrambled {len(clusters)} clusters over "
                      f"{len(levels)} levels")

  def get_clusters(self, core: bool = False) -> np.ndarray:
    """
    Cluster id of each original input point.

    Parameters
    ----------
    core : bool, default=False
      Only report the cluster of core points; other points are NOISE.
    """
    cluster_ids = self._profile.cluster_id.copy()
    if core: cluster_ids[~self._profile.is_core_point()] = NOISE
    return self._profile.to_original(cluster_ids)

  def get_top_level_clusters(self, core: bool = False) -> np.ndarray:
    """
    Top-level cluster id of each original input point.

    Parameters
    ----------
    core : bool, default=False
      Only report the cluster of core points; other points are NOISE.
    """
    cluster_ids = np.full(self.size(), NOISE, dtype=int)
    for c in self._clustering or []:
      cluster_ids[c.start:c.end + 1] = c.cluster_id
    if core: cluster_ids[~self._profile.is_core_point()] = NOISE
    return self._profile.to_original(cluster_ids)

  def get_clusters_from_order(self,
                              start: int,
                              end: int,
                              include_children: bool = False) -> np.ndarray:
    """
    Cluster ids covering a range of OPTICS order values.

    Order values are 1-based: start=10, end=15 covers profile positions 9 to
    14 inclusive. The range is clipped to the profile.

    Parameters
    ----------
    start, end : int
      Inclusive range of order values.
    include_children : bool, default=False
      Also include nested cluster ids (else only top-level ids).

    Returns
    -------
    np.ndarray
      Cluster ids; empty if no clusters exist or the range misses the
      profile.
    """
    if self._clustering is None: return EMPTY.copy()
    if end < start: end = start
    if start > self.size() or end < 1: return EMPTY.copy()

    start = max(0, start - 1)
    end = min(self.size() - 1, end - 1)
    single = start == end

    clusters: list[int] = []
    for cluster in self._clustering:
      if overlap(cluster.start, cluster.end, start, end):
        clusters.append(cluster.cluster_id)
        if include_children:
          clusters.extend(c.cluster_id for c in iter_clusters(cluster.children))
        if single: break
    return np.asarray(clusters, dtype=int)

  def get_parents(self, cluster_ids: Optional[Sequence[int]]) -> np.ndarray:
    """
    Original input indices of the points in the given clusters.

    Points are grouped in the order the cluster ids are given. A cluster
    includes the points of its nested clusters.
    """
    if cluster_ids is None or not self._clustering: return EMPTY.copy()
    cluster_ids = [int(c) for c in cluster_ids]
    parent = self._profile.parent
    assigned = self._profile.cluster_id
    n_clusters = self.get_number_of_clusters()

    if isinstance(self._clustering[0], OPTICSDBSCANCluster):
      # No hierarchy: collect each requested cluster in turn
      parents: list[np.ndarray] = []
      if len(cluster_ids) == 1:
        parents.append(parent[assigned == cluster_ids[0]][::-1])
      else:
        seen: set[int] = set()
        for cluster_id in cluster_ids:
          if 0 < cluster_id <= n_clusters and cluster_id not in seen:
            seen.add(cluster_id)
            parents.append(parent[assigned == cluster_id][::-1])
      if not parents: return EMPTY.copy()
      return np.concatenate(parents).astype(int)

    # Rank of each id so the output follows the requested order
    ids: dict[int, int] = {}
    for rank, cluster_id in enumerate(cluster_ids):
      if 0 < cluster_id <= n_clusters: ids.setdefault(cluster_id, rank)
    parents = []
    ranks: list[np.ndarray] = []
    self._add_parents(self._clustering, ids, parents, ranks)
    if not parents: return EMPTY.copy()
    parent_ids = np.concatenate(parents)
    order = np.argsort(np.concatenate(ranks), kind="stable")
    return parent_ids[order].astype(int)

  def _add_parents(self,
                   hierarchy: list[OPTICSCluster],
                   ids: dict[int, int],
                   parents: list[np.ndarray],
                   ranks: list[np.ndarray]) -> None:
    for cluster in hierarchy:
      if cluster.cluster_id in ids:
        block = self._profile.parent[cluster.start:cluster.end + 1]
        parents.append(block)
        ranks.append(np.full(block.size, ids[cluster.cluster_id]))
        if len(ids) == 1: return
        # Nested ids are already covered by this cluster
        for c in iter_clusters([cluster]): ids.pop(c.cluster_id, None)
        if not ids: return
      else:
        self._add_parents(cluster.children, ids, parents, ranks)

  # ---------------------------------------------------------------------------
  # Convex hulls
  # ---------------------------------------------------------------------------
  def has_convex_hulls(self) -> bool:
    return self._hulls is not None

  def compute_convex_hulls(self) -> None:
    """
    Compute the convex hull and bounds of each cluster, smallest first.

    A cluster hull includes the points of its children. Children without a
    hull contribute all their points.
    """
    if self.has_convex_hulls(): return
    if self._clustering is None: return
    if self._x is None or self._y is None:
      raise ValueError("Convex hulls require the original coordinates")
    n_clusters = self._max_cluster_id()
    hulls: list[Optional[ConvexHull]] = [None] * n_clusters
    bounds: list[Optional[Bbox]] = [None] * n_clusters
    self._hulls = hulls
    self._bounds = bounds
    self._compute_convex_hulls(self._clustering,
                               ScratchSpace(GDSC_C.SCRATCH_CAPACITY))
    self.logger.debug(
      f"Computed {sum(h is not None for h in hulls)}/{n_clusters} hulls")

  def _compute_convex_hulls(self,
                            hierarchy: list[OPTICSCluster],
                            scratch: ScratchSpace) -> None:
    parent = self._profile.parent
    assigned = self._profile.cluster_id
    for c in hierarchy:
      self._compute_convex_hulls(c.children, scratch)

      # Points at this level of the hierarchy
      block = slice(c.start, c.end + 1)
      own = parent[block][assigned[block] == c.cluster_id]
      n_points = own.size
      child_hulls = [self.get_convex_hull(child.cluster_id)
                     for child in c.children]
      for child, hull in zip(c.children, child_hulls):
        n_points += hull.size() if hull is not None else child.length()

      scratch.resize(n_points)
      scratch.add(self._x[own], self._y[own])
      for child, hull in zip(c.children, child_hulls):
        if hull is not None:
          scratch.add(hull.x, hull.y)
        else:
          # Hull computation failed under this cluster so use all points
          points = parent[child.start:child.end + 1]
          scratch.add(self._x[points], self._y[points])

      self._bounds[c.cluster_id - 1] = scratch.get_bounds()
      hull = scratch.get_convex_hull()
      if hull is not None:
        self._hulls[c.cluster_id - 1] = hull
      else:
        self.logger.debug(
          f"No hull for cluster {c.cluster_id}: n={scratch.n}")

  def get_convex_hull(self, cluster_id: int) -> Optional[ConvexHull]:
    """Convex hull of the cluster (None if not available)."""
    if self._hulls is None or not 0 < cluster_id <= len(self._hulls):
      return None
    return self._hulls[cluster_id - 1]

  def get_bounds(self, cluster_id: int) -> Optional[Bbox]:
    """Bounding box of the cluster points (None if not available)."""
    if self._bounds is None or not 0 < cluster_id <= len(self._bounds):
      return None
    return self._bounds[cluster_id - 1]

  # ---------------------------------------------------------------------------
  # Extraction
  # ---------------------------------------------------------------------------
  def extract_dbscan_clustering(self,
                                generating_distance_e: float,
                                core: bool = False) -> int:
    """
    Extract a DBSCAN clustering from the cluster ordering.

    Parameters
    ----------
    generating_distance_e : float
      The DBSCAN distance. Must not exceed the generating distance.
    core : bool, default=False
      Only extend clusters with core points.

    Returns
    -------
    int
      Number of clusters.
    """
    if generating_distance_e > self.generating_distance:
      self.logger.warning(
        f"Distance {generating_distance_e} is above the generating distance "
        f"{self.generating_distance}")
    self.reset_cluster_ids()
    clusters, n_clusters = extract_dbscan_clustering(
      self._profile, generating_distance_e, core)
    self._clustering = clusters
    self.logger.debug(f"DBSCAN extraction (e={generating_distance_e}, "
                      f"core={core}): {n_clusters} clusters")
    return n_clusters

  def extract_clusters(self, xi: float, options: int = 0) -> None:
    """
    Extract a cluster hierarchy from the reachability profile.

    Parameters
    ----------
    xi : float
      Steepness in (0, 1). Higher values find only the most significant
      clusters, lower values less significant clusters.
    options : int, default=0
      Bit flags of XI_OPTION_* values.
    """
    self.reset_cluster_ids()
    self._clustering = extract_xi_clusters(
      self._profile, self.min_pts, xi, options,
      self._upper_limit, self._lower_limit)
    self.logger.debug(f"Xi extraction (xi={xi}, options={options}): "
                      f"{self.get_number_of_clusters()} clusters, "
                      f"{self.get_number_of_levels()} levels")

  @property
  def upper_limit(self) -> float:
    """Upper reachability limit for Xi extraction."""
    return self._upper_limit

  @upper_limit.setter
  def upper_limit(self, value: float) -> None:
    if math.isnan(value) or value <= 0: value = math.inf
    self._upper_limit = value

  @property
  def lower_limit(self) -> float:
    """Lower reachability limit for Xi extraction."""
    return self._lower_limit

  @lower_limit.setter
  def lower_limit(self, value: float) -> None:
    if math.isnan(value): value = 0.0
    self._lower_limit = value

  def __repr__(self) -> str:
    return (f"OPTICSResult(size={self.size()}, min_pts={self.min_pts}, "
            f"generating_distance={self.generating_distance})")
