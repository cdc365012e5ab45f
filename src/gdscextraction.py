"""
GDSC OPTICS Extraction Module
Cluster extraction from an OPTICS reachability profile.

Two extraction methods are provided:

- DBSCAN-style extraction: a flat clustering equivalent to DBSCAN run with a
  distance at or below the generating distance of the ordering.
- Xi extraction: a hierarchical clustering built from steep down and steep up
  areas of the reachability plot (Ankerst et al., 1999). The boundary
  corrections follow the ELKI OPTICSXi implementation.

Both methods commit cluster ids into the profile and return the clusters.
"""

import math

from typing import Tuple

from gdscconstants import (
  NOISE,
  XI_OPTION_TOP_LEVEL,
  XI_OPTION_NO_CORRECT,
  XI_OPTION_UPPER_LIMIT,
  XI_OPTION_LOWER_LIMIT,
)
from gdsccluster import OPTICSCluster, OPTICSDBSCANCluster
from gdscorder import OPTICSProfile

INF = math.inf

def extract_dbscan_clustering(
    profile: OPTICSProfile,
    generating_distance_e: float,
    core: bool = False) -> Tuple[list[OPTICSDBSCANCluster], int]:
  """
  Extract a DBSCAN clustering from the cluster ordered points.

  Parameters
  ----------
  profile : OPTICSProfile
    The reachability profile. Cluster ids are reset and reassigned.
  generating_distance_e : float
    The DBSCAN distance. Should not exceed the generating distance of the
    ordering.
  core : bool, default=False
    Only extend clusters with core points. Cluster ranges may then contain
    points left as noise.

  Returns
  -------
  tuple
    (clusters, number_of_clusters)
  """
  reachability = profile.reachability_distance
  core_distance = profile.core_distance
  cluster_ids = profile.cluster_id
  profile.reset_cluster_ids()

  clusters: list[OPTICSDBSCANCluster] = []
  cluster_id = NOISE
  next_cluster_id = NOISE
  start = end = size = 0
  for i in range(profile.size()):
    if reachability[i] > generating_distance_e:
      # Not connected to the previous point. The first point of the ordering
      # has an undefined (infinite) reachability.
      if core_distance[i] <= generating_distance_e:
        if size != 0:
          clusters.append(
            OPTICSDBSCANCluster(start, end, cluster_id, size))
        next_cluster_id += 1
        cluster_id = next_cluster_id
        cluster_ids[i] = cluster_id
        start = end = i
        size = 1
      else:
        # Noise: nothing more joins the current cluster
        if size != 0:
          clusters.append(
            OPTICSDBSCANCluster(start, end, cluster_id, size))
          size = 0
        cluster_id = NOISE
    else:
      if cluster_id == NOISE: continue
      if not core or core_distance[i] <= generating_distance_e:
        end = i
        size += 1
        cluster_ids[i] = cluster_id

  if size != 0:
    clusters.append(OPTICSDBSCANCluster(start, end, cluster_id, size))
  return clusters, next_cluster_id


class SteepArea:
  """A steep area of the reachability plot spanning [start, end]."""

  def __init__(self, start: int, end: int, maximum: float) -> None:
    self.start = start
    self.end = end
    self.maximum = maximum


class SteepDownArea(SteepArea):
  """
  Steep down area. `maximum` is the reachability at the start; `mib` is the
  maximum reachability seen between the end of the area and the current scan
  position.
  """

  def __init__(self, start: int, end: int, maximum: float) -> None:
    super().__init__(start, end, maximum)
    self.mib = 0.0

  def __repr__(self) -> str:
    return (f"SDA s={self.start}, e={self.end}, max={self.maximum:f}, "
            f"mib={self.mib:f}")


class SteepUpArea(SteepArea):
  """Steep up area. `maximum` is the reachability of the successor."""

  def __repr__(self) -> str:
    return f"SUA s={self.start}, e={self.end}, max={self.maximum:f}"


def _steep_up(i: int, r: list[float], ixi: float) -> bool:
  """Check r[i] is xi-significantly lower than r[i + 1]."""
  if r[i] == INF: return False
  if i + 1 >= len(r): return True
  return r[i] <= r[i + 1] * ixi

def _steep_down(i: int, r: list[float], ixi: float) -> bool:
  """Check r[i] is xi-significantly higher than r[i + 1]."""
  if i + 1 >= len(r): return False
  if r[i + 1] == INF: return False
  return r[i] * ixi >= r[i + 1]

def _next_reachability(i: int, r: list[float]) -> float:
  return r[i + 1] if i + 1 < len(r) else INF

def _update_filter_sda_set(mib: float,
                           sdas: list[SteepDownArea],
                           ixi: float) -> None:
  """
  Remove steep down areas whose start multiplied by (1 - xi) is below the
  global mib, then raise the mib of the survivors.
  """
  threshold = mib / ixi
  sdas[:] = [sda for sda in sdas if not sda.maximum < threshold]
  for sda in sdas:
    if mib > sda.mib: sda.mib = mib

def extract_xi_clusters(profile: OPTICSProfile,
                        min_pts: int,
                        xi: float,
                        options: int = 0,
                        upper_limit: float = INF,
                        lower_limit: float = 0.0) -> list[OPTICSCluster]:
  """
  Extract clusters from the reachability profile using the Xi method.

  Parameters
  ----------
  profile : OPTICSProfile
    The reachability profile. Cluster ids are reset and reassigned.
  min_pts : int
    Minimum cluster size. Should match the value used for the ordering.
  xi : float
    Steepness in (0, 1). Higher values find only the most significant
    clusters.
  options : int, default=0
    Bit flags of XI_OPTION_* values.
  upper_limit : float, default=inf
    Used with XI_OPTION_UPPER_LIMIT.
  lower_limit : float, default=0
    Used with XI_OPTION_LOWER_LIMIT.

  Returns
  -------
  list[OPTICSCluster]
    Root clusters of the hierarchy (in top-level mode there are no children).
  """
  if not 0 < xi < 1: raise ValueError(f"Xi must be in (0, 1): {xi}")
  top_level = (options & XI_OPTION_TOP_LEVEL) != 0
  no_correct = (options & XI_OPTION_NO_CORRECT) != 0
  use_upper = (options & XI_OPTION_UPPER_LIMIT) != 0 and upper_limit < INF
  use_lower = (options & XI_OPTION_LOWER_LIMIT) != 0 and lower_limit > 0

  # NaN is not expected; +inf marks points with no reachability distance
  r: list[float] = profile.reachability_profile(False).tolist()
  parent: list[int] = profile.parent.tolist()
  predecessor: list[int] = profile.predecessor.tolist()
  cluster_ids = profile.cluster_id
  profile.reset_cluster_ids()

  sdas: list[SteepDownArea] = []
  clusters: list[OPTICSCluster] = []
  size = len(r)
  ixi = 1 - xi
  index = 0
  mib = 0.0
  cluster_id = NOISE
  while index < size:
    mib = max(mib, r[index])
    # The last point cannot start a steep area
    if index + 1 >= size: break

    if _steep_down(index, r, ixi):
      # The first reachable point must be within the limits
      if use_upper and r[index + 1] > upper_limit:
        index += 1
        continue
      if use_lower and r[index + 1] < lower_limit:
        index += 1
        continue

      _update_filter_sda_set(mib, sdas, ixi)
      start_value = r[index]
      mib = 0.0
      start_steep = index
      end_steep = index + 1
      index += 1
      while index < size:
        if _steep_down(index, r, ixi):
          end_steep = index + 1
          index += 1
          continue
        # Stop if not going downward or after min_pts of non steep area
        if not _steep_down(index, r, 1) or index - end_steep > min_pts:
          break
        index += 1
      sdas.append(SteepDownArea(start_steep, end_steep, start_value))
      continue

    if not _steep_up(index, r, ixi):
      index += 1
      continue

    # The last reachable point must be within the limits
    if use_upper and r[index] > upper_limit:
      index += 1
      continue
    if use_lower and r[index] < lower_limit:
      index += 1
      continue

    _update_filter_sda_set(mib, sdas, ixi)
    start_steep = index
    end_steep = index + 1
    mib = r[index]
    e_successor = _next_reachability(index, r)
    if e_successor != INF:
      index += 1
      while index < size:
        if _steep_up(index, r, ixi):
          # Going up so only the upper limit can be crossed
          if use_upper and r[index] > upper_limit: break
          end_steep = index + 1
          mib = r[index]
          e_successor = _next_reachability(index, r)
          if e_successor == INF:
            end_steep -= 1
            break
          index += 1
          continue
        # Stop if not going upward or after min_pts of non steep area
        if not _steep_up(index, r, 1) or index - end_steep > min_pts:
          break
        index += 1
    else:
      end_steep -= 1
      index += 1
    sua = SteepUpArea(start_steep, end_steep, e_successor)

    # mib holds the reachability at the end of the steep up area
    threshold = mib * ixi
    for sda in reversed(sdas):
      # All points between the areas must be below the end-of-steep-up
      # reachability scaled by (1 - xi)
      if sda.mib > threshold: continue

      cstart = sda.start
      cend = sua.end

      # Never end a cluster on infinity-reachable points
      if not no_correct:
        while cend > cstart and r[cend] == INF:
          cend -= 1

      if sda.maximum * ixi >= sua.maximum:
        while cstart < cend and r[cstart + 1] > sua.maximum:
          cstart += 1
      elif sua.maximum * ixi >= sda.maximum:
        while cend > cstart and r[cend - 1] > sda.maximum:
          cend -= 1

      # The predecessor of the end point must be inside the cluster
      if not no_correct:
        while cend > cstart:
          if predecessor[cend] in parent[cstart:cend]: break
          cend -= 1

      if cend - cstart + 1 < min_pts: continue

      cluster_id += 1
      nested = [c for c in clusters if cstart <= c.start and c.end <= cend]
      clusters = [c for c in clusters
                  if not (cstart <= c.start and c.end <= cend)]
      if top_level:
        # Absorb nested clusters and take the lowest of their ids
        cluster_id = min([cluster_id] + [c.cluster_id for c in nested])
        cluster = OPTICSCluster(cstart, cend, cluster_id)
        cluster_ids[cstart:cend + 1] = cluster_id
      else:
        cluster = OPTICSCluster(cstart, cend, cluster_id)
        # Points already in a nested cluster keep the narrower cluster id
        segment = cluster_ids[cstart:cend + 1]
        segment[segment == NOISE] = cluster_id
        for child in nested:
          cluster.add_child_cluster(child)
      clusters.append(cluster)

  return clusters
