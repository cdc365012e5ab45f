"""GDSC OPTICS analysis tool.

Computes the OPTICS ordering of 2D points with scikit-learn, extracts a
DBSCAN-style or Xi cluster hierarchy from the reachability profile, computes
cluster hulls and saves the per-point assignments and a reachability plot.
"""

import json
import math
import argparse
import logging
import numpy as np
import pandas as pd
from pathlib import Path

import matplotlib.pyplot as plt
from sklearn.cluster import OPTICS

import gdscconstants as GDSC_C
from gdscresult import OPTICSResult
from gdscplotter import reachability_plotter

from typing import Optional, Sequence, Any

def parse_arguments() -> argparse.Namespace:
  """Parse CLI arguments for the OPTICS analysis tool."""
  parser = argparse.ArgumentParser(
    description="GDSC OPTICS Clustering Tool")
  parser.add_argument(
    "-i", "--input", required=True, type=GDSC_C.is_file_path,
    help="JSON metadata file configuring the analysis"
  )
  parser.add_argument(
    "-m", "--min-pts", default=None, type=GDSC_C.is_positive_int,
    help="Override the metadata min_pts"
  )
  parser.add_argument(
    "-d", "--distance", default=None, type=GDSC_C.is_positive_float,
    help="Override the metadata generating_distance"
  )
  parser.add_argument(
    "-x", "--xi", default=None, type=GDSC_C.is_xi,
    help="Override the metadata xi"
  )
  parser.add_argument(
    "-v", "--verbose", action='store_true', default=False,
    help="Enable verbose output"
  )
  return parser.parse_args()

class OPTICSManager:
  """
  Computes the OPTICS ordering of 2D points.

  The ordering phase is delegated to sklearn.cluster.OPTICS. The returned
  OPTICSResult keeps the coordinates for convex hull computation.

  Parameters
  ----------
  x, y : array-like
    Point coordinates.
  verbose : bool, default=False
    Enable debug logging on the returned results.
  """

  def __init__(self,
               x: Sequence[float],
               y: Sequence[float],
               verbose: bool = False) -> None:
    self.x = np.asarray(x, dtype=float).ravel()
    self.y = np.asarray(y, dtype=float).ravel()
    if self.x.size != self.y.size: raise ValueError(
      f"Length of x ({self.x.size}) does not match y ({self.y.size})"
    )
    self.verbose = verbose

  def size(self) -> int:
    return int(self.x.size)

  def get_original_x(self, index: int) -> float:
    return float(self.x[index])

  def get_original_y(self, index: int) -> float:
    return float(self.y[index])

  def optics(self,
             generating_distance: float,
             min_pts: int = GDSC_C.DEFAULT_MIN_PTS) -> OPTICSResult:
    """
    Compute the OPTICS ordering.

    Parameters
    ----------
    generating_distance : float
      Maximum neighbourhood radius (inf for no limit).
    min_pts : int
      Minimum number of points (including the point itself) for a core
      point. Must be at least 2.

    Returns
    -------
    OPTICSResult
    """
    if min_pts < 2: raise ValueError(f"Min points must be >= 2: {min_pts}")
    if math.isnan(generating_distance) or generating_distance <= 0:
      raise ValueError(
        f"Generating distance must be strictly positive: "
        f"{generating_distance}")
    if self.size() < min_pts: raise ValueError(
      f"Fewer points ({self.size()}) than min points ({min_pts})"
    )
    model = OPTICS(min_samples=min_pts,
                   max_eps=generating_distance,
                   cluster_method="dbscan")
    model.fit(np.column_stack((self.x, self.y)))
    ordering = model.ordering_
    return OPTICSResult.from_arrays(
      parent=ordering,
      predecessor=model.predecessor_[ordering],
      core_distance=model.core_distances_[ordering],
      reachability_distance=model.reachability_[ordering],
      min_pts=min_pts,
      generating_distance=generating_distance,
      x=self.x,
      y=self.y,
      verbose=self.verbose)


class OPTICSAnalysis:
  """
  Orchestrates an OPTICS analysis configured by a metadata dictionary.

  Parameters
  ----------
  metadata : dict
    Configuration metadata (see the metadata_* properties).
  verbose : bool, optional
    Enable verbose logging output, by default False.
  """

  def __init__(self, metadata: dict[str, Any], verbose: bool = False):
    self._metadata = metadata or {}
    self.verbose = verbose
    self.logger = self._setup_logger()
    self.result: Optional[OPTICSResult] = None

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

  @property
  def metadata_points(self) -> Optional[Path]:
    """CSV file with the point coordinates."""
    value = self._metadata.get("points")
    return Path(value) if value is not None else None

  @property
  def metadata_x_col(self) -> str:
    return self._metadata.get("x_col", GDSC_C.X_STR)

  @property
  def metadata_y_col(self) -> str:
    return self._metadata.get("y_col", GDSC_C.Y_STR)

  @property
  def metadata_min_pts(self) -> int:
    return int(self._metadata.get("min_pts", GDSC_C.DEFAULT_MIN_PTS))

  @property
  def metadata_generating_distance(self) -> float:
    value = self._metadata.get("generating_distance")
    return float(value) if value is not None else math.inf

  @property
  def metadata_method(self) -> str:
    return self._metadata.get("method", GDSC_C.XI_STR)

  @property
  def metadata_xi(self) -> float:
    return float(self._metadata.get("xi", GDSC_C.DEFAULT_XI))

  @property
  def metadata_options(self) -> int:
    """Xi options given as a list of names (see XI_OPTIONS)."""
    return GDSC_C.combine_options(self._metadata.get("options", []))

  @property
  def metadata_upper_limit(self) -> Optional[float]:
    value = self._metadata.get("upper_limit")
    return float(value) if value is not None else None

  @property
  def metadata_lower_limit(self) -> Optional[float]:
    value = self._metadata.get("lower_limit")
    return float(value) if value is not None else None

  @property
  def metadata_dbscan_distance(self) -> Optional[float]:
    value = self._metadata.get("dbscan_distance")
    return float(value) if value is not None else None

  @property
  def metadata_core(self) -> bool:
    return bool(self._metadata.get("core", False))

  @property
  def metadata_hulls(self) -> bool:
    return bool(self._metadata.get("hulls", False))

  @property
  def metadata_output(self) -> Optional[Path]:
    value = self._metadata.get("output")
    return Path(value) if value is not None else None

  @property
  def metadata_plot(self) -> Optional[Path]:
    value = self._metadata.get("plot")
    return Path(value) if value is not None else None

  def _load_points(self) -> pd.DataFrame:
    if self.metadata_points is None:
      raise ValueError("Metadata must define the 'points' CSV file")
    df = pd.read_csv(GDSC_C.is_file_path(str(self.metadata_points)))
    for col in (self.metadata_x_col, self.metadata_y_col):
      if col not in df.columns: raise ValueError(f"Unknown column: {col}")
    return df

  def cluster(self, x: Sequence[float], y: Sequence[float]) -> OPTICSResult:
    """Compute the ordering and extract the configured clustering."""
    if self.metadata_method not in GDSC_C.EXTRACTION_METHODS:
      raise ValueError(f"Unknown method: {self.metadata_method}")
    distance = self.metadata_dbscan_distance
    if distance is None: distance = self.metadata_generating_distance
    if (self.metadata_method == GDSC_C.DBSCAN_STR and
        not math.isfinite(distance)): raise ValueError(
      "DBSCAN extraction requires a finite 'dbscan_distance' or "
      "'generating_distance'"
    )
    manager = OPTICSManager(x, y, verbose=self.verbose)
    result = manager.optics(self.metadata_generating_distance,
                            self.metadata_min_pts)
    if self.metadata_method == GDSC_C.DBSCAN_STR:
      result.extract_dbscan_clustering(distance, self.metadata_core)
    else:
      if self.metadata_upper_limit is not None:
        result.upper_limit = self.metadata_upper_limit
      if self.metadata_lower_limit is not None:
        result.lower_limit = self.metadata_lower_limit
      result.extract_clusters(self.metadata_xi, self.metadata_options)
    if self.metadata_hulls: result.compute_convex_hulls()
    self.logger.info(
      f"{self.metadata_method}: {result.get_number_of_clusters()} clusters, "
      f"{result.get_number_of_levels()} levels from {result.size()} points")
    self.result = result
    return result

  def assignments(self, df: pd.DataFrame) -> pd.DataFrame:
    """Per-point table of the ordering and cluster assignments."""
    if self.result is None: raise ValueError("Run cluster() first")
    result = self.result
    return pd.DataFrame({
      GDSC_C.X_STR: df[self.metadata_x_col].to_numpy(),
      GDSC_C.Y_STR: df[self.metadata_y_col].to_numpy(),
      GDSC_C.ORDER_STR: result.get_order(),
      GDSC_C.REACHABILITY_STR: result.get_reachability_distance(),
      GDSC_C.CORE_DISTANCE_STR: result.get_core_distance(),
      GDSC_C.PREDECESSOR_STR: result.get_predecessor(),
      GDSC_C.CLUSTER_STR: result.get_clusters(self.metadata_core),
      GDSC_C.TOP_LEVEL_STR: result.get_top_level_clusters(self.metadata_core),
    })

  def run(self) -> pd.DataFrame:
    """Load the points, cluster them and save the configured outputs."""
    df = self._load_points()
    self.cluster(df[self.metadata_x_col].to_numpy(),
                 df[self.metadata_y_col].to_numpy())
    table = self.assignments(df)
    if self.metadata_output is not None:
      table.to_csv(self.metadata_output, index=False)
      self.logger.info(f"Assignments saved to {self.metadata_output}")
    if self.metadata_plot is not None:
      plot = reachability_plotter(self.result)
      plot.savefig(self.metadata_plot)
      plt.close(plot.fig)
      self.logger.info(f"Reachability plot saved to {self.metadata_plot}")
    return table

def main(args: argparse.Namespace) -> None:
  """CLI entry point for the OPTICS analysis tool."""
  with open(args.input, 'r') as infile: metadata = json.load(infile)
  for key, value in (("min_pts", getattr(args, "min_pts", None)),
                     ("generating_distance", getattr(args, "distance", None)),
                     ("xi", getattr(args, "xi", None))):
    if value is not None: metadata[key] = value
  run = OPTICSAnalysis(metadata=metadata, verbose=args.verbose)
  run.run()

if __name__ == "__main__": main(parse_arguments())
