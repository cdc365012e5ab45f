import os
import math
import argparse
from pathlib import Path

# A point not part of any cluster
NOISE = 0

# Xi extraction options (bit flags)
# Only return top-level clusters that do not contain other clusters
XI_OPTION_TOP_LEVEL = 1
# Do not correct the ends of steep up areas (matches the original algorithm)
XI_OPTION_NO_CORRECT = 2
# The first and last reachable points within a cluster must have a
# reachability equal or below the upper limit
XI_OPTION_UPPER_LIMIT = 4
# The first and last reachable points within a cluster must have a
# reachability equal or above the lower limit
XI_OPTION_LOWER_LIMIT = 8

XI_OPTIONS = {
  "top_level": XI_OPTION_TOP_LEVEL,
  "no_correct": XI_OPTION_NO_CORRECT,
  "upper_limit": XI_OPTION_UPPER_LIMIT,
  "lower_limit": XI_OPTION_LOWER_LIMIT,
}

# Collinearity tolerance for hull construction
HULL_TOLERANCE = 1e-10

# Initial capacity of the hull scratch buffer
SCRATCH_CAPACITY = 100

DEFAULT_MIN_PTS = 5
DEFAULT_XI = 0.03

# Strings
XI_STR = "xi"
DBSCAN_STR = "dbscan"
X_STR = "x"
Y_STR = "y"
CLUSTER_STR = "cluster"
TOP_LEVEL_STR = "top_level"
ORDER_STR = "order"
REACHABILITY_STR = "reachability"
CORE_DISTANCE_STR = "core_distance"
PREDECESSOR_STR = "predecessor"
EXTRACTION_METHODS = [XI_STR, DBSCAN_STR]

# Logging
LOG_FMT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# Colors
HULL_COLOR = "#163771"
NOISE_COLOR = "gray"

def combine_options(names: list[str]) -> int:
  """Combine Xi option names (see XI_OPTIONS) into a bit flag."""
  options = 0
  for name in names:
    if name not in XI_OPTIONS: raise ValueError(f"Unknown option: {name}")
    options |= XI_OPTIONS[name]
  return options

def is_file_path(string: str) -> Path:
  if os.path.isfile(string):
    return Path(os.path.abspath(string))
  else:
    raise FileNotFoundError(string)

def is_positive_int(string: str) -> int:
  value = int(string)
  if value < 1:
    raise argparse.ArgumentTypeError(f"Expected a positive integer: {string}")
  return value

def is_positive_float(string: str) -> float:
  value = float(string)
  if math.isnan(value) or value <= 0:
    raise argparse.ArgumentTypeError(f"Expected a positive number: {string}")
  return value

def is_xi(string: str) -> float:
  value = float(string)
  if not 0 < value < 1:
    raise argparse.ArgumentTypeError(f"Xi must be in (0, 1): {string}")
  return value
