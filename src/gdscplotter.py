import numpy as np
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from pathlib import Path
from matplotlib import colormaps
from matplotlib.axes import Axes
from matplotlib.colors import BoundaryNorm

from typing import Optional, Tuple, Any

import gdscconstants as GDSC_C
from gdscresult import OPTICSResult

def labels_to_colormap(
    labels: np.ndarray) -> Tuple[np.ndarray, np.ndarray, Any, Any]:
  """
  Map arbitrary cluster ids to 0..K-1 for colormapping.

  Parameters
  ----------
  labels : np.ndarray
    Cluster ids array.

  Returns
  -------
  tuple
    (encoded_labels, unique_labels, colormap, norm)
  """
  unique = np.unique(labels)
  label_to_idx = {lab: i for i, lab in enumerate(unique)}
  encoded = np.vectorize(label_to_idx.get, otypes=[int])(labels)

  cmap = colormaps["Paired"].resampled(max(1, len(unique)))
  norm = BoundaryNorm(np.arange(-0.5, len(unique) + 0.5), cmap.N)
  return encoded, unique, cmap, norm

class plotter:
  def __init__(self, figsize=(12, 4), fig=None, ax=None, **kwargs) -> None:
    plt.rcParams.update({'font.size': 12})
    self.figsize = figsize
    if ax is not None:
      self.ax = ax
      self.fig = ax.figure
    else:
      self.fig = fig if fig else plt.figure(figsize=figsize,
                                            layout="compressed")
      self.ax = self.fig.add_subplot(111)
    self.output = None

  def savefig(self, output=None, **kwargs) -> None:
    if output is not None:
      self.output = output
    if self.output is not None:
      self.fig.savefig(Path(self.output), bbox_inches='tight', dpi=300,
                       **kwargs)
      print(f"Figure saved to {self.output}")

class reachability_plotter(plotter):
  """Bar plot of the reachability profile coloured by cluster id."""
  def __init__(self, result: OPTICSResult, convert=True, top_level=False,
               fig=None, ax=None, figsize=(12, 4),
               title="OPTICS Reachability Plot", output=None) -> None:
    super().__init__(figsize=figsize, fig=fig, ax=ax)
    reachability = result.get_reachability_distance_profile(convert)
    order = result.get_order() - 1
    clusters = (result.get_top_level_clusters() if top_level
                else result.get_clusters())
    labels = np.zeros(result.size(), dtype=int)
    labels[order] = clusters
    encoded, unique, cmap, norm = labels_to_colormap(labels)
    colors = [cmap(norm(e)) if lab != GDSC_C.NOISE else GDSC_C.NOISE_COLOR
              for e, lab in zip(encoded, labels)]
    self.ax.bar(np.arange(result.size()), reachability, width=1,
                color=colors, edgecolor='none')
    self.ax.set_xlabel("Sample ordering")
    self.ax.set_ylabel("Reachability distance")
    if title: self.ax.set_title(title)
    if output is not None: self.savefig(output=output)

class cluster_plotter(plotter):
  """Scatter plot of the points coloured by cluster id, with cluster hulls."""
  def __init__(self, result: OPTICSResult, x, y, hulls=True, fig=None,
               ax=None, figsize=(8, 8), point_size=20, alpha=0.7,
               title="OPTICS Clusters", output=None) -> None:
    super().__init__(figsize=figsize, fig=fig, ax=ax)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    labels = result.get_clusters()
    noise_mask = labels == GDSC_C.NOISE
    if np.any(noise_mask):
      self.ax.scatter(x[noise_mask], y[noise_mask], c=GDSC_C.NOISE_COLOR,
                      s=point_size, alpha=0.3, marker="x", label="Noise")
    if np.any(~noise_mask):
      encoded, unique, cmap, norm = labels_to_colormap(labels[~noise_mask])
      self.ax.scatter(x[~noise_mask], y[~noise_mask], c=encoded, cmap=cmap,
                      norm=norm, s=point_size, alpha=alpha)
    if hulls:
      result.compute_convex_hulls()
      for cluster in result.get_all_clusters():
        hull = result.get_convex_hull(cluster.cluster_id)
        if hull is None: continue
        self.ax.add_patch(mpatches.Polygon(
          np.column_stack((hull.x, hull.y)), closed=True, fill=False,
          edgecolor=GDSC_C.HULL_COLOR, linewidth=1 + cluster.level))
    self.ax.set_xlabel("X")
    self.ax.set_ylabel("Y")
    self.ax.set_aspect("equal", adjustable="datalim")
    if title: self.ax.set_title(title)
    if np.any(noise_mask): self.ax.legend()
    if output is not None: self.savefig(output=output)

def plot_reachability(result: OPTICSResult,
                      ax: Optional[Axes] = None,
                      **kwargs) -> Axes:
  """Draw the reachability plot on the axes and return them."""
  return reachability_plotter(result, ax=ax, **kwargs).ax
