"""
Static cherry tree density maps (matplotlib + seaborn).
"""

import logging
import math
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .boundaries import boundary_vertices
from .config import BOUNDARY_COLOR, CULTIVAR_COL, LAT_COL, LON_COL, MIN_KDE_POINTS, POINT_COLOR
from .tree_records import group_counts

logger = logging.getLogger(__name__)


def draw_boundaries(ax, vertices: pd.DataFrame):
    """Outline every polygon ring on the axis."""
    for _, ring in vertices.groupby('part', sort=False):
        ax.plot(ring[LON_COL], ring[LAT_COL], color=BOUNDARY_COLOR, linewidth=0.6, alpha=0.8)


def draw_density(ax, points: pd.DataFrame, title: str):
    """KDE fill plus the points themselves."""
    # KDE is undefined for one point or zero spread
    distinct = points[[LON_COL, LAT_COL]].drop_duplicates()
    if len(distinct) >= MIN_KDE_POINTS and distinct[LON_COL].nunique() > 1 and distinct[LAT_COL].nunique() > 1:
        sns.kdeplot(
            data=points, x=LON_COL, y=LAT_COL,
            fill=True, cmap='RdPu', alpha=0.6, levels=10, thresh=0.05, ax=ax
        )

    if len(points) > 0:
        ax.scatter(points[LON_COL].astype(float), points[LAT_COL].astype(float), s=4, c=POINT_COLOR, alpha=0.5)
    else:
        ax.text(0.5, 0.5, 'No cherry trees', ha='center', va='center', fontsize=14, transform=ax.transAxes)
    ax.set_title(f"{title} ({len(points):,})", fontsize=12, fontweight='bold')
    ax.set_xlabel('Longitude')
    ax.set_ylabel('Latitude')
    ax.set_aspect('equal')


def plot_cherry_density(
    boundaries,
    cherries: pd.DataFrame,
    output_path: Path,
    by_cultivar: bool = False,
    cultivars: Optional[list] = None
) -> Path:
    """
    Render cherry tree density over the neighborhood outlines.

    Args:
        boundaries: Neighborhood GeoDataFrame
        cherries: Cherry records (longitude, latitude, cultivar_name)
        output_path: PNG file to write
        by_cultivar: One panel per cultivar instead of a single map
        cultivars: Cultivars to plot when by_cultivar (default: all, most
            common first)

    Returns:
        Path of the saved figure
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    sns.set_style('white')
    vertices = boundary_vertices(boundaries)

    if by_cultivar:
        if cultivars is None:
            counts = group_counts(cherries)
            cultivars = sorted(counts, key=counts.get, reverse=True)

        n_cols = min(3, max(len(cultivars), 1))
        n_rows = max(math.ceil(len(cultivars) / n_cols), 1)
        fig, axes = plt.subplots(n_rows, n_cols, figsize=(6 * n_cols, 6 * n_rows), squeeze=False)
        flat_axes = axes.ravel()

        for ax, cultivar in zip(flat_axes, cultivars):
            draw_boundaries(ax, vertices)
            draw_density(ax, cherries[cherries[CULTIVAR_COL] == cultivar], cultivar)

        for ax in flat_axes[len(cultivars):]:
            ax.axis('off')

        fig.suptitle('Cherry Tree Density by Cultivar', fontsize=16, fontweight='bold')
    else:
        fig, ax = plt.subplots(figsize=(10, 10))
        draw_boundaries(ax, vertices)
        draw_density(ax, cherries, 'Cherry Tree Density')

    plt.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Saved: {output_path}")
    return output_path
