"""
Cherry Tree Map Visualizer
Interactive folium maps of cherry trees over DC neighborhoods
"""

import logging
import re
from itertools import cycle
from pathlib import Path
from typing import Optional

import folium
import pandas as pd
from folium import plugins

from .config import (
    BOUNDARY_COLOR,
    CULTIVAR_COL,
    CULTIVAR_PALETTE,
    LAT_COL,
    LON_COL,
    MAP_TILES,
    MAP_ZOOM,
    POINT_COLOR,
    REGION_COL,
    MapCenter,
)
from .tree_records import group_counts

logger = logging.getLogger(__name__)


def map_center(cherries: pd.DataFrame) -> list:
    """Mean tree location, or downtown DC when there are no trees."""
    if len(cherries) == 0:
        center = MapCenter()
        return [center.lat, center.lon]
    return [cherries[LAT_COL].mean(), cherries[LON_COL].mean()]


def cultivar_colors(cherries: pd.DataFrame) -> dict:
    """Palette colour per cultivar, most common cultivar first."""
    counts = group_counts(cherries)
    ordered = sorted(counts, key=counts.get, reverse=True)
    return dict(zip(ordered, cycle(CULTIVAR_PALETTE)))


def add_boundaries(m: folium.Map, boundaries, neighborhood_counts: Optional[pd.DataFrame] = None):
    """Neighborhood polygons with name (and tree count) tooltips."""
    regions = boundaries
    fields = [REGION_COL]
    aliases = ['Neighborhood:']

    if neighborhood_counts is not None:
        regions = boundaries.merge(neighborhood_counts, on=REGION_COL, how='left')
        regions['tree_count'] = regions['tree_count'].fillna(0).astype(int)
        fields.append('tree_count')
        aliases.append('Cherry trees:')

    folium.GeoJson(
        regions,
        name='Neighborhoods',
        style_function=lambda feature: {
            'color': BOUNDARY_COLOR,
            'weight': 1,
            'fillColor': '#ffffff',
            'fillOpacity': 0.1,
        },
        highlight_function=lambda feature: {'weight': 3, 'fillOpacity': 0.3},
        tooltip=folium.GeoJsonTooltip(fields=fields, aliases=aliases),
    ).add_to(m)


def add_tree_markers(container, trees: pd.DataFrame, color: str = POINT_COLOR):
    """One circle marker per tree."""
    for _, tree in trees.iterrows():
        popup_text = f"""
        <b>Cultivar:</b> {tree[CULTIVAR_COL]}<br>
        <b>Location:</b> {tree[LAT_COL]:.5f}, {tree[LON_COL]:.5f}
        """
        folium.CircleMarker(
            location=[tree[LAT_COL], tree[LON_COL]],
            radius=4,
            color=color,
            fill=True,
            fillColor=color,
            fillOpacity=0.7,
            popup=folium.Popup(popup_text, max_width=220)
        ).add_to(container)


def create_cherry_map(
    boundaries,
    cherries: pd.DataFrame,
    output_path: Path,
    cluster: bool = True,
    by_cultivar: bool = False,
    neighborhood_counts: Optional[pd.DataFrame] = None,
    title: str = 'Cherry Trees of Washington, DC'
) -> folium.Map:
    """
    Create the interactive cherry tree map.

    Args:
        boundaries: Neighborhood GeoDataFrame
        cherries: Cherry records
        output_path: HTML file to write
        cluster: Group nearby markers with MarkerCluster
        by_cultivar: One toggleable layer per cultivar
        neighborhood_counts: Output of count_by_neighborhood, shown in tooltips
        title: Map title

    Returns:
        The folium.Map
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    m = folium.Map(location=map_center(cherries), zoom_start=MAP_ZOOM, tiles=MAP_TILES)
    add_boundaries(m, boundaries, neighborhood_counts)

    legend_rows = []
    if by_cultivar:
        colors = cultivar_colors(cherries)
        for cultivar, color in colors.items():
            trees = cherries[cherries[CULTIVAR_COL] == cultivar]
            group = folium.FeatureGroup(name=f'{cultivar} ({len(trees)})')
            target = plugins.MarkerCluster().add_to(group) if cluster else group
            add_tree_markers(target, trees, color)
            group.add_to(m)
            legend_rows.append((cultivar, color, len(trees)))
    else:
        group = folium.FeatureGroup(name=f'Cherry trees ({len(cherries)})')
        target = plugins.MarkerCluster().add_to(group) if cluster else group
        add_tree_markers(target, cherries)
        group.add_to(m)
        legend_rows.append(('Cherry tree', POINT_COLOR, len(cherries)))

    folium.LayerControl().add_to(m)

    entries = "\n".join(
        f'<div><span style="background: {color}; width: 12px; height: 12px; border-radius: 50%; '
        f'display: inline-block; margin-right: 8px;"></span>{name} ({count})</div>'
        for name, color, count in legend_rows
    )
    legend_html = f"""
    <div style="position: fixed; bottom: 50px; left: 50px; z-index: 1000;
                background-color: white; padding: 15px; border-radius: 8px;
                box-shadow: 0 2px 6px rgba(0,0,0,0.3); font-family: Arial; font-size: 12px;">
        <h4 style="margin: 0 0 10px 0;">Cultivars</h4>
        <div style="display: flex; flex-direction: column; gap: 4px;">
            {entries}
        </div>
    </div>
    """
    m.get_root().html.add_child(folium.Element(legend_html))

    title_html = f"""
    <div style="position: fixed; top: 10px; left: 50%; transform: translateX(-50%); z-index: 1000;
                background-color: white; padding: 10px 20px; border-radius: 8px;
                box-shadow: 0 2px 6px rgba(0,0,0,0.3); font-family: Arial;">
        <h3 style="margin: 0;">🌸 {title}</h3>
    </div>
    """
    m.get_root().html.add_child(folium.Element(title_html))

    m.save(str(output_path))
    logger.info(f"Map saved: {output_path}")

    return m


def safe_filename(name: str) -> str:
    return re.sub(r'[^A-Za-z0-9]+', '_', name).strip('_').lower() or 'unnamed'


def create_cultivar_maps(
    boundaries,
    cherries: pd.DataFrame,
    output_dir: Path,
    cultivars: Optional[list] = None,
    cluster: bool = True
) -> dict:
    """
    Write one separate map per cultivar.

    Returns:
        Dictionary mapping cultivar name to the HTML path
    """
    output_dir = Path(output_dir)

    if cultivars is None:
        counts = group_counts(cherries)
        cultivars = sorted(counts, key=counts.get, reverse=True)

    paths = {}
    used = set()
    for cultivar in cultivars:
        trees = cherries[cherries[CULTIVAR_COL] == cultivar]

        # "Yoshino Cherry" and "YOSHINO CHERRY" share a file name
        stem = safe_filename(cultivar)
        suffix = 1
        while stem in used:
            suffix += 1
            stem = f"{safe_filename(cultivar)}_{suffix}"
        used.add(stem)

        path = output_dir / f"{stem}.html"
        create_cherry_map(boundaries, trees, path, cluster=cluster, title=cultivar)
        paths[cultivar] = path

    return paths
