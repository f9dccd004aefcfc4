"""
Configuration for the DC cherry tree analysis.

Paths default to a local ``data/`` directory and can be overridden with
environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# ============================================================================
# PATHS
# ============================================================================

DATA_DIR = Path(os.getenv('CHERRY_DATA_DIR', 'data'))
TREES_CSV = Path(os.getenv('CHERRY_TREES_CSV', DATA_DIR / 'Urban_Forestry_Street_Trees.csv'))
BOUNDARIES_ZIP = Path(os.getenv('CHERRY_BOUNDARIES_ZIP', DATA_DIR / 'Neighborhood_Clusters.zip'))
OUTPUT_DIR = Path(os.getenv('CHERRY_OUTPUT_DIR', 'cherry_trees_output'))

# ============================================================================
# COLUMNS
# ============================================================================

LON_COL = 'longitude'
LAT_COL = 'latitude'
NAME_COL = 'common_name'
CULTIVAR_COL = 'cultivar_name'
REGION_COL = 'name'

CHERRY_COLUMNS = [LON_COL, LAT_COL, CULTIVAR_COL]

# Source column names accepted for each canonical column, tried in order.
COLUMN_ALIASES = {
    LON_COL: [LON_COL, 'LONGITUDE', 'long', 'lon', 'X', 'x'],
    LAT_COL: [LAT_COL, 'LATITUDE', 'lat', 'Y', 'y'],
    NAME_COL: [NAME_COL, 'CMMN_NM', 'COMMON_NAME', 'common', 'name'],
}

BOUNDARY_NAME_ALIASES = [REGION_COL, 'NAME', 'NBH_NAMES', 'Name', 'label']

BOUNDARY_CRS = 'EPSG:4326'

# ============================================================================
# FILTERING
# ============================================================================

CHERRY_KEYWORD = 'cherry'

# ============================================================================
# RENDERING
# ============================================================================


@dataclass
class MapCenter:
    """Fallback map centre (downtown Washington, DC)."""
    lat: float = 38.9072
    lon: float = -77.0369


MAP_TILES = 'cartodbpositron'
MAP_ZOOM = 12

BOUNDARY_COLOR = '#555555'
POINT_COLOR = '#d6336c'

# Cultivar layer colours, cycled when there are more cultivars than entries
CULTIVAR_PALETTE = [
    '#d6336c', '#f783ac', '#ae3ec9', '#7048e8', '#1c7ed6',
    '#0ca678', '#f59f00', '#e8590c', '#862e9c', '#495057',
]

# KDE needs a handful of distinct points per panel
MIN_KDE_POINTS = 3

# Number of cultivars that get their own map / panel
TOP_CULTIVARS = 6
