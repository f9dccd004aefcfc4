"""
Neighborhood boundary loading and spatial join.

The boundary shapefile ships as a zip archive; it is unpacked into a scratch
directory, read with geopandas and reprojected to WGS84.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd

from .config import BOUNDARY_CRS, BOUNDARY_NAME_ALIASES, LAT_COL, LON_COL, REGION_COL
from .tree_records import ParseError

# rebuild a missing .shx index instead of failing
os.environ.setdefault('SHAPE_RESTORE_SHX', 'YES')

logger = logging.getLogger(__name__)

VERTEX_COLUMNS = [REGION_COL, 'part', 'order', LON_COL, LAT_COL]


def read_archive(archive_path: Path, target: Path) -> tuple:
    """Unpack the archive into target and read its shapefile."""
    target.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path) as zf:
            zf.extractall(target)
    except zipfile.BadZipFile as e:
        raise ParseError(f"Boundary archive is not a readable zip file: {archive_path}") from e

    # .SHP as well as .shp
    shapefiles = sorted(p for p in target.rglob('*') if p.is_file() and p.suffix.lower() == '.shp')
    if not shapefiles:
        raise ParseError(f"No shapefile found in {archive_path}")
    if len(shapefiles) > 1:
        logger.warning(f"{len(shapefiles)} shapefiles in archive, using {shapefiles[0].name}")

    try:
        gdf = gpd.read_file(shapefiles[0])
    except Exception as e:
        raise ParseError(f"Cannot read shapefile {shapefiles[0].name}: {e}") from e

    return gdf, shapefiles[0].name


def load_boundaries(
    archive_path,
    name_aliases: Optional[list] = None,
    scratch_dir: Optional[Path] = None
) -> gpd.GeoDataFrame:
    """
    Load neighborhood polygons from a zipped shapefile.

    Args:
        archive_path: Path to the zip archive
        name_aliases: Accepted names for the region name column
        scratch_dir: Where to unpack the archive (default: temporary
            directory). The archive goes into a '<archive stem>' subdirectory
            that is emptied first.

    Returns:
        GeoDataFrame with 'name' and 'geometry' columns in EPSG:4326

    Raises:
        FileNotFoundError: If the archive doesn't exist
        ParseError: If the archive or shapefile is corrupt, the archive holds
            no shapefile or the shapefile has no name column
    """
    if name_aliases is None:
        name_aliases = BOUNDARY_NAME_ALIASES

    archive_path = Path(archive_path)
    logger.info(f"Loading boundaries from: {archive_path}")

    if not archive_path.exists():
        raise FileNotFoundError(f"Boundary archive not found: {archive_path}")

    if scratch_dir is None:
        with tempfile.TemporaryDirectory() as tmp:
            gdf, shp_name = read_archive(archive_path, Path(tmp))
    else:
        target = Path(scratch_dir) / archive_path.stem
        # no stale files from an earlier run
        if target.exists():
            shutil.rmtree(target)
        gdf, shp_name = read_archive(archive_path, target)

    name_col = next((col for col in name_aliases if col in gdf.columns), None)
    if name_col is None:
        raise ParseError(f"No region name column in {shp_name} (found: {list(gdf.columns)})")

    # CRS
    if gdf.crs is None:
        gdf = gdf.set_crs(BOUNDARY_CRS)
    gdf = gdf.to_crs(BOUNDARY_CRS)

    gdf = gdf.rename(columns={name_col: REGION_COL})[[REGION_COL, 'geometry']]
    gdf[REGION_COL] = gdf[REGION_COL].astype(str)

    # repair self-intersections
    invalid = ~gdf.is_valid
    if invalid.any():
        logger.info(f"Repairing {invalid.sum()} invalid geometries")
        gdf.loc[invalid, 'geometry'] = gdf.loc[invalid, 'geometry'].buffer(0)

    gdf = gdf.reset_index(drop=True)
    logger.info(f"Loaded {len(gdf)} regions")
    return gdf


def boundary_vertices(boundaries: gpd.GeoDataFrame) -> pd.DataFrame:
    """
    Flatten polygons into ordered (longitude, latitude) vertices.

    Each ring of each polygon part gets its own 'part' id
    ("<region>.<polygon>.<ring>"); 'order' is the vertex position in the ring.
    """
    rows = []
    for region_idx, (name, geom) in enumerate(zip(boundaries[REGION_COL], boundaries.geometry)):
        if geom is None or geom.is_empty:
            continue
        if geom.geom_type == 'Polygon':
            polygons = [geom]
        elif geom.geom_type == 'MultiPolygon':
            polygons = list(geom.geoms)
        else:
            logger.warning(f"Skipping {geom.geom_type} geometry for region {name}")
            continue

        for poly_idx, polygon in enumerate(polygons):
            rings = [polygon.exterior, *polygon.interiors]
            for ring_idx, ring in enumerate(rings):
                part = f"{region_idx}.{poly_idx}.{ring_idx}"
                for order, coord in enumerate(ring.coords):
                    rows.append((name, part, order, coord[0], coord[1]))

    return pd.DataFrame(rows, columns=VERTEX_COLUMNS)


def count_by_neighborhood(boundaries: gpd.GeoDataFrame, cherries: pd.DataFrame) -> pd.DataFrame:
    """
    Count cherry trees inside each neighborhood.

    Regions without trees are kept with a count of 0. Sorted by count,
    largest first.
    """
    regions = pd.DataFrame({REGION_COL: boundaries[REGION_COL].drop_duplicates().to_numpy()})

    if len(cherries) == 0:
        regions['tree_count'] = 0
        return regions

    points = gpd.GeoDataFrame(
        cherries,
        geometry=gpd.points_from_xy(cherries[LON_COL], cherries[LAT_COL]),
        crs=BOUNDARY_CRS
    )
    if boundaries.crs is not None and boundaries.crs != points.crs:
        points = points.to_crs(boundaries.crs)

    # spatial join: tree -> containing region
    joined = gpd.sjoin(points, boundaries[[REGION_COL, 'geometry']], how='inner', predicate='within')
    tree_counts = joined.groupby(REGION_COL).size().rename('tree_count').reset_index()

    outside = len(points) - joined.index.nunique()
    if outside:
        logger.info(f"{outside:,} cherry trees fall outside every neighborhood")

    result = regions.merge(tree_counts, on=REGION_COL, how='left')
    result['tree_count'] = result['tree_count'].fillna(0).astype(int)
    return result.sort_values('tree_count', ascending=False, kind='stable').reset_index(drop=True)
