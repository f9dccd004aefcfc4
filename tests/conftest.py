import zipfile

import matplotlib

matplotlib.use('Agg')

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon, box

TREES_CSV = """OBJECTID,X,Y,CMMN_NM,SCI_NM
1,-77.03,38.90,Chokecherry,Prunus virginiana
2,-77.00,38.90,Cherrybark Oak,Quercus pagoda
3,-77.05,38.93,Yoshino Cherry,Prunus x yedoensis
4,,38.91,Kwanzan cherry,Prunus serrulata
5,-77.02,38.92,Red maple,Acer rubrum
6,-77.04,38.91,Cherry (Snowgoose),Prunus 'Snow Goose'
7,-77.01,38.89,,Prunus sp.
8,-77.06,38.94,Kwanzan cherry,Prunus serrulata
9,-77.035,38.905,YOSHINO CHERRY,Prunus x yedoensis
"""


@pytest.fixture
def trees_csv(tmp_path):
    path = tmp_path / 'trees.csv'
    path.write_text(TREES_CSV, encoding='utf-8')
    return path


@pytest.fixture
def cherries():
    return pd.DataFrame({
        'longitude': [-77.03, -77.00, -77.05, -77.04, -77.06],
        'latitude': [38.90, 38.90, 38.93, 38.91, 38.94],
        'cultivar_name': ['Chokecherry', 'Cherrybark Oak', 'Yoshino Cherry',
                          'Cherry (Snowgoose)', 'Yoshino Cherry'],
    })


@pytest.fixture
def boundaries():
    """Two side-by-side neighborhoods; the eastern one has a hole."""
    west = box(-77.10, 38.85, -77.025, 38.95)
    east = Polygon(
        [(-77.025, 38.85), (-76.95, 38.85), (-76.95, 38.95), (-77.025, 38.95)],
        holes=[[(-77.00, 38.88), (-76.98, 38.88), (-76.98, 38.90), (-77.00, 38.90)]],
    )
    return gpd.GeoDataFrame({'name': ['West End', 'Capitol Hill']}, geometry=[west, east], crs='EPSG:4326')


@pytest.fixture
def boundaries_zip(tmp_path, boundaries):
    """Zipped shapefile with an upper-case NAME column, in a projected CRS."""
    shp_dir = tmp_path / 'shp'
    shp_dir.mkdir()
    boundaries.rename(columns={'name': 'NAME'}).to_crs('EPSG:3857').to_file(shp_dir / 'clusters.shp')

    archive = tmp_path / 'clusters.zip'
    with zipfile.ZipFile(archive, 'w') as zf:
        for path in shp_dir.iterdir():
            zf.write(path, arcname=f'clusters/{path.name}')
    return archive
