import folium
import numpy as np
import pandas as pd

from cherry_tree_map.boundaries import count_by_neighborhood
from cherry_tree_map.cherry_map import (
    create_cherry_map,
    create_cultivar_maps,
    cultivar_colors,
    map_center,
    safe_filename,
)
from cherry_tree_map.config import MapCenter
from cherry_tree_map.density_plots import plot_cherry_density


def random_cherries(n=40, seed=42):
    rng = np.random.default_rng(seed)
    return pd.DataFrame({
        'longitude': rng.uniform(-77.09, -76.96, n),
        'latitude': rng.uniform(38.86, 38.94, n),
        'cultivar_name': rng.choice(['Yoshino Cherry', 'Kwanzan cherry', 'Choke cherry'], n),
    })


# ============================================================================
# density plots
# ============================================================================

def test_plot_cherry_density(tmp_path, boundaries):
    path = plot_cherry_density(boundaries, random_cherries(), tmp_path / 'density.png')

    assert path.exists()
    assert path.stat().st_size > 0


def test_plot_cherry_density_by_cultivar(tmp_path, boundaries):
    cherries = random_cherries()
    # a cultivar with a single tree falls back to points only
    cherries.loc[len(cherries)] = [-77.0, 38.9, 'Snowgoose cherry']

    path = plot_cherry_density(boundaries, cherries, tmp_path / 'plots' / 'by_cultivar.png', by_cultivar=True)

    assert path.exists()


def test_plot_cherry_density_empty(tmp_path, boundaries):
    empty = pd.DataFrame(columns=['longitude', 'latitude', 'cultivar_name'])

    path = plot_cherry_density(boundaries, empty, tmp_path / 'empty.png', by_cultivar=True)

    assert path.exists()


# ============================================================================
# interactive maps
# ============================================================================

def test_map_center_defaults_to_dc():
    empty = pd.DataFrame(columns=['longitude', 'latitude', 'cultivar_name'])

    assert map_center(empty) == [MapCenter().lat, MapCenter().lon]


def test_cultivar_colors_most_common_first(cherries):
    colors = cultivar_colors(cherries)

    assert next(iter(colors)) == 'Yoshino Cherry'
    assert len(set(colors.values())) == len(colors)


def test_create_cherry_map(tmp_path, boundaries):
    cherries = random_cherries()
    counts = count_by_neighborhood(boundaries, cherries)
    path = tmp_path / 'map.html'

    m = create_cherry_map(boundaries, cherries, path, neighborhood_counts=counts)

    assert isinstance(m, folium.Map)
    html = path.read_text(encoding='utf-8')
    assert 'West End' in html
    assert 'Capitol Hill' in html
    assert 'markerClusterGroup' in html


def test_create_cherry_map_by_cultivar_without_clusters(tmp_path, boundaries):
    path = tmp_path / 'by_cultivar.html'

    create_cherry_map(boundaries, random_cherries(), path, cluster=False, by_cultivar=True)

    html = path.read_text(encoding='utf-8')
    assert 'markerClusterGroup' not in html
    for cultivar in ['Yoshino Cherry', 'Kwanzan cherry', 'Choke cherry']:
        assert cultivar in html


def test_create_cultivar_maps(tmp_path, boundaries):
    paths = create_cultivar_maps(boundaries, random_cherries(), tmp_path / 'cultivars',
                                 cultivars=['Yoshino Cherry', 'Choke cherry'])

    assert set(paths) == {'Yoshino Cherry', 'Choke cherry'}
    assert paths['Yoshino Cherry'].name == 'yoshino_cherry.html'
    assert all(p.exists() for p in paths.values())


def test_safe_filename():
    assert safe_filename('Cherry (Snowgoose)') == 'cherry_snowgoose'
    assert safe_filename('???') == 'unnamed'


def test_create_cultivar_maps_name_collision(tmp_path, boundaries):
    cherries = pd.DataFrame({
        'longitude': [-77.05, -77.04],
        'latitude': [38.90, 38.91],
        'cultivar_name': ['Yoshino Cherry', 'YOSHINO CHERRY'],
    })

    paths = create_cultivar_maps(boundaries, cherries, tmp_path)

    assert sorted(p.name for p in paths.values()) == ['yoshino_cherry.html', 'yoshino_cherry_2.html']
