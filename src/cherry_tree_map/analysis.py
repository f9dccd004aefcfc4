#!/usr/bin/env python3
"""
DC Cherry Tree Analysis

Steps:
1. Load the street tree inventory and the neighborhood boundary archive
2. Normalize: drop incomplete rows, keep cherries, correct cultivar names
3. Count cherry trees per neighborhood
4. Render density plots and interactive maps

Usage:
    python -m cherry_tree_map.analysis
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from .boundaries import count_by_neighborhood, load_boundaries
from .cherry_map import create_cherry_map, create_cultivar_maps
from .config import BOUNDARIES_ZIP, OUTPUT_DIR, TOP_CULTIVARS, TREES_CSV
from .density_plots import plot_cherry_density
from .tree_records import ParseError, group_counts, load_trees, normalize_records

logger = logging.getLogger(__name__)


def save_cleaning_log(stats, counts: dict, log_path: Path):
    """Write the normalization summary and per-cultivar counts."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    with open(log_path, 'w', encoding='utf-8') as f:
        f.write("=" * 60 + "\n")
        f.write("DC Cherry Tree Cleaning Log\n")
        f.write("=" * 60 + "\n")
        f.write(f"Run at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")

        f.write("-" * 60 + "\n")
        f.write("Normalization summary\n")
        f.write("-" * 60 + "\n")
        f.write(f"Tree records loaded:          {stats.original_count:,}\n")
        f.write(f"After missing value filter:   {stats.after_clean:,}\n")
        f.write(f"After cherry filter:          {stats.after_cherry_filter:,}\n")
        f.write(f"Dropped false positives:      {stats.dropped_false_positives:,}\n")
        f.write(f"Renamed cultivars:            {stats.renamed:,}\n")
        f.write(f"Final cherry records:         {stats.final_count:,}\n\n")

        f.write("-" * 60 + "\n")
        f.write("Records per cultivar\n")
        f.write("-" * 60 + "\n")
        for cultivar, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
            f.write(f"  {cultivar:30s}: {count:>6,}\n")

    logger.info(f"Log saved: {log_path}")


def run_analysis(
    trees_path: Path = TREES_CSV,
    boundaries_archive: Path = BOUNDARIES_ZIP,
    output_dir: Path = OUTPUT_DIR
) -> dict:
    """
    Run the full analysis and write every output into output_dir.

    Returns:
        Dictionary of output name -> path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    # 1. Load
    trees = load_trees(trees_path)
    boundaries = load_boundaries(boundaries_archive)

    # 2. Normalize
    cherries, stats = normalize_records(trees)
    counts = group_counts(cherries)

    logger.info("-" * 50)
    logger.info("Top cultivars:")
    for cultivar in sorted(counts, key=counts.get, reverse=True)[:TOP_CULTIVARS]:
        logger.info(f"  - {cultivar}: {counts[cultivar]:,}")

    # 3. Neighborhood join
    neighborhood_counts = count_by_neighborhood(boundaries, cherries)

    outputs = {
        'cherry_trees': output_dir / 'cherry_trees.csv',
        'neighborhood_counts': output_dir / 'neighborhood_counts.csv',
        'cleaning_log': output_dir / 'cleaning_log.txt',
    }
    cherries.to_csv(outputs['cherry_trees'], index=False, encoding='utf-8-sig')
    neighborhood_counts.to_csv(outputs['neighborhood_counts'], index=False, encoding='utf-8-sig')
    save_cleaning_log(stats, counts, outputs['cleaning_log'])

    # 4. Render
    top_cultivars = sorted(counts, key=counts.get, reverse=True)[:TOP_CULTIVARS]

    outputs['density'] = plot_cherry_density(
        boundaries, cherries, output_dir / 'cherry_density.png')
    outputs['density_by_cultivar'] = plot_cherry_density(
        boundaries, cherries, output_dir / 'cherry_density_by_cultivar.png',
        by_cultivar=True, cultivars=top_cultivars)

    outputs['map'] = output_dir / 'cherry_map.html'
    create_cherry_map(boundaries, cherries, outputs['map'],
                      cluster=True, neighborhood_counts=neighborhood_counts)

    outputs['map_by_cultivar'] = output_dir / 'cherry_map_by_cultivar.html'
    create_cherry_map(boundaries, cherries, outputs['map_by_cultivar'],
                      cluster=False, by_cultivar=True, neighborhood_counts=neighborhood_counts)

    for cultivar, path in create_cultivar_maps(
            boundaries, cherries, output_dir / 'cultivar_maps', cultivars=top_cultivars).items():
        outputs[f'map:{cultivar}'] = path

    return outputs


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    logger.info("*" * 50)
    logger.info("  DC Cherry Tree Analysis")
    logger.info("*" * 50)

    try:
        outputs = run_analysis()
    except (FileNotFoundError, ParseError) as e:
        logger.error(f"Analysis aborted: {e}")
        sys.exit(1)

    logger.info("=" * 50)
    logger.info("ANALYSIS COMPLETE")
    logger.info("=" * 50)
    for name, path in outputs.items():
        logger.info(f"  {name}: {path}")


if __name__ == "__main__":
    main()
