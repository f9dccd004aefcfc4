"""
Street tree record normalizer.

Loads the street tree inventory, drops incomplete rows, keeps the cherry
trees and applies the cultivar correction table.

Usage:
    from cherry_tree_map.tree_records import load_trees, normalize_records
    cherries, stats = normalize_records(load_trees("trees.csv"))
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .config import (
    CHERRY_KEYWORD,
    COLUMN_ALIASES,
    CULTIVAR_COL,
    LAT_COL,
    LON_COL,
    NAME_COL,
)

logger = logging.getLogger(__name__)


class ParseError(ValueError):
    """Input file cannot be turned into records (missing columns, bad archive)."""


# ============================================================================
# CORRECTION TABLE
# ============================================================================

EXACT = 'exact'
CONTAINS = 'contains'
DROP = 'drop'
RENAME = 'rename'


@dataclass(frozen=True)
class CorrectionRule:
    """One entry of the cultivar correction table."""
    match_kind: str
    match_value: str
    action: str
    replacement: Optional[str] = None

    def __post_init__(self):
        if self.match_kind not in (EXACT, CONTAINS):
            raise ValueError(f"Unknown match kind: {self.match_kind!r}")
        if self.action not in (DROP, RENAME):
            raise ValueError(f"Unknown action: {self.action!r}")
        if self.action == RENAME and not self.replacement:
            raise ValueError(f"Rename rule for {self.match_value!r} needs a replacement")
        if self.action == DROP and self.replacement is not None:
            raise ValueError(f"Drop rule for {self.match_value!r} cannot have a replacement")

    @property
    def label(self) -> str:
        if self.action == DROP:
            return f"drop {self.match_value}"
        return f"{self.match_value} -> {self.replacement}"

    def matches(self, names: pd.Series) -> pd.Series:
        """Boolean mask of the names this rule applies to."""
        if self.match_kind == EXACT:
            return names == self.match_value
        return names.astype(str).str.contains(self.match_value, case=False, regex=False)

    def matches_value(self, name: str) -> bool:
        if self.match_kind == EXACT:
            return name == self.match_value
        return self.match_value.lower() in name.lower()


CORRECTION_RULES = (
    # substring false positive, not a cherry
    CorrectionRule(EXACT, 'Cherrybark Oak', DROP),
    CorrectionRule(EXACT, 'Chokecherry', RENAME, 'Choke cherry'),
    CorrectionRule(EXACT, 'Cherry (Snowgoose)', RENAME, 'Snowgoose cherry'),
)


def validate_rules(rules) -> None:
    """
    Check a correction table can be applied safely.

    A rename target must not be matched by another rename rule, otherwise a
    second pass would change the result again. Targets hit by a drop rule are
    allowed: those records are dropped.

    Raises:
        ValueError: If a rename target is matched by a rename rule
    """
    for rule in rules:
        if rule.action != RENAME:
            continue
        for other in rules:
            if other.action == RENAME and other.matches_value(rule.replacement):
                raise ValueError(
                    f"Rename target {rule.replacement!r} is matched by rule '{other.label}'"
                )


# ============================================================================
# DATA LOADING
# ============================================================================

def resolve_columns(columns, column_aliases: dict) -> dict:
    """Map source column names to canonical names (first alias present wins)."""
    available = set(columns)
    mapping = {}
    for canonical, aliases in column_aliases.items():
        for alias in aliases:
            if alias in available:
                mapping[alias] = canonical
                break
    return mapping


def load_trees(source, column_aliases: Optional[dict] = None) -> pd.DataFrame:
    """
    Load street tree records from a delimited file.

    Args:
        source: Path or file-like object with CSV content
        column_aliases: Canonical column -> accepted source names

    Returns:
        DataFrame with canonical longitude/latitude/common_name columns plus
        any other source columns

    Raises:
        FileNotFoundError: If the file doesn't exist
        ParseError: If a required column is absent
    """
    if column_aliases is None:
        column_aliases = COLUMN_ALIASES

    logger.info(f"Loading tree records from: {source}")

    try:
        raw = pd.read_csv(source, low_memory=False)
    except pd.errors.EmptyDataError as e:
        raise ParseError(f"Tree source has no header row: {source}") from e

    mapping = resolve_columns(raw.columns, column_aliases)
    missing = [col for col in column_aliases if col not in mapping.values()]
    if missing:
        raise ParseError(f"Missing required columns: {missing} (found: {list(raw.columns)})")

    df = raw.rename(columns=mapping)
    df[LON_COL] = pd.to_numeric(df[LON_COL], errors='coerce')
    df[LAT_COL] = pd.to_numeric(df[LAT_COL], errors='coerce')
    df[NAME_COL] = df[NAME_COL].map(lambda v: v.strip() if isinstance(v, str) else v)

    logger.info(f"Loaded {len(df):,} tree records")
    return df


# ============================================================================
# NORMALIZATION STEPS
# ============================================================================

def clean(records: pd.DataFrame) -> pd.DataFrame:
    """Drop records with a missing longitude, latitude or common name."""
    has_coords = records[LON_COL].notna() & records[LAT_COL].notna()
    has_name = records[NAME_COL].notna() & (records[NAME_COL].astype(str).str.strip() != '')

    cleaned = records[has_coords & has_name].copy()
    logger.info(f"Missing value filter: {len(records):,} → {len(cleaned):,} "
                f"(removed {len(records) - len(cleaned):,})")
    return cleaned


def filter_cherry(records: pd.DataFrame) -> pd.DataFrame:
    """Keep cherry trees, projected to longitude/latitude/cultivar_name."""
    is_cherry = records[NAME_COL].astype(str).str.contains(CHERRY_KEYWORD, case=False, regex=False)

    cherries = (
        records.loc[is_cherry, [LON_COL, LAT_COL, NAME_COL]]
        .rename(columns={NAME_COL: CULTIVAR_COL})
        .reset_index(drop=True)
    )
    logger.info(f"Cherry filter: {len(records):,} → {len(cherries):,}")
    return cherries


def _matches_any(names: pd.Series, rules) -> pd.Series:
    mask = pd.Series(False, index=names.index)
    for rule in rules:
        mask |= rule.matches(names)
    return mask


def apply_corrections(records: pd.DataFrame, rules=CORRECTION_RULES) -> pd.DataFrame:
    """
    Apply the cultivar correction table.

    Drop rules are checked before renames, and again on the renamed values,
    so a record hit by a drop rule never reaches the output whichever way
    round it was matched.
    """
    validate_rules(rules)

    drop_rules = [r for r in rules if r.action == DROP]
    rename_rules = [r for r in rules if r.action == RENAME]

    names = records[CULTIVAR_COL]
    dropped = _matches_any(names, drop_rules)

    corrected = names.copy()
    for rule in rename_rules:
        corrected = corrected.mask(rule.matches(names), rule.replacement)

    dropped |= _matches_any(corrected, drop_rules)

    result = records.assign(**{CULTIVAR_COL: corrected})
    return result[~dropped].reset_index(drop=True)


def rule_hits(records: pd.DataFrame, rules=CORRECTION_RULES) -> dict:
    """Number of records each rule matches, keyed by rule label."""
    return {rule.label: int(rule.matches(records[CULTIVAR_COL]).sum()) for rule in rules}


def group_counts(records: pd.DataFrame) -> dict:
    """Number of records per cultivar, in order of first occurrence."""
    sizes = records.groupby(CULTIVAR_COL, sort=False).size()
    return {name: int(count) for name, count in sizes.items()}


# ============================================================================
# PIPELINE
# ============================================================================

@dataclass
class NormalizationStats:
    """Record counts after each normalization stage."""
    original_count: int = 0
    after_clean: int = 0
    after_cherry_filter: int = 0
    dropped_false_positives: int = 0
    renamed: int = 0
    final_count: int = 0

    def summary(self) -> dict:
        """Return summary as dictionary."""
        return {
            'original': self.original_count,
            'after_missing_value_filter': self.after_clean,
            'after_cherry_filter': self.after_cherry_filter,
            'dropped_false_positives': self.dropped_false_positives,
            'renamed': self.renamed,
            'final': self.final_count,
            'removed_total': self.original_count - self.final_count,
        }


def normalize_records(records: pd.DataFrame, rules=CORRECTION_RULES) -> tuple:
    """
    Run the full normalization: clean, cherry filter, corrections.

    Args:
        records: Tree records from load_trees
        rules: Correction table

    Returns:
        Tuple of (cherry records DataFrame, NormalizationStats)
    """
    stats = NormalizationStats(original_count=len(records))

    logger.info("=" * 50)
    logger.info("Normalizing tree records")
    logger.info("=" * 50)

    cleaned = clean(records)
    stats.after_clean = len(cleaned)

    cherries = filter_cherry(cleaned)
    stats.after_cherry_filter = len(cherries)

    hits = rule_hits(cherries, rules)
    corrected = apply_corrections(cherries, rules)

    stats.dropped_false_positives = stats.after_cherry_filter - len(corrected)
    stats.renamed = sum(hits[r.label] for r in rules if r.action == RENAME)
    stats.final_count = len(corrected)

    for label, count in hits.items():
        if count:
            logger.info(f"Correction [{label}]: {count:,} records")
    if stats.dropped_false_positives:
        logger.info(f"Dropped {stats.dropped_false_positives:,} false positive(s) of the cherry filter")

    logger.info(f"Final cherry records: {stats.final_count:,} "
                f"({len(group_counts(corrected))} cultivars)")
    return corrected, stats
