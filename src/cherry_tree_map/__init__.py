"""Cherry tree mapping for the Washington, DC street tree inventory."""

from .tree_records import (
    CORRECTION_RULES,
    CorrectionRule,
    NormalizationStats,
    ParseError,
    apply_corrections,
    clean,
    filter_cherry,
    group_counts,
    load_trees,
    normalize_records,
)

__version__ = "0.1.0"
