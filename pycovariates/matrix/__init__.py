from ._aggregators import BUILTIN_AGGREGATORS, Aggregator, resolve_aggregator
from ._matrix_utils import (
    META_KEY_AGGREGATOR,
    META_KEY_BIOMARKER_COLS,
    META_KEY_CLINICAL_COLS,
    META_KEY_FILL_VALUE,
    META_KEY_JOIN_KEY,
    META_KEY_JOIN_MODE,
    META_KEY_SAMPLE_COL,
    get_biomarker_columns,
)
from .join import join_covariates
from .matrix import build_biomarker_matrix, make_biomarker_ids

__all__ = [
    "build_biomarker_matrix",
    "make_biomarker_ids",
    "join_covariates",
    "get_biomarker_columns",
    "Aggregator",
    "BUILTIN_AGGREGATORS",
    "resolve_aggregator",
    "META_KEY_SAMPLE_COL",
    "META_KEY_BIOMARKER_COLS",
    "META_KEY_AGGREGATOR",
    "META_KEY_FILL_VALUE",
    "META_KEY_JOIN_KEY",
    "META_KEY_JOIN_MODE",
    "META_KEY_CLINICAL_COLS",
]
