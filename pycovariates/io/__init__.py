from ._io_utils import (
    META_KEY_BIOMARKER_COL,
    META_KEY_COVARIATE_COLS,
    META_KEY_KEY_COL,
    META_KEY_SAMPLE_COL,
    META_KEY_VALUE_COL,
)
from .io import export_covariate_table, load_clinical_data, load_event_data

__all__ = [
    "load_event_data",
    "load_clinical_data",
    "export_covariate_table",
    "META_KEY_SAMPLE_COL",
    "META_KEY_BIOMARKER_COL",
    "META_KEY_VALUE_COL",
    "META_KEY_KEY_COL",
    "META_KEY_COVARIATE_COLS",
]
