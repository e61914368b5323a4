"""
Internal helpers shared by the matrix builder and the covariate joiner.
"""

import json

import numpy as np
import pandas as pd
import pyarrow as pa

from ..io._io_utils import _read_metadata
from ._aggregators import _is_integral

META_KEY_SAMPLE_COL = "pycovariates.matrix.sample_col"
META_KEY_BIOMARKER_COLS = "pycovariates.matrix.biomarker_cols"
META_KEY_AGGREGATOR = "pycovariates.matrix.aggregator"
META_KEY_FILL_VALUE = "pycovariates.matrix.fill_value"
META_KEY_JOIN_KEY = "pycovariates.matrix.join_key"
META_KEY_JOIN_MODE = "pycovariates.matrix.join_mode"
META_KEY_CLINICAL_COLS = "pycovariates.matrix.clinical_cols"


def _as_table(data: pa.Table | pd.DataFrame, name: str) -> pa.Table:
    """Accepts a PyArrow Table or a Pandas DataFrame and returns a Table."""
    if isinstance(data, pa.Table):
        return data
    if isinstance(data, pd.DataFrame):
        return pa.Table.from_pandas(data, preserve_index=False)
    raise TypeError(
        f"Input '{name}' must be a PyArrow Table or a Pandas DataFrame, "
        f"got {type(data).__name__}."
    )


def _encode_fill_value(value) -> str:
    if isinstance(value, np.generic):
        value = value.item()
    return json.dumps(value)


def _restore_integer_columns(
    frame: pd.DataFrame, columns: list[str], default
) -> pd.DataFrame:
    """
    Casts float columns back to int64 when every value is integral.

    Reindexing introduces NaN and therefore float dtypes; once the gaps are
    filled with an integral default the counts can be integers again.
    """
    if not columns or not _is_integral(default):
        return frame
    block = frame[columns]
    if block.isna().to_numpy().any():
        return frame
    try:
        values = block.to_numpy(dtype="float64")
    except (TypeError, ValueError):
        return frame
    if not np.all(np.mod(values, 1) == 0):
        return frame
    frame = frame.copy()
    frame[columns] = block.astype("int64")
    return frame


def get_biomarker_columns(table: pa.Table) -> list[str]:
    """
    Returns the ordered biomarker columns recorded on a matrix or joined table.

    Args:
        table: Output of `build_biomarker_matrix` or `join_covariates`.

    Returns:
        The biomarker column names in matrix column order.

    Raises:
        TypeError: If `table` is not a PyArrow Table.
        KeyError: If the table carries no biomarker column metadata.
    """
    if not isinstance(table, pa.Table):
        raise TypeError("Input 'table' must be a PyArrow Table.")
    columns = _read_metadata(table, META_KEY_BIOMARKER_COLS, as_json=True)
    if columns is None:
        raise KeyError(f"Metadata key '{META_KEY_BIOMARKER_COLS}' not found.")
    return list(columns)
