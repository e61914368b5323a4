"""
Joins a biomarker matrix with a clinical covariate table on the sample key.
"""

import logging
import warnings

import pandas as pd
import pyarrow as pa

from ..errors import ColumnCollisionError, DuplicateKeyError, MissingKeyError
from ..io._io_utils import _attach_metadata, _read_metadata
from ._matrix_utils import (
    META_KEY_BIOMARKER_COLS,
    META_KEY_CLINICAL_COLS,
    META_KEY_FILL_VALUE,
    META_KEY_JOIN_KEY,
    META_KEY_JOIN_MODE,
    _as_table,
    _encode_fill_value,
    _restore_integer_columns,
)

logger = logging.getLogger(__name__)

VALID_JOIN_MODES = ("inner", "left")


def _check_duplicates(df: pd.DataFrame, key: str, name: str) -> None:
    if df[key].isna().any():
        raise MissingKeyError(
            f"{name} has {int(df[key].isna().sum())} row(s) without a value in key '{key}'."
        )
    duplicated = df[key][df[key].duplicated(keep=False)]
    if not duplicated.empty:
        ids = list(pd.unique(duplicated))
        preview = ids[:10]
        raise DuplicateKeyError(
            f"{name} has {len(ids)} duplicated sample id(s) in '{key}': {preview}"
            + (" ..." if len(ids) > len(preview) else ""),
            duplicates=ids,
        )


def _key_kind(data_type: pa.DataType) -> str:
    if pa.types.is_dictionary(data_type):
        data_type = data_type.value_type
    if pa.types.is_integer(data_type):
        return "integer"
    if pa.types.is_string(data_type) or pa.types.is_large_string(data_type):
        return "string"
    return str(data_type)


def join_covariates(
    biomarker_matrix: pa.Table | pd.DataFrame,
    clinical_table: pa.Table | pd.DataFrame,
    key: str,
    how: str = "inner",
    *,
    fill_value: float | None = None,
    verbosity: int = 0,
) -> pa.Table:
    """
    Merges a biomarker matrix with a clinical covariate table on a shared sample key.

    Rows follow the order of the clinical table. The result holds the key
    column, then the clinical covariates, then the biomarker columns in matrix
    order. Neither input is modified.

    Args:
        biomarker_matrix: Output of `build_biomarker_matrix` (or any table whose
                          non-key columns are biomarkers).
        clinical_table: Clinical covariates keyed by sample id.
        key: Name of the sample id column present in both inputs.
        how: 'inner' (default) keeps samples present in both inputs; 'left'
             keeps every clinical sample and fills the biomarker cells of
             samples with no matrix row. Missing cells of matched samples are
             kept as missing in both modes.
        fill_value: Value for biomarker cells of clinical samples without a
                    matrix row ('left' only). Defaults to the fill value recorded
                    on the matrix, or 0 if none is recorded.
        verbosity: Controls logging and warnings.
                   - `<= -1`: Show INFO, WARNING, and ERROR level messages.
                   - `== 0`: Show WARNING and ERROR level messages (default).
                   - `>= 1`: Show only ERROR level messages.

    Returns:
        A new PyArrow Table whose schema metadata records the key, clinical
        columns, biomarker columns, join mode and fill value.

    Raises:
        MissingKeyError: If `key` is absent from either input, or has null values.
        DuplicateKeyError: If either input repeats a sample id.
        ColumnCollisionError: If a non-key column exists in both inputs.
        ValueError: If `how` is not a supported join mode.
        TypeError: If inputs have unsupported types or incompatible key types.
    """
    matrix = _as_table(biomarker_matrix, "biomarker_matrix")
    clinical = _as_table(clinical_table, "clinical_table")

    if how not in VALID_JOIN_MODES:
        raise ValueError(f"Invalid join mode '{how}'. Must be one of {list(VALID_JOIN_MODES)}")

    for name, table in (("Biomarker matrix", matrix), ("Clinical table", clinical)):
        if key not in table.column_names:
            raise MissingKeyError(
                f"Join key '{key}' not found in {name.lower()}. "
                f"Available columns: {table.column_names}"
            )

    matrix_kind = _key_kind(matrix.schema.field(key).type)
    clinical_kind = _key_kind(clinical.schema.field(key).type)
    if matrix_kind != clinical_kind and "null" not in (matrix_kind, clinical_kind):
        raise TypeError(
            f"Join key '{key}' is {matrix_kind} in the biomarker matrix but "
            f"{clinical_kind} in the clinical table."
        )

    biomarker_cols = _read_metadata(matrix, META_KEY_BIOMARKER_COLS, as_json=True)
    if biomarker_cols is None:
        biomarker_cols = [c for c in matrix.column_names if c != key]
    clinical_cols = [c for c in clinical.column_names if c != key]

    collisions = [c for c in clinical_cols if c in set(biomarker_cols)]
    if collisions:
        raise ColumnCollisionError(
            f"Columns present in both the clinical table and the biomarker matrix: {collisions}"
        )

    if fill_value is None:
        fill_value = _read_metadata(matrix, META_KEY_FILL_VALUE, as_json=True)
    if fill_value is None:
        fill_value = 0

    matrix_df = matrix.select([key] + list(biomarker_cols)).to_pandas()
    clinical_df = clinical.to_pandas()
    _check_duplicates(matrix_df, key, "Biomarker matrix")
    _check_duplicates(clinical_df, key, "Clinical table")

    joined = clinical_df.merge(
        matrix_df, on=key, how=how, sort=False, validate="one_to_one"
    )

    unmatched_clinical = int((~clinical_df[key].isin(matrix_df[key])).sum())
    unmatched_matrix = int((~matrix_df[key].isin(clinical_df[key])).sum())
    if verbosity <= -1:
        logger.info(
            f"{how} join on '{key}': {len(joined)} row(s); {unmatched_clinical} clinical "
            f"sample(s) without biomarker data, {unmatched_matrix} matrix sample(s) "
            "without clinical data."
        )

    if how == "left" and unmatched_clinical and biomarker_cols:
        # only samples without a matrix row are filled; missing cells of matched
        # samples stay missing
        unmatched = ~joined[key].isin(matrix_df[key])
        joined.loc[unmatched, biomarker_cols] = joined.loc[unmatched, biomarker_cols].fillna(
            fill_value
        )
        integer_cols = [
            c for c in biomarker_cols if pa.types.is_integer(matrix.schema.field(c).type)
        ]
        joined = _restore_integer_columns(joined, integer_cols, fill_value)

    if joined.empty and verbosity <= 0:
        warnings.warn(
            f"Joining on '{key}' produced an empty table; no sample ids are shared.",
            UserWarning,
        )

    joined = joined[[key] + clinical_cols + list(biomarker_cols)]
    result = pa.Table.from_pandas(joined, preserve_index=False)

    return _attach_metadata(
        result,
        {
            META_KEY_JOIN_KEY: key,
            META_KEY_JOIN_MODE: how,
            META_KEY_CLINICAL_COLS: clinical_cols,
            META_KEY_BIOMARKER_COLS: list(biomarker_cols),
            META_KEY_FILL_VALUE: _encode_fill_value(fill_value),
        },
    )
