"""
Internal utilities for IO operations, like validation and metadata handling.
"""

import json

import pyarrow as pa

# Schema metadata keys written by the loaders
META_KEY_SAMPLE_COL = "pycovariates.io.sample_col"
META_KEY_BIOMARKER_COL = "pycovariates.io.biomarker_col"
META_KEY_VALUE_COL = "pycovariates.io.value_col"
META_KEY_KEY_COL = "pycovariates.io.key_col"
META_KEY_COVARIATE_COLS = "pycovariates.io.covariate_cols"


def _is_identifier_type(data_type: pa.DataType) -> bool:
    """Sample and biomarker ids may be string-like or integer codes."""
    return (
        pa.types.is_string(data_type)
        or pa.types.is_large_string(data_type)
        or pa.types.is_dictionary(data_type)
        or pa.types.is_integer(data_type)
        or pa.types.is_null(data_type)
    )


def _validate_event_columns(
    table: pa.Table,
    sample_col: str,
    biomarker_col: str,
    value_col: str | None,
) -> None:
    """
    Validates the existence and basic types of event table columns.

    Args:
        table: The PyArrow Table to validate.
        sample_col: Name of the sample identifier column.
        biomarker_col: Name of the biomarker identifier column.
        value_col: Name of the value column (if provided).

    Raises:
        ValueError: If required columns are missing or have unusable types.
    """
    if sample_col == biomarker_col:
        raise ValueError(
            f"sample_col and biomarker_col must differ, both are '{sample_col}'."
        )

    required_cols = {sample_col, biomarker_col}
    if value_col is not None:
        required_cols.add(value_col)

    missing_cols = required_cols - set(table.column_names)
    if missing_cols:
        raise ValueError(f"Missing required columns in the loaded data: {missing_cols}")

    for col in (sample_col, biomarker_col):
        field = table.schema.field(col)
        if not _is_identifier_type(field.type):
            raise ValueError(
                f"Identifier column '{col}' must be a string or integer type, "
                f"but found {field.type}."
            )

    # Value columns may hold numbers, booleans or categorical labels
    # (e.g. mutation type for count_distinct), but not nested data.
    if value_col is not None:
        value_type = table.schema.field(value_col).type
        if pa.types.is_nested(value_type):
            raise ValueError(
                f"Value column '{value_col}' must hold scalar values, but found {value_type}."
            )


def _validate_key_column(table: pa.Table, key: str, covariates: list[str] | None) -> None:
    """
    Validates the key column (and optional covariate selection) of a clinical table.

    Raises:
        ValueError: If the key or any requested covariate is missing, or the key
                    has an unusable type.
    """
    required_cols = {key}
    if covariates:
        required_cols.update(covariates)
    missing_cols = required_cols - set(table.column_names)
    if missing_cols:
        raise ValueError(f"Missing required columns in the loaded data: {missing_cols}")

    key_field = table.schema.field(key)
    if not _is_identifier_type(key_field.type):
        raise ValueError(
            f"Key column '{key}' must be a string or integer type, but found {key_field.type}."
        )


def _attach_metadata(table: pa.Table, metadata: dict[str, str | list[str] | None]) -> pa.Table:
    """
    Attaches pycovariates metadata keys to the table schema.

    List values are stored as JSON strings. A None value removes the key, so a
    table tagged again without an optional column does not keep the old one.

    Args:
        table: The PyArrow Table.
        metadata: Mapping of metadata key to column name(s).

    Returns:
        The PyArrow Table with updated schema metadata.
    """
    # Preserve existing metadata if any
    existing_metadata = dict(table.schema.metadata or {})
    for key, value in metadata.items():
        if value is None:
            existing_metadata.pop(key.encode("utf-8"), None)
            continue
        if isinstance(value, list):
            value = json.dumps(value)
        existing_metadata[key.encode("utf-8")] = str(value).encode("utf-8")
    return table.replace_schema_metadata(existing_metadata)


def _read_metadata(table: pa.Table, key: str, as_json: bool = False):
    """
    Reads a single pycovariates metadata value from a table schema.

    Returns:
        The decoded string (or JSON-decoded value when `as_json` is True),
        or None if the key is absent.
    """
    metadata = table.schema.metadata or {}
    raw = metadata.get(key.encode("utf-8"))
    if raw is None:
        return None
    value = raw.decode("utf-8")
    return json.loads(value) if as_json else value
