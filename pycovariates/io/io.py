import os
from typing import Any

import pandas as pd
import pyarrow as pa
import pyarrow.csv as pv
import pyarrow.parquet as pq

# Import internal helpers using relative imports
from ._io_core import _build_composite_ids, _load_data_to_pyarrow
from ._io_utils import (
    META_KEY_BIOMARKER_COL,
    META_KEY_COVARIATE_COLS,
    META_KEY_KEY_COL,
    META_KEY_SAMPLE_COL,
    META_KEY_VALUE_COL,
    _attach_metadata,
    _validate_event_columns,
    _validate_key_column,
)


def load_event_data(
    source: str | os.PathLike | pd.DataFrame | pa.Table,
    sample_col: str,
    biomarker_col: str,
    value_col: str | None = None,
    biomarker_cols: list[str] | None = None,
    biomarker_sep: str = ".",
    source_type: str | None = None,
    read_options: dict[str, Any] | None = None,
) -> pa.Table:
    """
    Loads and validates long-format biomarker event data into a PyArrow Table.

    Each row is one event: a sample, a biomarker (e.g. a mutated gene) and an
    optional value (e.g. a variant allele frequency or a mutation type).
    Repeated (sample, biomarker) pairs are expected and are aggregated later by
    `pycovariates.matrix.build_biomarker_matrix`.

    Args:
        source: Path to a CSV/TSV/Parquet file, a Pandas DataFrame or a PyArrow Table.
        sample_col: Name of the column holding sample identifiers.
        biomarker_col: Name of the column holding biomarker identifiers. When
                       `biomarker_cols` is given, this is the name of the
                       composite column that will be created.
        value_col: Optional name of the column holding event values. If None,
                   every event counts as a presence flag of 1.
        biomarker_cols: Optional list of columns joined into a composite
                        biomarker identifier (e.g. ['Hugo_Symbol',
                        'Variant_Classification'] -> 'TP53.Missense_Mutation').
        biomarker_sep: Separator used between composite id parts. Defaults to '.'.
        source_type: Optional hint for the source type ('csv', 'parquet',
                     'pandas', 'arrow'). If None, inferred from the source.
        read_options: Optional dictionary of PyArrow reader options keyed by
                      source type (e.g. {'csv': {'parse_options': ...}}).

    Returns:
        A validated PyArrow Table whose schema metadata records the sample,
        biomarker and value column names.

    Raises:
        FileNotFoundError: If the source path does not exist.
        ValueError: If required columns are missing or have incorrect types,
                    or the source cannot be read.
        TypeError: If the source type is unsupported or cannot be inferred.
    """
    if read_options is None:
        read_options = {}

    table, _ = _load_data_to_pyarrow(
        source=source,
        resolved_source_type=source_type,
        read_options=read_options,
    )

    if biomarker_cols is not None:
        table = _build_composite_ids(
            table=table,
            biomarker_cols=list(biomarker_cols),
            output_col=biomarker_col,
            sep=biomarker_sep,
        )

    _validate_event_columns(
        table=table,
        sample_col=sample_col,
        biomarker_col=biomarker_col,
        value_col=value_col,
    )

    return _attach_metadata(
        table,
        {
            META_KEY_SAMPLE_COL: sample_col,
            META_KEY_BIOMARKER_COL: biomarker_col,
            META_KEY_VALUE_COL: value_col,
        },
    )


def load_clinical_data(
    source: str | os.PathLike | pd.DataFrame | pa.Table,
    key: str,
    covariates: list[str] | None = None,
    source_type: str | None = None,
    read_options: dict[str, Any] | None = None,
) -> pa.Table:
    """
    Loads and validates a clinical covariate table keyed by sample identifier.

    Args:
        source: Path to a CSV/TSV/Parquet file, a Pandas DataFrame or a PyArrow Table.
        key: Name of the sample identifier column shared with the biomarker matrix.
        covariates: Optional list of covariate columns to keep. If None, all
                    columns are kept.
        source_type: Optional hint for the source type.
        read_options: Optional dictionary of PyArrow reader options keyed by source type.

    Returns:
        A PyArrow Table (key column first when `covariates` is given) whose
        schema metadata records the key and covariate columns.

    Raises:
        FileNotFoundError: If the source path does not exist.
        ValueError: If the key or requested covariates are missing.
        TypeError: If the source type is unsupported or cannot be inferred.
    """
    if read_options is None:
        read_options = {}

    table, _ = _load_data_to_pyarrow(
        source=source,
        resolved_source_type=source_type,
        read_options=read_options,
    )

    _validate_key_column(table, key, covariates)

    if covariates is not None:
        if key in covariates:
            raise ValueError(f"Key column '{key}' must not be listed as a covariate.")
        table = table.select([key] + list(covariates))
    covariate_cols = [c for c in table.column_names if c != key]

    return _attach_metadata(
        table,
        {
            META_KEY_KEY_COL: key,
            META_KEY_COVARIATE_COLS: covariate_cols,
        },
    )


def export_covariate_table(
    table: pa.Table,
    output_path: str | os.PathLike | None = None,
    format: str = "dataframe",
    **kwargs: Any,
) -> pd.DataFrame | None:
    """
    Exports a biomarker matrix or joined covariate table to different formats.

    Prioritizes native PyArrow writers for CSV and Parquet formats.

    Args:
        table: The PyArrow Table to export.
        output_path: The file path to write to. Required for 'csv' and 'parquet'.
                     Ignored for 'dataframe'.
        format: One of 'dataframe' (default), 'csv', 'parquet'.
        **kwargs: Additional keyword arguments for the underlying writer.
                  For 'csv': `write_options` dict for pyarrow.csv.WriteOptions.
                  For 'parquet': pyarrow.parquet.write_table options.
                  For 'dataframe': pyarrow.Table.to_pandas options.

    Returns:
        A Pandas DataFrame for 'dataframe', otherwise None.

    Raises:
        TypeError: If `table` is not a PyArrow Table.
        ValueError: If `format` is invalid or `output_path` is missing.
    """
    if not isinstance(table, pa.Table):
        raise TypeError(f"Expected table to be a pyarrow.Table, got {type(table).__name__}")

    valid_formats = ["dataframe", "csv", "parquet"]
    if format not in valid_formats:
        raise ValueError(f"Invalid format '{format}'. Must be one of {valid_formats}")

    if format in ["csv", "parquet"] and output_path is None:
        raise ValueError(f"output_path must be provided for format '{format}'")

    if format == "dataframe":
        return table.to_pandas(**kwargs)
    if format == "csv":
        write_options = pv.WriteOptions(**kwargs.pop("write_options", {}))
        pv.write_csv(table, os.fspath(output_path), write_options=write_options, **kwargs)
        return None
    pq.write_table(table, os.fspath(output_path), **kwargs)
    return None
