"""
Internal core IO operations: loading and composite biomarker identifiers.
"""

import os
from typing import Any

import pandas as pd
import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.csv as pv
import pyarrow.parquet as pq


def _load_data_to_pyarrow(
    source: str | os.PathLike | pd.DataFrame | pa.Table,
    resolved_source_type: str | None,
    read_options: dict[str, Any],
) -> tuple[pa.Table, str]:
    """
    Loads tabular data from a file, DataFrame or Table into a PyArrow Table.

    Args:
        source: Path to a CSV/Parquet file, a Pandas DataFrame or a PyArrow Table.
        resolved_source_type: Explicit source type ('csv', 'parquet', 'pandas',
                              'arrow') or None to infer it.
        read_options: Dictionary of reader options keyed by source type,
                      e.g. {'csv': {'parse_options': ...}}.

    Returns:
        A tuple of the loaded PyArrow Table and the resolved source type.

    Raises:
        FileNotFoundError: If the source path does not exist.
        ValueError: If the source type conflicts with the source or reading fails.
        TypeError: If the source type is unsupported or cannot be inferred.
    """
    if isinstance(source, pa.Table):
        if resolved_source_type not in (None, "arrow"):
            raise ValueError(
                f"Source is a PyArrow Table, but source_type is '{resolved_source_type}'"
            )
        return source, "arrow"

    if isinstance(source, pd.DataFrame):
        if resolved_source_type not in (None, "pandas"):
            raise ValueError(
                f"Source is a DataFrame, but source_type is '{resolved_source_type}'"
            )
        try:
            table = pa.Table.from_pandas(source, preserve_index=False)
        except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
            raise ValueError(
                f"Failed to convert Pandas DataFrame to PyArrow Table: {e}"
            ) from e
        return table, "pandas"

    if not isinstance(source, (str, os.PathLike)):
        raise TypeError(
            f"Unsupported source type: {type(source)}. Must be a file path, "
            "a Pandas DataFrame or a PyArrow Table."
        )

    path = os.fspath(source)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Source file not found: {path}")

    if resolved_source_type is None:
        ext = os.path.splitext(path)[1].lower()
        if ext in (".csv", ".tsv", ".txt"):
            resolved_source_type = "csv"
        elif ext in (".parquet", ".pq"):
            resolved_source_type = "parquet"
        else:
            raise TypeError(
                f"Cannot infer source type from file extension: {ext}. Please specify source_type."
            )

    if resolved_source_type == "csv":
        csv_opts = dict(read_options.get("csv", {}))
        # Tab separated mutation files are the norm for MAF-like exports
        if path.lower().endswith(".tsv") and "parse_options" not in csv_opts:
            csv_opts["parse_options"] = pv.ParseOptions(delimiter="\t")
        try:
            table = pv.read_csv(path, **csv_opts)
        except (pa.ArrowInvalid, OSError) as e:
            raise ValueError(f"Failed to read CSV file '{path}' with PyArrow: {e}") from e
    elif resolved_source_type == "parquet":
        try:
            table = pq.read_table(path, **read_options.get("parquet", {}))
        except (pa.ArrowInvalid, OSError) as e:
            raise ValueError(
                f"Failed to read Parquet file '{path}' with PyArrow: {e}"
            ) from e
    else:
        raise TypeError(f"Unsupported source_type for file path: '{resolved_source_type}'")

    return table, resolved_source_type


def _build_composite_ids(
    table: pa.Table,
    biomarker_cols: list[str],
    output_col: str,
    sep: str = ".",
) -> pa.Table:
    """
    Appends a composite biomarker identifier built from several columns.

    Used for gene + mutation-effect style features ("TP53" and "Missense"
    become "TP53.Missense"). A null in any part yields a null identifier, which
    the matrix builder later reports as a malformed event.

    Args:
        table: The input PyArrow Table.
        biomarker_cols: Columns to join, in order.
        output_col: Name of the appended column.
        sep: Separator placed between parts.

    Returns:
        A new table with `output_col` appended (or replaced if it already exists
        as one of the parts).

    Raises:
        ValueError: If a part column is missing, fewer than two parts are given,
                    or `output_col` clashes with an unrelated column.
    """
    if len(biomarker_cols) < 2:
        raise ValueError("Composite biomarker ids need at least two columns.")
    missing = [c for c in biomarker_cols if c not in table.column_names]
    if missing:
        raise ValueError(f"Biomarker id columns not found in data: {missing}")
    if output_col in table.column_names and output_col not in biomarker_cols:
        raise ValueError(
            f"Cannot build composite biomarker ids: column '{output_col}' already exists."
        )

    parts = [pc.cast(table[c], pa.string()) for c in biomarker_cols]
    composite = pc.binary_join_element_wise(*parts, sep)

    if output_col in table.column_names:
        idx = table.column_names.index(output_col)
        return table.set_column(idx, pa.field(output_col, pa.string()), composite)
    return table.append_column(pa.field(output_col, pa.string()), composite)
