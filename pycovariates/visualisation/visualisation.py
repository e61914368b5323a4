"""
Visualisation and display helpers
"""

import pandas as pd
import pyarrow as pa
from pandas.io.formats.style import Styler

from ..io._io_utils import _read_metadata
from ..matrix._matrix_utils import META_KEY_AGGREGATOR, META_KEY_FILL_VALUE, get_biomarker_columns

SUMMARY_COLUMNS = ["Biomarker", "Samples", "Frequency", "Mean_Value", "Max_Value"]
FLOAT_COLUMNS = ["Frequency", "Mean_Value", "Max_Value"]


def summarise_biomarker_matrix(table: pa.Table) -> pd.DataFrame:
    """
    Per-biomarker carrier counts for a biomarker matrix or joined table.

    A sample "carries" a biomarker when its cell differs from the matrix fill
    value. Mean and max are taken over carriers only.

    Args:
        table: Output of `build_biomarker_matrix` or `join_covariates`.

    Returns:
        A DataFrame with one row per biomarker (in matrix order) and the columns
        'Biomarker', 'Samples', 'Frequency', 'Mean_Value', 'Max_Value'.

    Raises:
        TypeError: If `table` is not a PyArrow Table.
        KeyError: If the table carries no biomarker metadata.
    """
    biomarker_cols = get_biomarker_columns(table)
    fill_value = _read_metadata(table, META_KEY_FILL_VALUE, as_json=True)
    if fill_value is None:
        fill_value = 0

    df = table.select(biomarker_cols).to_pandas()
    n_samples = len(df)
    rows = []
    for col in biomarker_cols:
        values = df[col]
        carriers = values[values.ne(fill_value) & values.notna()]
        numeric = pd.to_numeric(carriers, errors="coerce")
        rows.append(
            {
                "Biomarker": col,
                "Samples": int(len(carriers)),
                "Frequency": len(carriers) / n_samples if n_samples else float("nan"),
                "Mean_Value": numeric.mean() if len(carriers) else float("nan"),
                "Max_Value": numeric.max() if len(carriers) else float("nan"),
            }
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def format_biomarker_summary(
    table: pa.Table,
    decimal_places: int | None = 3,
    top_n: int | None = None,
    order_by: str | None = "Samples",
) -> Styler:
    """
    Formats the biomarker summary of a matrix as a styled Pandas DataFrame.

    Args:
        table: Output of `build_biomarker_matrix` or `join_covariates`.
        decimal_places: Decimal places for 'Frequency', 'Mean_Value' and
                        'Max_Value'. If None, no formatting is applied.
                        Defaults to 3.
        top_n: If given, keep only the first `top_n` rows after sorting.
        order_by: Summary column to sort by, descending ('Samples' by default).
                  'Biomarker' sorts ascending. None keeps matrix order.

    Returns:
        A pandas Styler object ready for display in environments like Jupyter.
        The caption names the aggregator when it is recorded on the table.

    Raises:
        TypeError: If `table` is not a PyArrow Table.
        ValueError: If `decimal_places`, `top_n` or `order_by` are invalid.
    """
    if not isinstance(table, pa.Table):
        raise TypeError("Input 'table' must be a PyArrow Table.")
    if decimal_places is not None and (
        not isinstance(decimal_places, int) or decimal_places < 0
    ):
        raise ValueError("'decimal_places' must be a non-negative integer or None.")
    if top_n is not None and (not isinstance(top_n, int) or top_n <= 0):
        raise ValueError("'top_n' must be a positive integer or None.")
    if order_by is not None and order_by not in SUMMARY_COLUMNS:
        raise ValueError(f"Column '{order_by}' not found. Available columns: {SUMMARY_COLUMNS}")

    df = summarise_biomarker_matrix(table)
    if order_by is not None:
        df = df.sort_values(
            by=order_by, ascending=order_by == "Biomarker", kind="mergesort"
        ).reset_index(drop=True)
    if top_n is not None:
        df = df.head(top_n)

    styler = df.style
    aggregator = _read_metadata(table, META_KEY_AGGREGATOR)
    if aggregator is not None:
        styler = styler.set_caption(f"Biomarker summary (aggregator: {aggregator})")
    if decimal_places is None:
        return styler

    format_str = f"{{:,.{decimal_places}f}}"
    return styler.format(format_str, subset=FLOAT_COLUMNS, na_rep="nan")
