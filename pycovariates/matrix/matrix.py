"""
Biomarker matrix construction: pivots long-format events into one row per sample.
"""

import logging
import warnings
from collections.abc import Callable, Iterable, Sequence

import pandas as pd
import pyarrow as pa

from ..errors import MalformedEventError
from ..io._io_core import _build_composite_ids
from ..io._io_utils import (
    META_KEY_BIOMARKER_COL,
    META_KEY_SAMPLE_COL as META_KEY_EVENT_SAMPLE_COL,
    META_KEY_VALUE_COL,
    _attach_metadata,
    _read_metadata,
)
from ._aggregators import Aggregator, resolve_aggregator
from ._matrix_utils import (
    META_KEY_AGGREGATOR,
    META_KEY_BIOMARKER_COLS,
    META_KEY_FILL_VALUE,
    META_KEY_SAMPLE_COL,
    _as_table,
    _encode_fill_value,
    _restore_integer_columns,
)

logger = logging.getLogger(__name__)

_PRESENCE_VALUE_COL = "__pycovariates_value__"
_ORDER_COL = "__pycovariates_order__"
VALID_ORDERS = ("appearance", "sorted")


def build_biomarker_matrix(
    events: pa.Table | pd.DataFrame,
    aggregator: str | Aggregator | Callable = "presence",
    sample_universe: Iterable | None = None,
    *,
    sample_col: str | None = None,
    biomarker_col: str | None = None,
    value_col: str | None = None,
    fill_value: float | None = None,
    biomarkers: Sequence[str] | None = None,
    min_samples: int = 1,
    order: str = "appearance",
    verbosity: int = 0,
) -> pa.Table:
    """
    Pivots a long-format event table into a wide biomarker matrix.

    Produces one row per sample and one column per distinct biomarker id. Each
    cell is the aggregator applied to the values of all events sharing that
    (sample, biomarker) pair; pairs without events receive the fill value.
    Multiple events per pair (e.g. several mutations in the same gene) are
    expected and aggregated.

    The result does not depend on the order of the input records: values are
    sorted into a canonical order before aggregation, so even order-sensitive
    reductions (floating point sums, custom callables) see the same sequence.

    Args:
        events: Event table, typically from `pycovariates.io.load_event_data`.
        aggregator: A built-in aggregator name ('presence' (default), 'count',
                    'count_distinct', 'sum', 'max', 'min', 'mean'), an
                    `Aggregator`, or a callable reducing a pandas Series of the
                    pair's values to a scalar.
        sample_universe: Optional sample ids that must appear as rows even
                         without events. Observed samples outside the universe
                         are dropped. If None, rows are the observed samples.
        sample_col: Sample id column. Defaults to the value recorded in the
                    table metadata by `load_event_data`.
        biomarker_col: Biomarker id column. Defaults to the recorded value.
        value_col: Event value column. Defaults to the recorded value; if
                   neither is set every event has the value 1.
        fill_value: Value for pairs without events. Defaults to the
                    aggregator's default (0 for every built-in aggregator).
        biomarkers: Optional fixed list of biomarker columns (e.g. a gene panel).
                    Selects and orders the columns; panel members without events
                    are filled with the fill value.
        min_samples: Drop biomarker columns that differ from the fill value in
                     fewer than this many samples. Defaults to 1 (keep all).
        order: 'appearance' (default) keeps the first-appearance order of
               samples and biomarkers (sample universe order first, if given);
               'sorted' sorts both.
        verbosity: Controls logging and warnings.
                   - `<= -1`: Show INFO, WARNING, and ERROR level messages.
                   - `== 0`: Show WARNING and ERROR level messages (default).
                   - `>= 1`: Show only ERROR level messages.

    Returns:
        A PyArrow Table with the sample column first followed by one column per
        biomarker. The schema metadata records the sample column, the ordered
        biomarker columns, the aggregator name and the fill value.

    Raises:
        MalformedEventError: If a required column is missing, any event lacks a
                             sample or biomarker id, or the event table is
                             empty and no sample universe is given.
        ValueError: If arguments are invalid or a biomarker id equals the sample
                    column name.
        TypeError: If inputs have unsupported types, or a numeric aggregator is
                   applied to non-numeric values.
    """
    ###############################
    # 1. Validate Inputs & Columns #
    ###############################
    table = _as_table(events, "events")
    agg = resolve_aggregator(aggregator)

    if order not in VALID_ORDERS:
        raise ValueError(f"Invalid order '{order}'. Must be one of {list(VALID_ORDERS)}")
    if not isinstance(min_samples, int) or isinstance(min_samples, bool) or min_samples < 1:
        raise ValueError("min_samples must be a positive integer.")

    if sample_col is None:
        sample_col = _read_metadata(table, META_KEY_EVENT_SAMPLE_COL)
    if biomarker_col is None:
        biomarker_col = _read_metadata(table, META_KEY_BIOMARKER_COL)
    if value_col is None:
        value_col = _read_metadata(table, META_KEY_VALUE_COL)
    if sample_col is None or biomarker_col is None:
        raise ValueError(
            "sample_col and biomarker_col must be given explicitly or recorded in the "
            "table metadata (see pycovariates.io.load_event_data)."
        )

    required = [sample_col, biomarker_col] + ([value_col] if value_col else [])
    missing = [c for c in required if c not in table.column_names]
    if missing:
        raise MalformedEventError(
            f"Event table is missing required columns {missing}. "
            f"Available columns: {table.column_names}"
        )

    default = agg.default if fill_value is None else fill_value

    df = table.select(required).to_pandas()
    for col in (sample_col, biomarker_col):
        # dictionary-encoded ids arrive as categoricals; group on plain values
        if isinstance(df[col].dtype, pd.CategoricalDtype):
            df[col] = df[col].astype(object)
        null_rows = df.index[df[col].isna()]
        if len(null_rows) > 0:
            raise MalformedEventError(
                f"{len(null_rows)} event(s) lack a value in '{col}' "
                f"(first at row {int(null_rows[0])})."
            )

    universe = None
    if sample_universe is not None:
        universe = list(pd.unique(pd.Series(list(sample_universe), dtype=object)))

    if df.empty and not universe:
        raise MalformedEventError(
            "Event table is empty and no sample_universe was supplied."
        )

    df[biomarker_col] = df[biomarker_col].astype(str)
    if (df[biomarker_col] == sample_col).any():
        raise ValueError(
            f"Biomarker id '{sample_col}' collides with the sample column name."
        )

    if value_col is None:
        value_col = _PRESENCE_VALUE_COL
        df[value_col] = 1
    elif agg.numeric and not (
        pd.api.types.is_numeric_dtype(df[value_col])
        or pd.api.types.is_bool_dtype(df[value_col])
    ):
        raise TypeError(
            f"Aggregator '{agg.name}' needs numeric values, but column '{value_col}' "
            f"has dtype {df[value_col].dtype}."
        )

    #########################
    # 2. Resolve Row Order  #
    #########################
    if universe is not None:
        outside = ~df[sample_col].isin(universe)
        n_outside = int(outside.sum())
        if n_outside:
            dropped = df.loc[outside, sample_col].nunique()
            if verbosity <= -1:
                logger.info(
                    f"Dropping {n_outside} event(s) from {dropped} sample(s) outside the sample universe."
                )
            df = df.loc[~outside]
        row_ids = universe
    else:
        row_ids = list(pd.unique(df[sample_col]))

    observed_ids = list(pd.unique(df[biomarker_col]))
    if biomarkers is not None:
        col_ids = list(pd.unique(pd.Series([str(b) for b in biomarkers], dtype=object)))
        unseen = [b for b in col_ids if b not in set(observed_ids)]
        if unseen and verbosity <= -1:
            logger.info(f"{len(unseen)} requested biomarker(s) have no events: {unseen}")
        if sample_col in col_ids:
            raise ValueError(
                f"Biomarker id '{sample_col}' collides with the sample column name."
            )
    else:
        col_ids = observed_ids

    if order == "sorted":
        row_ids = sorted(row_ids)
        col_ids = sorted(col_ids)

    ####################################
    # 3. Aggregate in Canonical Order  #
    ####################################
    if df.empty or not col_ids:
        wide = pd.DataFrame(index=pd.Index(row_ids, dtype=object))
        wide = wide.reindex(columns=col_ids, fill_value=default)
    else:
        canonical = df.assign(**{_ORDER_COL: df[value_col].astype(str)}).sort_values(
            [sample_col, biomarker_col, _ORDER_COL], kind="mergesort"
        )
        grouped = canonical.groupby([sample_col, biomarker_col], sort=False)[value_col]
        cells = agg.reduce(grouped)
        observed = grouped.size().unstack(biomarker_col).reindex(
            index=row_ids, columns=col_ids
        )
        wide = cells.unstack(biomarker_col).reindex(index=row_ids, columns=col_ids)
        wide = wide.where(observed.notna(), default)

    integer_result = agg.integer or (
        agg.name in ("sum", "max", "min") and pd.api.types.is_integer_dtype(df[value_col])
    )
    if integer_result:
        wide = _restore_integer_columns(wide, list(wide.columns), default)

    ###############################
    # 4. Filter Rare Biomarkers   #
    ###############################
    if wide.shape[1] > 0 and min_samples > 1:
        carriers = (wide.ne(default) & wide.notna()).sum(axis=0)
        rare = carriers.index[carriers < min_samples].tolist()
        if rare:
            if verbosity <= 0:
                warnings.warn(
                    f"Dropping {len(rare)} biomarker(s) present in fewer than "
                    f"{min_samples} sample(s).",
                    UserWarning,
                )
            wide = wide.drop(columns=rare)

    ########################
    # 5. Build Output Table #
    ########################
    biomarker_cols = [str(c) for c in wide.columns]
    wide.columns = biomarker_cols
    wide.index.name = sample_col
    out = wide.reset_index()
    result = pa.Table.from_pandas(out, preserve_index=False)

    if verbosity <= -1:
        logger.info(
            f"Built biomarker matrix with {result.num_rows} sample(s) and "
            f"{len(biomarker_cols)} biomarker(s) using aggregator '{agg.name}'."
        )

    return _attach_metadata(
        result,
        {
            META_KEY_SAMPLE_COL: sample_col,
            META_KEY_BIOMARKER_COLS: biomarker_cols,
            META_KEY_AGGREGATOR: agg.name,
            META_KEY_FILL_VALUE: _encode_fill_value(default),
        },
    )


def make_biomarker_ids(
    events: pa.Table | pd.DataFrame,
    cols: Sequence[str],
    output_col: str = "biomarker_id",
    sep: str = ".",
) -> pa.Table:
    """
    Builds composite biomarker ids (e.g. gene + mutation effect) from several columns.

    Args:
        events: Event table.
        cols: Columns joined, in order, into the composite id.
        output_col: Name of the new column. Defaults to 'biomarker_id'.
        sep: Separator between parts. Defaults to '.'.

    Returns:
        A new PyArrow Table with `output_col` appended. A null part yields a
        null id, which `build_biomarker_matrix` rejects as malformed.
    """
    table = _as_table(events, "events")
    return _build_composite_ids(table, list(cols), output_col, sep)
