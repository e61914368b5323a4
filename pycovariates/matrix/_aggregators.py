"""
Aggregators reducing the events of one (sample, biomarker) pair to a cell value.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import pandas as pd
from pandas.core.groupby import SeriesGroupBy


@dataclass(frozen=True)
class Aggregator:
    """
    A named reduction over the multiset of event values of each pair.

    Attributes:
        name: Identifier recorded in the matrix metadata.
        reduce: Callable mapping a grouped value series to one value per group.
        default: Cell value for pairs with no events.
        numeric: True if the event values must be numeric (or boolean).
        integer: True if the result is always an integer count.
    """

    name: str
    reduce: Callable[[SeriesGroupBy], pd.Series]
    default: float = 0
    numeric: bool = False
    integer: bool = False


def _count(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.size()


def _presence(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.size().gt(0).astype("int64")


def _count_distinct(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.nunique(dropna=True)


def _sum(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.sum(min_count=1)


def _max(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.max()


def _min(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.min()


def _mean(grouped: SeriesGroupBy) -> pd.Series:
    return grouped.mean()


BUILTIN_AGGREGATORS: dict[str, Aggregator] = {
    "count": Aggregator("count", _count, integer=True),
    "presence": Aggregator("presence", _presence, integer=True),
    "count_distinct": Aggregator("count_distinct", _count_distinct, integer=True),
    "sum": Aggregator("sum", _sum, numeric=True),
    "max": Aggregator("max", _max, numeric=True),
    "min": Aggregator("min", _min, numeric=True),
    "mean": Aggregator("mean", _mean, numeric=True),
}


def resolve_aggregator(aggregator: str | Aggregator | Callable) -> Aggregator:
    """
    Resolves an aggregator name, instance or callable to an `Aggregator`.

    Args:
        aggregator: A built-in name (see `BUILTIN_AGGREGATORS`), an `Aggregator`
                    instance, or a callable taking the pandas Series of values of
                    one pair and returning a scalar. Callables always see the
                    values in a canonical order, never input order.

    Returns:
        The resolved Aggregator.

    Raises:
        ValueError: If a name is not a known built-in aggregator.
        TypeError: If `aggregator` is of an unsupported type.
    """
    if isinstance(aggregator, Aggregator):
        return aggregator
    if isinstance(aggregator, str):
        try:
            return BUILTIN_AGGREGATORS[aggregator]
        except KeyError:
            raise ValueError(
                f"Unknown aggregator '{aggregator}'. "
                f"Supported aggregators are: {sorted(BUILTIN_AGGREGATORS)}"
            ) from None
    if callable(aggregator):
        func = aggregator
        return Aggregator(
            name=getattr(func, "__name__", "custom"),
            reduce=lambda grouped: grouped.agg(func),
        )
    raise TypeError(
        "aggregator must be a built-in aggregator name, an Aggregator or a callable, "
        f"got {type(aggregator).__name__}."
    )


def _is_integral(value) -> bool:
    return isinstance(value, (bool, int, np.integer)) or (
        isinstance(value, (float, np.floating)) and float(value).is_integer()
    )
