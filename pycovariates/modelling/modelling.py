"""
Boundary with the external model fitting engine.

pycovariates does not fit models. It prepares the joined data and the
assembled formula, validates them, and hands both to a user-supplied fitter
together with an explicit `FitterConfig`.
"""

import logging
import warnings
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

import pandas as pd
import pyarrow as pa

from ..errors import ColumnCollisionError
from ..formula import DEFAULT_PLACEHOLDER, AssembledFormula, FormulaTemplate, assemble_formula
from ..io._io_utils import META_KEY_SAMPLE_COL as META_KEY_EVENT_SAMPLE_COL
from ..io._io_utils import _read_metadata
from ..matrix import (
    META_KEY_SAMPLE_COL,
    Aggregator,
    build_biomarker_matrix,
    get_biomarker_columns,
    join_covariates,
)
from ..matrix._matrix_utils import META_KEY_CLINICAL_COLS, _as_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitterConfig:
    """
    Sampler settings passed explicitly to a `ModelFitter`.

    Attributes:
        cores: Number of parallel chains / worker processes.
        chains: Number of MCMC chains.
        draws: Posterior draws per chain.
        tune: Warm-up iterations per chain.
        seed: Optional random seed.
        options: Extra engine-specific keyword arguments.
    """

    cores: int = 1
    chains: int = 4
    draws: int = 1000
    tune: int = 1000
    seed: int | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("cores", "chains", "draws"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer.")
        if not isinstance(self.tune, int) or isinstance(self.tune, bool) or self.tune < 0:
            raise ValueError("tune must be a non-negative integer.")
        if self.seed is not None and (not isinstance(self.seed, int) or isinstance(self.seed, bool)):
            raise TypeError("seed must be an integer or None.")
        if not isinstance(self.options, Mapping):
            raise TypeError("options must be a mapping.")
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@runtime_checkable
class ModelFitter(Protocol):
    """Anything with a ``fit(data, formula, config)`` method, e.g. a bambi wrapper."""

    def fit(self, data: pd.DataFrame, formula: AssembledFormula, config: FitterConfig) -> Any:
        ...


@dataclass(frozen=True)
class ModelInputs:
    """
    Validated inputs for one model fit.

    Attributes:
        data: The joined covariate table as a DataFrame.
        formula: The assembled formula.
        biomarker_terms: Biomarker columns, in matrix order.
        clinical_terms: Clinical columns (excluding the key).
        key: The sample id column.
        table: The joined PyArrow Table, with pycovariates metadata.
    """

    data: pd.DataFrame
    formula: AssembledFormula
    biomarker_terms: tuple[str, ...]
    clinical_terms: tuple[str, ...]
    key: str
    table: pa.Table


def _rename_sample_column(matrix: pa.Table, sample_col: str, key: str) -> pa.Table:
    if key in matrix.column_names:
        raise ColumnCollisionError(
            f"Cannot rename sample column '{sample_col}' to join key '{key}': "
            "a biomarker column already has that name."
        )
    names = [key if c == sample_col else c for c in matrix.column_names]
    metadata = dict(matrix.schema.metadata or {})
    metadata[META_KEY_SAMPLE_COL.encode("utf-8")] = key.encode("utf-8")
    return matrix.rename_columns(names).replace_schema_metadata(metadata)


def prepare_model_inputs(
    events: pa.Table | pd.DataFrame,
    clinical_table: pa.Table | pd.DataFrame,
    template: FormulaTemplate | str,
    *,
    key: str,
    aggregator: str | Aggregator | Callable = "presence",
    how: str = "inner",
    sample_universe: Iterable | None = None,
    group_by: str | None = None,
    engine: str = "formulae",
    empty_terms: str = "error",
    placeholder: str = DEFAULT_PLACEHOLDER,
    sample_col: str | None = None,
    biomarker_col: str | None = None,
    value_col: str | None = None,
    biomarkers: Sequence[str] | None = None,
    min_samples: int = 1,
    order: str = "appearance",
    verbosity: int = 0,
) -> ModelInputs:
    """
    Runs matrix building, joining and formula assembly for one model fit.

    Every input-shape problem surfaces here, before any fitting starts.

    Args:
        events: Long-format biomarker events.
        clinical_table: Clinical covariates keyed by `key`.
        template: Formula template (object or string) with a placeholder.
        key: Sample id column of the clinical table. The event sample column
             (`sample_col`, or the one recorded by `load_event_data`, or `key`
             itself) is renamed to `key` if it differs.
        aggregator: Aggregator for `build_biomarker_matrix`. Defaults to 'presence'.
        how: Join mode, 'inner' (default) or 'left'.
        sample_universe: Optional sample universe for the matrix rows.
        group_by: Optional grouping variable for per-group biomarker slopes.
        engine: Formula engine used for name quoting. Defaults to 'formulae'.
        empty_terms: Empty biomarker list policy ('error', 'identity', 'drop').
        placeholder: Placeholder token for string templates.
        sample_col: Event sample id column.
        biomarker_col: Event biomarker id column.
        value_col: Event value column.
        biomarkers: Optional fixed biomarker panel.
        min_samples: Minimum number of carriers per biomarker column.
        order: Row/column order of the matrix ('appearance' or 'sorted').
        verbosity: Controls logging and warnings (see `build_biomarker_matrix`).

    Returns:
        A ModelInputs bundle.

    Raises:
        Any error of `build_biomarker_matrix`, `join_covariates` or
        `assemble_formula`.
    """
    events_table = _as_table(events, "events")
    if sample_col is None:
        sample_col = _read_metadata(events_table, META_KEY_EVENT_SAMPLE_COL) or key

    matrix = build_biomarker_matrix(
        events_table,
        aggregator,
        sample_universe,
        sample_col=sample_col,
        biomarker_col=biomarker_col,
        value_col=value_col,
        biomarkers=biomarkers,
        min_samples=min_samples,
        order=order,
        verbosity=verbosity,
    )
    if sample_col != key:
        matrix = _rename_sample_column(matrix, sample_col, key)

    joined = join_covariates(matrix, clinical_table, key, how, verbosity=verbosity)
    biomarker_terms = get_biomarker_columns(joined)
    clinical_terms = _read_metadata(joined, META_KEY_CLINICAL_COLS, as_json=True) or []

    formula = assemble_formula(
        template,
        biomarker_terms,
        group_by,
        engine=engine,
        empty_terms=empty_terms,
        placeholder=placeholder,
        verbosity=verbosity,
    )

    # Only plain names can be checked; terms such as 'C(stage)' are left to the engine
    referenced = list(formula.covariates)
    if formula.outcome is not None:
        referenced.insert(0, formula.outcome)
    unknown = [
        name for name in referenced if name.isidentifier() and name not in joined.column_names
    ]
    if unknown and verbosity <= 0:
        warnings.warn(
            f"Formula references column(s) not present in the joined data: {unknown}",
            UserWarning,
        )

    return ModelInputs(
        data=joined.to_pandas(),
        formula=formula,
        biomarker_terms=tuple(biomarker_terms),
        clinical_terms=tuple(clinical_terms),
        key=key,
        table=joined,
    )


def fit_model(
    inputs: ModelInputs,
    fitter: ModelFitter,
    config: FitterConfig | None = None,
    verbosity: int = 0,
) -> Any:
    """
    Hands prepared inputs to an external model fitter.

    Args:
        inputs: Output of `prepare_model_inputs`.
        fitter: Object implementing `ModelFitter`.
        config: Sampler configuration. Defaults to `FitterConfig()` (one core).
        verbosity: `<= -1` logs the fit request at INFO.

    Returns:
        Whatever the fitter returns.

    Raises:
        TypeError: If `inputs`, `fitter` or `config` have the wrong type.
    """
    if not isinstance(inputs, ModelInputs):
        raise TypeError("inputs must be a ModelInputs instance (see prepare_model_inputs).")
    if not isinstance(fitter, ModelFitter):
        raise TypeError("fitter must provide a fit(data, formula, config) method.")
    if config is None:
        config = FitterConfig()
    elif not isinstance(config, FitterConfig):
        raise TypeError("config must be a FitterConfig or None.")

    if verbosity <= -1:
        logger.info(
            f"Fitting '{inputs.formula.text}' on {len(inputs.data)} sample(s) "
            f"with {config.chains} chain(s) on {config.cores} core(s)."
        )
    return fitter.fit(inputs.data, inputs.formula, config)
