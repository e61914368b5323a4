"""
Tests for pandera schema validation and property-based checks.

This module tests the pandera schemas defined in tests/schemas.py and uses
hypothesis-generated event tables to check the matrix, join and formula
properties that must hold for any input.
"""

import pandas as pd
import pandera
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pycovariates.formula import assemble_formula, quote_term
from pycovariates.matrix import build_biomarker_matrix, get_biomarker_columns, join_covariates
from tests.schemas import (
    biomarker_matrix_schema,
    clinical_covariate_schema,
    joined_table_schema,
    mutation_event_schema,
)

SAMPLES = ["S1", "S2", "S3", "S4", "S5"]
GENES = ["TP53", "KRAS", "EGFR", "BRAF", "PIK3CA"]
EFFECTS = ["Missense_Mutation", "Nonsense_Mutation", "Frame_Shift_Del"]

event_rows = st.lists(
    st.tuples(
        st.sampled_from(SAMPLES),
        st.sampled_from(GENES),
        st.sampled_from(EFFECTS),
        st.floats(min_value=0.0, max_value=1.0, allow_nan=False),
    ),
    min_size=1,
    max_size=40,
)


def _events(rows) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["sample_id", "gene", "effect", "vaf"])


COLS = {"sample_col": "sample_id", "biomarker_col": "gene"}

# strict and ordered schemas may collect several failures into SchemaErrors
SCHEMA_ERRORS = (pandera.errors.SchemaError, pandera.errors.SchemaErrors)


class TestMutationEventSchema:
    """Tests for the mutation event schema."""

    def test_schema_validates_fixture(self, mutation_events):
        validated = mutation_event_schema.validate(mutation_events, lazy=True)
        assert len(validated) == len(mutation_events)

    def test_schema_rejects_invalid_vaf(self, mutation_events):
        invalid = mutation_events.assign(vaf=[1.5] + mutation_events["vaf"].tolist()[1:])
        with pytest.raises(SCHEMA_ERRORS):
            mutation_event_schema.validate(invalid)

    def test_schema_rejects_empty_gene(self, mutation_events):
        invalid = mutation_events.copy()
        invalid.loc[0, "gene"] = ""
        with pytest.raises(SCHEMA_ERRORS):
            mutation_event_schema.validate(invalid)

    def test_schema_accepts_missing_optional_columns(self, mutation_events):
        minimal = mutation_events[["sample_id", "gene"]]
        assert mutation_event_schema.validate(minimal) is not None


class TestClinicalCovariateSchema:
    def test_schema_validates_fixture(self, clinical_covariates):
        assert clinical_covariate_schema.validate(clinical_covariates) is not None

    def test_schema_rejects_duplicate_samples(self, clinical_covariates):
        duplicated = pd.concat([clinical_covariates, clinical_covariates.iloc[[0]]])
        with pytest.raises(SCHEMA_ERRORS):
            clinical_covariate_schema.validate(duplicated)


class TestBiomarkerMatrixSchema:
    def test_schema_rejects_duplicate_rows(self):
        df = pd.DataFrame({"sample_id": ["S1", "S1"], "TP53": [1, 0]})
        with pytest.raises(SCHEMA_ERRORS):
            biomarker_matrix_schema("sample_id", ["TP53"]).validate(df)

    def test_schema_rejects_non_binary_presence(self):
        df = pd.DataFrame({"sample_id": ["S1", "S2"], "TP53": [1, 2]})
        with pytest.raises(SCHEMA_ERRORS):
            biomarker_matrix_schema("sample_id", ["TP53"]).validate(df)

    def test_schema_rejects_extra_columns(self):
        df = pd.DataFrame({"sample_id": ["S1"], "TP53": [1], "age": [50.0]})
        with pytest.raises(SCHEMA_ERRORS):
            biomarker_matrix_schema("sample_id", ["TP53"]).validate(df)


class TestMatrixProperties:
    """Property-based checks of build_biomarker_matrix on generated events."""

    @given(rows=event_rows)
    @settings(max_examples=50, deadline=None)
    def test_presence_matrix_conforms_to_schema(self, rows):
        events = _events(rows)
        matrix = build_biomarker_matrix(events, **COLS)
        biomarkers = get_biomarker_columns(matrix)
        df = matrix.to_pandas()

        biomarker_matrix_schema("sample_id", biomarkers).validate(df)
        assert set(df["sample_id"]) == set(events["sample_id"])
        assert set(biomarkers) == set(events["gene"])
        # every column was built from at least one event
        assert (df[biomarkers].sum(axis=0) >= 1).all()

    @given(rows=event_rows)
    @settings(max_examples=50, deadline=None)
    def test_count_matrix_totals_match_event_count(self, rows):
        matrix = build_biomarker_matrix(_events(rows), "count", **COLS)
        df = matrix.to_pandas()
        assert int(df[get_biomarker_columns(matrix)].to_numpy().sum()) == len(rows)

    @given(rows=event_rows)
    @settings(max_examples=50, deadline=None)
    def test_count_distinct_bounded_by_count(self, rows):
        events = _events(rows)
        count = build_biomarker_matrix(events, "count", **COLS).to_pandas()
        distinct = build_biomarker_matrix(
            events, "count_distinct", value_col="effect", **COLS
        ).to_pandas()
        presence = build_biomarker_matrix(events, **COLS).to_pandas()
        cols = [c for c in count.columns if c != "sample_id"]
        assert (distinct[cols] <= count[cols]).all().all()
        assert (presence[cols] <= distinct[cols]).all().all()

    @given(data=st.data(), rows=event_rows)
    @settings(max_examples=50, deadline=None)
    def test_matrix_does_not_depend_on_event_order(self, data, rows):
        shuffled = data.draw(st.permutations(rows))
        for aggregator in ("sum", "mean", "max"):
            original = build_biomarker_matrix(
                _events(rows), aggregator, value_col="vaf", order="sorted", **COLS
            )
            permuted = build_biomarker_matrix(
                _events(shuffled), aggregator, value_col="vaf", order="sorted", **COLS
            )
            pd.testing.assert_frame_equal(original.to_pandas(), permuted.to_pandas())

    @given(
        rows=event_rows,
        universe=st.lists(st.sampled_from(SAMPLES + ["S6", "S7"]), min_size=1, unique=True),
    )
    @settings(max_examples=50, deadline=None)
    def test_rows_match_sample_universe(self, rows, universe):
        matrix = build_biomarker_matrix(_events(rows), sample_universe=universe, **COLS)
        assert matrix.column("sample_id").to_pylist() == universe


class TestJoinProperties:
    @given(
        rows=event_rows,
        clinical_ids=st.lists(st.sampled_from(SAMPLES + ["S6", "S7"]), min_size=1, unique=True),
    )
    @settings(max_examples=50, deadline=None)
    def test_join_row_sets(self, rows, clinical_ids):
        matrix = build_biomarker_matrix(_events(rows), **COLS)
        clinical = pd.DataFrame(
            {"sample_id": clinical_ids, "age": [50.0 + i for i in range(len(clinical_ids))]}
        )
        matrix_ids = set(matrix.column("sample_id").to_pylist())
        biomarkers = get_biomarker_columns(matrix)

        inner = join_covariates(matrix, clinical, "sample_id", verbosity=1)
        left = join_covariates(matrix, clinical, "sample_id", how="left", verbosity=1)

        assert set(inner.column("sample_id").to_pylist()) == matrix_ids & set(clinical_ids)
        assert left.column("sample_id").to_pylist() == clinical_ids
        joined_table_schema("sample_id", ["age"], biomarkers).validate(left.to_pandas())


class TestFormulaProperties:
    @given(
        names=st.lists(
            st.text(min_size=1, max_size=12).filter(
                lambda s: s.strip() == s and "`" not in s and s not in ("", "age")
            ),
            min_size=1,
            max_size=8,
            unique=True,
        )
    )
    @settings(max_examples=100, deadline=None)
    def test_every_biomarker_term_appears_once(self, names):
        formula = assemble_formula("y ~ age + __PLACEHOLDER__", names)
        assert formula.biomarker_terms == tuple(names)
        assert formula.fixed_terms == ("age", *(quote_term(n) for n in names))
        assert formula.covariates == ("age", *names)

    @given(
        names=st.lists(
            st.text(min_size=1, max_size=12).filter(lambda s: s.strip() == s and s != "age"),
            min_size=1,
            max_size=8,
            unique=True,
        )
    )
    @settings(max_examples=100, deadline=None)
    def test_r_engine_quotes_any_name(self, names):
        formula = assemble_formula("y ~ age + __PLACEHOLDER__", names, engine="lme4")
        assert formula.covariates == ("age", *names)
