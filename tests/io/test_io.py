import json

import pandas as pd
import pyarrow as pa
import pyarrow.csv as pv
import pyarrow.parquet as pq
import pytest

from pycovariates.io import (
    META_KEY_BIOMARKER_COL,
    META_KEY_COVARIATE_COLS,
    META_KEY_KEY_COL,
    META_KEY_SAMPLE_COL,
    META_KEY_VALUE_COL,
    export_covariate_table,
    load_clinical_data,
    load_event_data,
)
from pycovariates.matrix import build_biomarker_matrix, get_biomarker_columns

##########################
# Fixtures for Test Data #
##########################


@pytest.fixture
def valid_csv_path(tmp_path, mutation_events):
    """Creates a valid CSV file in a temporary directory."""
    path = tmp_path / "events.csv"
    mutation_events.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def valid_tsv_path(tmp_path, mutation_events):
    """Creates a tab separated MAF-like file."""
    path = tmp_path / "events.tsv"
    mutation_events.to_csv(path, index=False, sep="\t")
    return str(path)


@pytest.fixture
def valid_parquet_path(tmp_path, mutation_events):
    """Creates a valid Parquet file in a temporary directory."""
    path = tmp_path / "events.parquet"
    pq.write_table(pa.Table.from_pandas(mutation_events, preserve_index=False), path)
    return str(path)


@pytest.fixture
def base_event_args():
    """Provides base arguments for load_event_data."""
    return {"sample_col": "sample_id", "biomarker_col": "gene", "value_col": "vaf"}


def _metadata(table, key):
    raw = (table.schema.metadata or {}).get(key.encode("utf-8"))
    return None if raw is None else raw.decode("utf-8")


#######################
# load_event_data     #
#######################


def test_load_events_from_dataframe(mutation_events, base_event_args):
    """Tests successful loading from a Pandas DataFrame."""
    table = load_event_data(mutation_events, **base_event_args)
    assert isinstance(table, pa.Table)
    assert table.num_rows == len(mutation_events)
    assert _metadata(table, META_KEY_SAMPLE_COL) == "sample_id"
    assert _metadata(table, META_KEY_BIOMARKER_COL) == "gene"
    assert _metadata(table, META_KEY_VALUE_COL) == "vaf"


def test_load_events_without_value_column(mutation_events):
    """The value column key is omitted when no value column is given."""
    table = load_event_data(mutation_events, sample_col="sample_id", biomarker_col="gene")
    assert _metadata(table, META_KEY_VALUE_COL) is None


def test_reload_without_value_column_clears_recorded_value(mutation_events, base_event_args):
    """Re-tagging a loaded table with value_col=None drops the old value column key."""
    tagged = load_event_data(mutation_events, **base_event_args)
    assert _metadata(tagged, META_KEY_VALUE_COL) == "vaf"

    reloaded = load_event_data(tagged, sample_col="sample_id", biomarker_col="gene")
    assert _metadata(reloaded, META_KEY_VALUE_COL) is None
    assert _metadata(reloaded, META_KEY_SAMPLE_COL) == "sample_id"

    # presence counts, not summed allele fractions
    matrix = build_biomarker_matrix(reloaded, "sum").to_pandas().set_index("sample_id")
    assert matrix.loc["S1", "TP53"] == 2
    assert matrix.loc["S1", "KRAS"] == 1


def test_load_events_from_arrow_table(mutation_events, base_event_args):
    source = pa.Table.from_pandas(mutation_events, preserve_index=False)
    table = load_event_data(source, **base_event_args)
    assert table.num_rows == source.num_rows


def test_load_events_from_csv(valid_csv_path, base_event_args, mutation_events):
    """Tests successful loading from a CSV file."""
    table = load_event_data(valid_csv_path, **base_event_args)
    assert table.num_rows == len(mutation_events)
    assert pa.types.is_floating(table.schema.field("vaf").type)


def test_load_events_from_tsv_uses_tab_delimiter(valid_tsv_path, base_event_args):
    table = load_event_data(valid_tsv_path, **base_event_args)
    assert table.column_names == ["sample_id", "gene", "effect", "vaf"]


def test_load_events_from_parquet(valid_parquet_path, base_event_args, mutation_events):
    """Tests successful loading from a Parquet file."""
    table = load_event_data(valid_parquet_path, **base_event_args)
    assert table.num_rows == len(mutation_events)
    assert pa.types.is_float64(table.schema.field("vaf").type)


def test_load_events_with_csv_read_options(tmp_path, mutation_events, base_event_args):
    """Reader options are passed through to pyarrow.csv.read_csv."""
    path = tmp_path / "events_semicolon.csv"
    mutation_events.to_csv(path, index=False, sep=";")
    table = load_event_data(
        str(path),
        read_options={"csv": {"parse_options": pv.ParseOptions(delimiter=";")}},
        **base_event_args,
    )
    assert "gene" in table.column_names


def test_load_events_builds_composite_ids(mutation_events):
    table = load_event_data(
        mutation_events,
        sample_col="sample_id",
        biomarker_col="biomarker_id",
        biomarker_cols=["gene", "effect"],
    )
    assert table.column("biomarker_id").to_pylist()[:3] == [
        "TP53.Missense_Mutation",
        "TP53.Nonsense_Mutation",
        "KRAS.Missense_Mutation",
    ]
    assert _metadata(table, META_KEY_BIOMARKER_COL) == "biomarker_id"


def test_load_events_composite_ids_custom_separator(mutation_events):
    table = load_event_data(
        mutation_events,
        sample_col="sample_id",
        biomarker_col="biomarker_id",
        biomarker_cols=["gene", "effect"],
        biomarker_sep=":",
    )
    assert table.column("biomarker_id")[0].as_py() == "TP53:Missense_Mutation"


def test_load_events_composite_ids_need_two_columns(mutation_events):
    with pytest.raises(ValueError, match="at least two columns"):
        load_event_data(
            mutation_events,
            sample_col="sample_id",
            biomarker_col="biomarker_id",
            biomarker_cols=["gene"],
        )


def test_loaded_events_feed_the_matrix_builder(mutation_events):
    """Column names recorded by the loader are picked up by build_biomarker_matrix."""
    table = load_event_data(mutation_events, sample_col="sample_id", biomarker_col="gene")
    matrix = build_biomarker_matrix(table)
    assert get_biomarker_columns(matrix) == ["TP53", "KRAS", "EGFR"]


################################
# Test Functions - Error Cases #
################################


def test_load_events_missing_column(mutation_events, base_event_args):
    with pytest.raises(ValueError, match="Missing required columns"):
        load_event_data(mutation_events.drop(columns=["gene"]), **base_event_args)


def test_load_events_same_sample_and_biomarker_column(mutation_events):
    with pytest.raises(ValueError, match="must differ"):
        load_event_data(mutation_events, sample_col="sample_id", biomarker_col="sample_id")


def test_load_events_float_sample_ids_rejected():
    df = pd.DataFrame({"sample_id": [1.5, 2.5], "gene": ["TP53", "KRAS"]})
    with pytest.raises(ValueError, match="string or integer type"):
        load_event_data(df, sample_col="sample_id", biomarker_col="gene")


def test_load_events_integer_sample_ids_accepted():
    df = pd.DataFrame({"sample_id": [101, 102], "gene": ["TP53", "KRAS"]})
    table = load_event_data(df, sample_col="sample_id", biomarker_col="gene")
    assert pa.types.is_integer(table.schema.field("sample_id").type)


def test_load_events_nested_value_rejected():
    df = pd.DataFrame(
        {"sample_id": ["S1", "S2"], "gene": ["TP53", "KRAS"], "vaf": [[0.1], [0.2, 0.3]]}
    )
    with pytest.raises(ValueError, match="scalar values"):
        load_event_data(df, sample_col="sample_id", biomarker_col="gene", value_col="vaf")


def test_load_events_file_not_found(tmp_path, base_event_args):
    with pytest.raises(FileNotFoundError):
        load_event_data(str(tmp_path / "missing.csv"), **base_event_args)


def test_load_events_unknown_extension(tmp_path, base_event_args):
    path = tmp_path / "events.xlsx"
    path.write_text("sample_id,gene\nS1,TP53\n")
    with pytest.raises(TypeError, match="Cannot infer source type"):
        load_event_data(str(path), **base_event_args)


def test_load_events_unsupported_source(base_event_args):
    with pytest.raises(TypeError, match="Unsupported source type"):
        load_event_data([("S1", "TP53")], **base_event_args)


def test_load_events_source_type_mismatch(mutation_events, base_event_args):
    with pytest.raises(ValueError, match="source_type is 'csv'"):
        load_event_data(mutation_events, source_type="csv", **base_event_args)


#######################
# load_clinical_data  #
#######################


def test_load_clinical_keeps_all_columns(clinical_covariates):
    table = load_clinical_data(clinical_covariates, key="sample_id")
    assert table.column_names == list(clinical_covariates.columns)
    assert _metadata(table, META_KEY_KEY_COL) == "sample_id"
    assert json.loads(_metadata(table, META_KEY_COVARIATE_COLS)) == [
        "age",
        "sex",
        "site",
        "response",
    ]


def test_load_clinical_selects_covariates_in_order(clinical_covariates):
    table = load_clinical_data(clinical_covariates, key="sample_id", covariates=["sex", "age"])
    assert table.column_names == ["sample_id", "sex", "age"]


def test_load_clinical_key_listed_as_covariate(clinical_covariates):
    with pytest.raises(ValueError, match="must not be listed as a covariate"):
        load_clinical_data(clinical_covariates, key="sample_id", covariates=["sample_id", "age"])


def test_load_clinical_missing_covariate(clinical_covariates):
    with pytest.raises(ValueError, match="Missing required columns"):
        load_clinical_data(clinical_covariates, key="sample_id", covariates=["stage"])


def test_load_clinical_missing_key(clinical_covariates):
    with pytest.raises(ValueError, match="Missing required columns"):
        load_clinical_data(clinical_covariates, key="patient_id")


def test_load_clinical_from_csv(tmp_path, clinical_covariates):
    path = tmp_path / "clinical.csv"
    clinical_covariates.to_csv(path, index=False)
    table = load_clinical_data(str(path), key="sample_id")
    assert table.num_rows == 3


##########################
# export_covariate_table #
##########################


@pytest.fixture
def presence_matrix(mutation_events):
    return build_biomarker_matrix(mutation_events, sample_col="sample_id", biomarker_col="gene")


def test_export_to_dataframe(presence_matrix):
    df = export_covariate_table(presence_matrix)
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["sample_id", "TP53", "KRAS", "EGFR"]


def test_export_to_csv(tmp_path, presence_matrix):
    path = tmp_path / "matrix.csv"
    result = export_covariate_table(presence_matrix, str(path), format="csv")
    assert result is None
    read_back = pd.read_csv(path)
    assert list(read_back.columns) == ["sample_id", "TP53", "KRAS", "EGFR"]
    assert read_back["TP53"].tolist() == [1, 1, 0]


def test_export_to_csv_with_write_options(tmp_path, presence_matrix):
    path = tmp_path / "matrix.csv"
    export_covariate_table(
        presence_matrix, str(path), format="csv", write_options={"include_header": False}
    )
    first_line = path.read_text().splitlines()[0]
    assert "sample_id" not in first_line


def test_export_to_parquet_keeps_metadata(tmp_path, presence_matrix):
    path = tmp_path / "matrix.parquet"
    export_covariate_table(presence_matrix, str(path), format="parquet")
    read_back = pq.read_table(path)
    assert get_biomarker_columns(read_back) == ["TP53", "KRAS", "EGFR"]


def test_export_invalid_format(presence_matrix):
    with pytest.raises(ValueError, match="Invalid format"):
        export_covariate_table(presence_matrix, format="xlsx")


def test_export_requires_output_path(presence_matrix):
    with pytest.raises(ValueError, match="output_path must be provided"):
        export_covariate_table(presence_matrix, format="parquet")


def test_export_rejects_non_table():
    with pytest.raises(TypeError, match="pyarrow.Table"):
        export_covariate_table(pd.DataFrame({"a": [1]}))
