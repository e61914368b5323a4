import sys

sys.path.insert(0, '..')

import pandas as pd

from pycovariates import io as io
from pycovariates import visualisation as vis
from pycovariates.formula import assemble_formula
from pycovariates.matrix import build_biomarker_matrix, get_biomarker_columns, join_covariates
from pycovariates.modelling import FitterConfig, fit_model, prepare_model_inputs

# Small MAF-like mutation table: several calls per gene for some samples
mutations = pd.DataFrame(
    {
        "Tumor_Sample_Barcode": ["P01", "P01", "P01", "P02", "P02", "P03", "P04"],
        "Hugo_Symbol": ["TP53", "TP53", "KRAS", "TP53", "EGFR", "KRAS", "TP53"],
        "Variant_Classification": [
            "Missense_Mutation",
            "Nonsense_Mutation",
            "Missense_Mutation",
            "Missense_Mutation",
            "In_Frame_Del",
            "Missense_Mutation",
            "Frame_Shift_Del",
        ],
    }
)
clinical = pd.DataFrame(
    {
        "Tumor_Sample_Barcode": ["P01", "P02", "P03", "P05"],
        "age": [64.0, 58.0, 71.0, 49.0],
        "sex": ["F", "M", "M", "F"],
        "site": ["A", "A", "B", "B"],
        "response": [1, 0, 1, 0],
    }
)

events = io.load_event_data(
    mutations, sample_col="Tumor_Sample_Barcode", biomarker_col="Hugo_Symbol"
)
print(f"Number of events: {events.num_rows}")

# Gene-level presence matrix
matrix = build_biomarker_matrix(events, aggregator="presence")
print(matrix.to_pandas())

# Gene + mutation type features, counting distinct effects per gene
typed = io.load_event_data(
    mutations,
    sample_col="Tumor_Sample_Barcode",
    biomarker_col="mutation",
    biomarker_cols=["Hugo_Symbol", "Variant_Classification"],
)
print(get_biomarker_columns(build_biomarker_matrix(typed)))

distinct = build_biomarker_matrix(
    events, aggregator="count_distinct", value_col="Variant_Classification"
)
print(distinct.to_pandas())

# Left join keeps P05, which has no mutation calls
joined = join_covariates(matrix, clinical, key="Tumor_Sample_Barcode", how="left")
print(joined.to_pandas())
print(vis.summarise_biomarker_matrix(joined))

formula = assemble_formula(
    "response ~ age + sex + __PLACEHOLDER__ + (1 | site)",
    get_biomarker_columns(joined),
)
print(formula.text)


class PrintingFitter:
    def fit(self, data, formula, config):
        print(f"Would fit {formula.text} on {len(data)} samples with {config.cores} core(s)")
        return None


inputs = prepare_model_inputs(
    events,
    clinical,
    "response ~ age + sex + __PLACEHOLDER__",
    key="Tumor_Sample_Barcode",
    how="left",
    empty_terms="drop",
)
fit_model(inputs, PrintingFitter(), FitterConfig(cores=2, chains=2))
