from .modelling import (
    FitterConfig,
    ModelFitter,
    ModelInputs,
    fit_model,
    prepare_model_inputs,
)

__all__ = [
    "prepare_model_inputs",
    "fit_model",
    "FitterConfig",
    "ModelFitter",
    "ModelInputs",
]
