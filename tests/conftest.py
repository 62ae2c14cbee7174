import logging
import math
import time
import warnings
from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest

from tuner.backend.base_backend import ModelBackend, ProcessedData
from tuner.resampling.resample_generator import ResampleGenerator


class CountingBackend(ModelBackend):
    """
    Small deterministic backend: prediction = (x + shift) * scale.

    Records every preprocessing and model fit so tests can count them.
    """

    outcome = "y"

    def __init__(self, preprocessing_parameters=("shift",), model_parameters=("scale",),
                 model_warning=None, fatal_warnings=(), model_sleep=0.0, submodel_parameter=None):
        self.preprocessing_parameters = tuple(preprocessing_parameters)
        self.model_parameters = tuple(model_parameters)
        self.model_warning = model_warning
        self.fatal_warnings = tuple(fatal_warnings)
        self.model_sleep = model_sleep
        self.submodel_parameter = submodel_parameter
        self.prep_fits = []
        self.model_fits = []

    def fit_preprocessing(self, train_view, params):
        shift = params.get("shift", 0.0)
        self.prep_fits.append(dict(params))
        if isinstance(shift, float) and math.isnan(shift):
            raise ValueError("shift must be a finite number")
        return {"shift": shift}

    def apply_preprocessing(self, artifact, view):
        X = view[["x"]].to_numpy(dtype=float) + artifact["shift"]
        return ProcessedData(X=X, y=view["y"].to_numpy())

    def fit_model(self, processed_train, params):
        self.model_fits.append(dict(params))
        if self.model_sleep:
            time.sleep(self.model_sleep)
        scale = params.get("scale", 1.0)
        if self.model_warning is not None:
            warnings.warn(f"model is unhappy with scale {scale}", self.model_warning)
        if scale < 0:
            raise RuntimeError("scale must be non-negative")
        return {"scale": scale}

    def predict(self, model, processed):
        return processed.X[:, 0] * model["scale"]

    def predict_submodels(self, model, processed, values):
        return {value: processed.X[:, 0] * value for value in values}


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(0)
    x = np.arange(40, dtype=float)
    return pd.DataFrame({"x": x, "y": 2.0 * x + rng.normal(0, 0.5, size=40)})


@pytest.fixture
def four_folds(regression_data):
    return ResampleGenerator().generate(regression_data, {"strategy": "vfold", "v": 4, "seed": 1})


@pytest.fixture
def counting_backend():
    return CountingBackend()


@pytest.fixture
def in_memory_config(tmp_path):
    return {"outputs": {"base_results_dir": str(tmp_path), "skip_dir_creation": True}}
