"""
scikit-learn implementation of the model backend.

Preprocessing is a `Pipeline` of registered transformers, the model is built through
`ModelFactory`. Any transformer or model argument may be a `tune("name")`
placeholder; the candidate supplies its value at fit time.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import (
    FunctionTransformer,
    MinMaxScaler,
    PolynomialFeatures,
    RobustScaler,
    SplineTransformer,
    StandardScaler
)

from tuner.backend.base_backend import (
    ModelBackend,
    ProcessedData,
    Tune,
    resolve_args,
    tuned_names
)
from tuner.backend.model_factory import ModelFactory
from tuner.utils.exceptions import ConfigurationError

TRANSFORMERS = {
    'StandardScaler': StandardScaler,
    'MinMaxScaler': MinMaxScaler,
    'RobustScaler': RobustScaler,
    'PCA': PCA,
    'PolynomialFeatures': PolynomialFeatures,
    'SplineTransformer': SplineTransformer,
    'SimpleImputer': SimpleImputer
}


@dataclass
class PreprocessingStep:
    """One named transformer in the preprocessing pipeline."""
    name: str
    transformer: str
    args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.transformer not in TRANSFORMERS:
            raise ConfigurationError(
                f"Unknown transformer '{self.transformer}'. Available: {list(TRANSFORMERS)}"
            )


@dataclass
class FittedPreprocessor:
    pipeline: Pipeline
    predictors: List[str]


def _parse_args(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn `{"tune": "name"}` markers from JSON config into `Tune` placeholders."""
    parsed = {}
    for key, value in (raw or {}).items():
        if isinstance(value, Mapping) and set(value) == {"tune"}:
            parsed[key] = Tune(value["tune"])
        else:
            parsed[key] = value
    return parsed


class SklearnBackend(ModelBackend):
    """Regression backend over scikit-learn transformers and estimators."""

    def __init__(self, model: str, outcome: str, predictors: Optional[Sequence[str]] = None,
                 steps: Optional[Sequence[PreprocessingStep]] = None,
                 model_args: Optional[Mapping[str, Any]] = None,
                 fatal_warnings: Sequence[type] = ()):
        if model not in ModelFactory.MODELS:
            raise ConfigurationError(f"Unknown model name: {model}. Available: {ModelFactory.get_available_models()}")
        self.model_name = model
        self.outcome = outcome
        self.predictors = list(predictors) if predictors is not None else None
        self.steps = list(steps or [])
        self.model_args = dict(model_args or {})
        self.fatal_warnings = tuple(fatal_warnings)

        prep_names: List[str] = []
        for step in self.steps:
            for name in tuned_names(step.args):
                if name not in prep_names:
                    prep_names.append(name)
        self.preprocessing_parameters = tuple(prep_names)
        self.model_parameters = tuned_names(self.model_args)

        overlap = set(self.preprocessing_parameters) & set(self.model_parameters)
        if overlap:
            raise ConfigurationError(f"Parameters tuned in both preprocessing and model: {sorted(overlap)}")

        n_estimators = self.model_args.get('n_estimators')
        if model in ModelFactory.SUBMODEL_CAPABLE and isinstance(n_estimators, Tune):
            self.submodel_parameter = n_estimators.name
        else:
            self.submodel_parameter = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SklearnBackend":
        model_cfg = config.get('model', {})
        prep_cfg = config.get('preprocessing', {})
        steps = [
            PreprocessingStep(s['name'], s['transformer'], _parse_args(s.get('args', {})))
            for s in prep_cfg.get('steps', [])
        ]
        return cls(
            model=model_cfg.get('name'),
            outcome=prep_cfg.get('outcome') or config.get('data', {}).get('outcome'),
            predictors=prep_cfg.get('predictors'),
            steps=steps,
            model_args=_parse_args(model_cfg.get('args', {}))
        )

    # --- Preprocessing ---

    def _resolve_predictors(self, view: pd.DataFrame) -> List[str]:
        if self.predictors is None:
            return [c for c in view.columns if c != self.outcome]
        missing = [c for c in self.predictors if c not in view.columns]
        if missing:
            raise KeyError(f"Predictor columns not found in data: {missing}")
        return list(self.predictors)

    def _build_pipeline(self, params: Mapping[str, Any]) -> Pipeline:
        if not self.steps:
            return Pipeline([('identity', FunctionTransformer())])
        return Pipeline([
            (step.name, TRANSFORMERS[step.transformer](**resolve_args(step.args, params)))
            for step in self.steps
        ])

    def fit_preprocessing(self, train_view: pd.DataFrame, params: Mapping[str, Any]) -> FittedPreprocessor:
        if self.outcome not in train_view.columns:
            raise KeyError(f"Outcome column '{self.outcome}' not found in data")
        predictors = self._resolve_predictors(train_view)
        pipeline = self._build_pipeline(params)
        pipeline.fit(train_view[predictors], train_view[self.outcome])
        return FittedPreprocessor(pipeline, predictors)

    def apply_preprocessing(self, artifact: FittedPreprocessor, view: pd.DataFrame) -> ProcessedData:
        X = np.asarray(artifact.pipeline.transform(view[artifact.predictors]))
        y = view[self.outcome].to_numpy() if self.outcome in view.columns else None
        return ProcessedData(X=X, y=y)

    # --- Model ---

    def fit_model(self, processed_train: ProcessedData, params: Mapping[str, Any]) -> Any:
        model = ModelFactory.create(self.model_name, resolve_args(self.model_args, params))
        model.fit(processed_train.X, processed_train.y)
        return model

    def predict(self, model: Any, processed: ProcessedData) -> np.ndarray:
        return np.asarray(model.predict(processed.X)).ravel()

    def predict_submodels(self, model: Any, processed: ProcessedData,
                          values: Sequence[Any]) -> Dict[Any, np.ndarray]:
        if self.submodel_parameter is None:
            return super().predict_submodels(model, processed, values)
        bad = [v for v in values if int(v) < 1]
        if bad:
            raise ValueError(f"{self.submodel_parameter} must be >= 1 for submodel prediction, got {bad}")
        # Forest predictions are the mean over member trees.
        tree_preds = np.vstack([tree.predict(processed.X) for tree in model.estimators_])
        return {value: tree_preds[:int(value)].mean(axis=0) for value in values}
