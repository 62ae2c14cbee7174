import abc
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from tuner.candidates.candidate import Candidate


@dataclass(frozen=True)
class Tune:
    """Placeholder marking a backend argument as tunable under `name`."""
    name: str


def tune(name: str) -> Tune:
    return Tune(name)


def tuned_names(args: Mapping[str, Any]) -> Tuple[str, ...]:
    return tuple(v.name for v in args.values() if isinstance(v, Tune))


def resolve_args(args: Mapping[str, Any], params: Mapping[str, Any]) -> Dict[str, Any]:
    """Substitute `Tune` placeholders with the candidate's values."""
    return {key: params[value.name] if isinstance(value, Tune) else value for key, value in args.items()}


@dataclass
class ProcessedData:
    """Preprocessed predictors plus the (optional) outcome values."""
    X: Any
    y: Optional[np.ndarray] = None


@dataclass
class FittedWorkflow:
    """What a user extract function receives for one successful fit."""
    preprocessor: Any
    model: Any
    candidate: Candidate


class ModelBackend(abc.ABC):
    """
    Capability interface between the tuning engine and a model family.

    The engine only calls these methods; it never inspects the artifacts.
    """

    outcome: str = ""
    preprocessing_parameters: Tuple[str, ...] = ()
    model_parameters: Tuple[str, ...] = ()
    # Warning categories that fail the stage that raised them.
    fatal_warnings: Tuple[type, ...] = ()
    # A model parameter whose values can all be predicted from a single fit.
    submodel_parameter: Optional[str] = None

    @abc.abstractmethod
    def fit_preprocessing(self, train_view: pd.DataFrame, params: Mapping[str, Any]) -> Any:
        """Fit the preprocessing on the training view."""

    @abc.abstractmethod
    def apply_preprocessing(self, artifact: Any, view: pd.DataFrame) -> ProcessedData:
        """Apply a fitted preprocessing artifact to a view."""

    @abc.abstractmethod
    def fit_model(self, processed_train: ProcessedData, params: Mapping[str, Any]) -> Any:
        """Fit the model on preprocessed training data."""

    @abc.abstractmethod
    def predict(self, model: Any, processed: ProcessedData) -> np.ndarray:
        """Predict for preprocessed validation data."""

    def predict_submodels(self, model: Any, processed: ProcessedData,
                          values: Sequence[Any]) -> Dict[Any, np.ndarray]:
        """Predictions for every value of `submodel_parameter` from one fitted model."""
        raise NotImplementedError(f"{type(self).__name__} does not support submodel prediction")

    @property
    def tuned_parameters(self) -> Tuple[str, ...]:
        return tuple(self.preprocessing_parameters) + tuple(self.model_parameters)

    def split_parameters(self, candidate: Candidate) -> Tuple[Candidate, Candidate]:
        """Partition a candidate into its preprocessing and model parts."""
        prep = candidate.subset(self.preprocessing_parameters)
        return prep, candidate.without(prep.keys())

    def check_candidates(self, names: Iterable[str]) -> None:
        """Raise when candidates carry parameters this backend does not tune."""
        unknown = [n for n in names if n not in self.tuned_parameters]
        if unknown:
            raise ValueError(f"Candidate parameters {unknown} are not tuned by {type(self).__name__} "
                             f"(tuned: {list(self.tuned_parameters)})")
