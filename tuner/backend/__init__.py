"""
Backend Module
==============

Responsibility:
- The capability interface the engine drives (fit preprocessing, fit model, predict).
- scikit-learn implementation with tunable transformer and model arguments.
- Model construction by name via ModelFactory.
"""

from .base_backend import ModelBackend, ProcessedData, FittedWorkflow, Tune, tune
from .model_factory import ModelFactory
from .sklearn_backend import SklearnBackend, PreprocessingStep

__all__ = [
    'ModelBackend',
    'ProcessedData',
    'FittedWorkflow',
    'Tune',
    'tune',
    'ModelFactory',
    'SklearnBackend',
    'PreprocessingStep'
]
