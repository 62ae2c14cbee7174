"""
Custom exception hierarchy for the resample tuner.
"""


class TunerException(Exception):
    """Base exception for all system errors."""
    pass


class ConfigurationError(TunerException):
    """Configuration validation failed."""
    pass


class FitFailure(TunerException):
    """
    A single (resample, candidate) evaluation failed at one stage.

    Never crosses the fit-eval boundary: it is converted into a note on the record.
    """
    stage = "unknown"


class PreprocessingFailure(FitFailure):
    """Preprocessing could not be fitted or applied."""
    stage = "preprocessing"


class ModelFitFailure(FitFailure):
    """Model fitting failed."""
    stage = "model"


class PredictionFailure(FitFailure):
    """Prediction generation failed."""
    stage = "prediction"


class MetricComputationFailure(FitFailure):
    """A performance metric could not be computed."""
    stage = "metrics"


class ExtractFailure(FitFailure):
    """The user supplied extract function raised."""
    stage = "extract"


class SurrogateOptimizationFailure(TunerException):
    """
    The surrogate model or the acquisition optimization failed during sequential search.

    `results` holds the history up to the last completed iteration.
    """

    def __init__(self, message: str, results=None):
        super().__init__(message)
        self.results = results


class AllCandidatesFailedWarning(UserWarning):
    """Every fit of a run failed. The (empty) results are still returned."""
    pass
