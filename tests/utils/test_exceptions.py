import logging
from unittest.mock import Mock

import pytest

from tuner.utils.error_handling import describe_exception, handle_engine_errors
from tuner.utils.exceptions import (
    ConfigurationError,
    FitFailure,
    ModelFitFailure,
    PreprocessingFailure,
    SurrogateOptimizationFailure,
    TunerException
)


def test_exception_inheritance():
    err = ConfigurationError("Test error")
    assert isinstance(err, TunerException)
    assert isinstance(err, Exception)
    assert str(err) == "Test error"


def test_fit_failures_carry_their_stage():
    assert issubclass(PreprocessingFailure, FitFailure)
    assert PreprocessingFailure.stage == "preprocessing"
    assert ModelFitFailure.stage == "model"


def test_surrogate_failure_keeps_partial_results():
    err = SurrogateOptimizationFailure("no candidates", results="partial")
    assert err.results == "partial"
    assert SurrogateOptimizationFailure("x").results is None


def test_describe_exception_uses_first_line():
    assert describe_exception(ValueError("bad value\nmore detail")) == "ValueError: bad value"
    assert describe_exception(RuntimeError()) == "RuntimeError"


class _Engine:
    def __init__(self):
        self.logger = Mock(spec=logging.Logger)

    @handle_engine_errors("Demo")
    def run(self, exc):
        raise exc


def test_handle_engine_errors_passes_tuner_exceptions():
    engine = _Engine()
    with pytest.raises(ConfigurationError):
        engine.run(ConfigurationError("bad"))
    engine.logger.error.assert_not_called()


def test_handle_engine_errors_wraps_unexpected_errors():
    engine = _Engine()
    with pytest.raises(TunerException, match="Demo failed: boom") as exc_info:
        engine.run(KeyError("boom"))
    assert isinstance(exc_info.value.__cause__, KeyError)
    engine.logger.error.assert_called_once()
