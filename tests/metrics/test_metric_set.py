import numpy as np
import pytest

from tuner.metrics.metric_set import Metric, MetricSet, rmse, rsq
from tuner.utils.exceptions import ConfigurationError


class TestMetricSet:

    def test_default_set_targets_rmse(self):
        metrics = MetricSet.from_names()
        assert metrics.names == ["rmse", "rsq"]
        assert metrics.get().name == "rmse"
        assert metrics.get("rsq").maximize

    def test_rmse_and_rsq_values(self):
        truth = np.array([1.0, 2.0, 3.0, 4.0])
        result = rmse(truth, truth + 1.0)
        assert result.estimate == pytest.approx(1.0)
        assert result.estimator == "standard"
        assert rsq(truth, 2 * truth).estimate == pytest.approx(1.0)

    def test_rsq_undefined_for_constant_predictions(self):
        assert np.isnan(rsq(np.array([1.0, 2.0]), np.array([3.0, 3.0])).estimate)

    def test_custom_metric(self):
        max_error = Metric("max_error", lambda t, e: np.max(np.abs(t - e)))
        metrics = MetricSet([max_error, rmse])
        assert metrics.get().name == "max_error"
        assert not metrics.get().maximize

    def test_invalid_sets(self):
        with pytest.raises(ConfigurationError):
            MetricSet.from_names(["rmse", "accuracy"])
        with pytest.raises(ConfigurationError):
            MetricSet([rmse, rmse])
        with pytest.raises(ConfigurationError):
            MetricSet([])
        with pytest.raises(ConfigurationError):
            MetricSet.from_names().get("mae")
        with pytest.raises(ConfigurationError):
            Metric("odd", np.mean, direction="sideways")
