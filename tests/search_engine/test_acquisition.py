import numpy as np
import pytest
from scipy.stats import norm

from tuner.search_engine.acquisition import (
    ConfidenceBound,
    ExpectedImprovement,
    ProbabilityImprovement,
    create_acquisition
)
from tuner.utils.exceptions import ConfigurationError


class TestAcquisition:

    def test_expected_improvement_matches_closed_form(self):
        mean = np.array([1.0, 2.0])
        std = np.array([0.5, 1.0])
        ei = ExpectedImprovement()(mean, std, best=1.5)

        z = (mean - 1.5) / std
        expected = (mean - 1.5) * norm.cdf(z) + std * norm.pdf(z)
        np.testing.assert_allclose(ei, expected)

    def test_expected_improvement_zero_without_uncertainty(self):
        ei = ExpectedImprovement()(np.array([3.0]), np.array([0.0]), best=1.0)
        assert ei[0] == 0.0

    def test_trade_off_lowers_expected_improvement(self):
        mean, std = np.array([1.0]), np.array([1.0])
        greedy = ExpectedImprovement()(mean, std, best=1.0)
        cautious = ExpectedImprovement()(mean, std, best=1.0, trade_off=0.5)
        assert cautious[0] < greedy[0]

    def test_probability_improvement(self):
        pi = ProbabilityImprovement()(np.array([1.0, 2.0]), np.array([1.0, 0.0]), best=1.0)
        assert pi[0] == pytest.approx(0.5)
        assert pi[1] == 1.0

    def test_confidence_bound_default_kappa(self):
        cb = ConfidenceBound()(np.array([1.0]), np.array([2.0]), best=0.0)
        assert cb[0] == pytest.approx(1.2)
        cb = ConfidenceBound()(np.array([1.0]), np.array([2.0]), best=0.0, trade_off=1.0)
        assert cb[0] == pytest.approx(3.0)

    def test_factory(self):
        assert isinstance(create_acquisition("expected_improvement"), ExpectedImprovement)
        with pytest.raises(ConfigurationError):
            create_acquisition("thompson")
