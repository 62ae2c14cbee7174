"""
Acquisition functions.

All functions work on scores where larger is better and return values where
larger means more attractive. `trade_off` is the exploration weight; when not
given each function uses its own default.
"""
import abc
from typing import Optional

import numpy as np
from scipy.stats import norm

from tuner.utils.exceptions import ConfigurationError

_TINY = 1e-12


class AcquisitionFunction(abc.ABC):
    name = "acquisition"
    default_trade_off = 0.0

    def __call__(self, mean: np.ndarray, std: np.ndarray, best: float,
                 trade_off: Optional[float] = None) -> np.ndarray:
        weight = self.default_trade_off if trade_off is None else float(trade_off)
        return self._score(np.asarray(mean, dtype=float), np.asarray(std, dtype=float), float(best), weight)

    @abc.abstractmethod
    def _score(self, mean: np.ndarray, std: np.ndarray, best: float, trade_off: float) -> np.ndarray:
        pass


class ExpectedImprovement(AcquisitionFunction):
    name = "expected_improvement"

    def _score(self, mean, std, best, trade_off):
        improvement = mean - best - trade_off
        z = improvement / np.clip(std, _TINY, None)
        ei = improvement * norm.cdf(z) + std * norm.pdf(z)
        ei[std < _TINY] = 0.0
        return ei


class ProbabilityImprovement(AcquisitionFunction):
    name = "probability_improvement"

    def _score(self, mean, std, best, trade_off):
        improvement = mean - best - trade_off
        pi = norm.cdf(improvement / np.clip(std, _TINY, None))
        flat = std < _TINY
        pi[flat] = (improvement[flat] > 0).astype(float)
        return pi


class ConfidenceBound(AcquisitionFunction):
    """Upper confidence bound: mean + kappa * std."""
    name = "confidence_bound"
    default_trade_off = 0.1

    def _score(self, mean, std, best, trade_off):
        return mean + trade_off * std


ACQUISITION_FUNCTIONS = {
    cls.name: cls for cls in (ExpectedImprovement, ProbabilityImprovement, ConfidenceBound)
}


def create_acquisition(name: str) -> AcquisitionFunction:
    if name not in ACQUISITION_FUNCTIONS:
        raise ConfigurationError(f"Unknown acquisition function '{name}'. Available: {list(ACQUISITION_FUNCTIONS)}")
    return ACQUISITION_FUNCTIONS[name]()
