from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from tuner.utils import constants
from tuner.utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class MetricResult:
    name: str
    estimator: str
    estimate: float


@dataclass(frozen=True)
class Metric:
    """A named performance metric with an optimization direction."""

    name: str
    fn: Callable[[np.ndarray, np.ndarray], float]
    direction: str = constants.MINIMIZE
    estimator: str = "standard"

    def __post_init__(self):
        if self.direction not in (constants.MINIMIZE, constants.MAXIMIZE):
            raise ConfigurationError(f"Metric '{self.name}' has invalid direction '{self.direction}'")

    def __call__(self, truth, estimate) -> MetricResult:
        value = self.fn(np.asarray(truth, dtype=float), np.asarray(estimate, dtype=float))
        return MetricResult(self.name, self.estimator, float(value))

    @property
    def maximize(self) -> bool:
        return self.direction == constants.MAXIMIZE


def _rmse(truth, estimate):
    return np.sqrt(mean_squared_error(truth, estimate))


def _rsq(truth, estimate):
    # Squared correlation; undefined for constant predictions.
    if np.std(truth) == 0 or np.std(estimate) == 0:
        return np.nan
    return np.corrcoef(truth, estimate)[0, 1] ** 2


rmse = Metric("rmse", _rmse, constants.MINIMIZE)
mae = Metric("mae", mean_absolute_error, constants.MINIMIZE)
rsq = Metric("rsq", _rsq, constants.MAXIMIZE)
rsq_trad = Metric("rsq_trad", r2_score, constants.MAXIMIZE)

BUILTIN_METRICS = {m.name: m for m in (rmse, mae, rsq, rsq_trad)}


class MetricSet:
    """Ordered collection of metrics; the first one is the default optimization target."""

    def __init__(self, metrics: Iterable[Metric]):
        self.metrics: List[Metric] = list(metrics)
        if not self.metrics:
            raise ConfigurationError("A metric set needs at least one metric")
        names = [m.name for m in self.metrics]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate metric names: {names}")

    @classmethod
    def from_names(cls, names: Optional[Iterable[str]] = None) -> "MetricSet":
        names = list(names or ["rmse", "rsq"])
        unknown = [n for n in names if n not in BUILTIN_METRICS]
        if unknown:
            raise ConfigurationError(f"Unknown metrics {unknown}. Available: {list(BUILTIN_METRICS)}")
        return cls(BUILTIN_METRICS[n] for n in names)

    def __iter__(self):
        return iter(self.metrics)

    def __len__(self) -> int:
        return len(self.metrics)

    @property
    def names(self) -> List[str]:
        return [m.name for m in self.metrics]

    def get(self, name: Optional[str] = None) -> Metric:
        if name is None:
            return self.metrics[0]
        for metric in self.metrics:
            if metric.name == name:
                return metric
        raise ConfigurationError(f"Metric '{name}' is not part of this metric set {self.names}")
