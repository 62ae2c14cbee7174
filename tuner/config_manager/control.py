from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Union

from tuner.utils import constants
from tuner.utils.exceptions import ConfigurationError

ACQUISITIONS = ('expected_improvement', 'probability_improvement', 'confidence_bound')


@dataclass
class ControlOptions:
    """Execution options shared by grid and sequential search."""

    save_pred: bool = False
    extract: Optional[Callable[[Any], Any]] = None
    parallel_over: str = constants.PARALLEL_OVER_RESAMPLES
    n_jobs: int = 1
    prefer: Optional[str] = None
    timeout: Optional[float] = None
    verbose: bool = False

    def __post_init__(self):
        if self.parallel_over not in constants.PARALLEL_OVER_CHOICES:
            raise ConfigurationError(
                f"parallel_over must be one of {constants.PARALLEL_OVER_CHOICES}, got '{self.parallel_over}'"
            )
        if self.n_jobs == 0 or self.n_jobs < -1:
            raise ConfigurationError(f"n_jobs must be -1 (all cores) or a positive integer, got {self.n_jobs}")
        if self.prefer not in (None, 'processes', 'threads'):
            raise ConfigurationError(f"prefer must be 'processes', 'threads' or None, got '{self.prefer}'")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0 seconds, got {self.timeout}")
        if self.extract is not None and not callable(self.extract):
            raise ConfigurationError("extract must be a callable")

    @classmethod
    def from_config(cls, config: Dict[str, Any], extract: Optional[Callable] = None) -> "ControlOptions":
        section = config.get('control', {})
        return cls(
            save_pred=section.get('save_pred', False),
            extract=extract,
            parallel_over=section.get('parallel_over', constants.PARALLEL_OVER_RESAMPLES),
            n_jobs=section.get('n_jobs', 1),
            prefer=section.get('prefer'),
            timeout=section.get('timeout'),
            verbose=section.get('verbose', False)
        )


@dataclass
class SearchOptions:
    """Options of the sequential (surrogate guided) search."""

    n_iter: int = constants.DEFAULT_SEARCH_ITER
    initial: Union[int, Sequence[Any]] = constants.DEFAULT_INITIAL
    no_improve: int = constants.DEFAULT_NO_IMPROVE
    uncertain: Optional[int] = None
    metric: Optional[str] = None
    acquisition: str = 'expected_improvement'
    trade_off: Optional[Union[float, Callable[[int], float]]] = None
    n_candidates: int = constants.DEFAULT_N_CANDIDATES
    budget: int = 1
    seed: Optional[int] = None
    surrogate: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.n_iter < 1:
            raise ConfigurationError(f"iter must be >= 1, got {self.n_iter}")
        if self.no_improve < 1:
            raise ConfigurationError(f"no_improve must be >= 1, got {self.no_improve}")
        if isinstance(self.initial, int) and self.initial < 1:
            raise ConfigurationError(f"initial must be >= 1, got {self.initial}")
        if self.uncertain is not None and self.uncertain < 1:
            raise ConfigurationError(f"uncertain must be >= 1 when provided, got {self.uncertain}")
        if self.acquisition not in ACQUISITIONS:
            raise ConfigurationError(f"acquisition must be one of {ACQUISITIONS}, got '{self.acquisition}'")
        if self.n_candidates < 1:
            raise ConfigurationError(f"n_candidates must be >= 1, got {self.n_candidates}")
        if self.budget < 1:
            raise ConfigurationError(f"budget must be >= 1, got {self.budget}")

    def trade_off_at(self, iteration: int) -> Optional[float]:
        if self.trade_off is None:
            return None
        if callable(self.trade_off):
            return float(self.trade_off(iteration))
        return float(self.trade_off)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SearchOptions":
        section = config.get('search', {})
        seeds = config.get('_internal_seeds', {})
        surrogate = dict(section.get('surrogate', {}))
        surrogate.setdefault('seed', seeds.get('surrogate'))
        return cls(
            n_iter=section.get('iter', constants.DEFAULT_SEARCH_ITER),
            initial=section.get('initial', constants.DEFAULT_INITIAL),
            no_improve=section.get('no_improve', constants.DEFAULT_NO_IMPROVE),
            uncertain=section.get('uncertain'),
            metric=section.get('metric'),
            acquisition=section.get('acquisition', 'expected_improvement'),
            trade_off=section.get('trade_off'),
            n_candidates=section.get('n_candidates', constants.DEFAULT_N_CANDIDATES),
            budget=section.get('budget', 1),
            seed=section.get('seed', seeds.get('search')),
            surrogate=surrogate
        )
