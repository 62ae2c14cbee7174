"""Parameter space used by the sequential search to draw and encode candidates."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from tuner.candidates.candidate import Candidate, normalize_value
from tuner.utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class ParameterDefinition:
    """Immutable description of a single tunable parameter."""

    name: str
    values: Optional[Tuple[Any, ...]] = None
    lower: Optional[float] = None
    upper: Optional[float] = None
    integer: bool = False
    log_scale: bool = False

    def __post_init__(self):
        if self.values is not None:
            if len(self.values) == 0:
                raise ConfigurationError(f"Parameter {self.name} must define at least one value")
            return
        if self.lower is None or self.upper is None:
            raise ConfigurationError(
                f"Parameter {self.name} must define either discrete values or lower/upper bounds"
            )
        if self.upper < self.lower:
            raise ConfigurationError(f"Parameter {self.name} has upper < lower")
        if self.log_scale and self.lower <= 0:
            raise ConfigurationError(f"Parameter {self.name} uses a log scale and needs lower > 0")

    @property
    def is_discrete(self) -> bool:
        return self.values is not None

    def _bounds(self) -> Tuple[float, float]:
        if self.log_scale:
            return math.log10(self.lower), math.log10(self.upper)
        return float(self.lower), float(self.upper)

    def sample(self, n: int, rng: np.random.Generator) -> List[Any]:
        if self.is_discrete:
            picks = rng.integers(0, len(self.values), size=n)
            return [self.values[i] for i in picks]
        low, high = self._bounds()
        draws = rng.uniform(low, high, size=n)
        if self.log_scale:
            draws = np.power(10.0, draws)
        if self.integer:
            draws = np.clip(np.rint(draws), self.lower, self.upper).astype(int)
        return draws.tolist()

    def check(self, value: Any) -> None:
        """Raise `ConfigurationError` if `value` cannot be placed in this parameter's range."""
        if self.is_discrete:
            if normalize_value(value) not in [normalize_value(v) for v in self.values]:
                raise ConfigurationError(f"{self.name}={value!r} is not one of {list(self.values)}")
            return
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)) \
                or not math.isfinite(value):
            raise ConfigurationError(f"{self.name}={value!r} is not a finite number")
        if self.log_scale and value <= 0:
            raise ConfigurationError(f"{self.name}={value!r} must be > 0 on a log scale")

    def encode(self, value: Any) -> float:
        """Map a value onto [0, 1]."""
        if self.is_discrete:
            if len(self.values) == 1:
                return 0.0
            keys = [normalize_value(v) for v in self.values]
            return keys.index(normalize_value(value)) / (len(self.values) - 1)
        low, high = self._bounds()
        x = math.log10(value) if self.log_scale else float(value)
        if high == low:
            return 0.0
        return (x - low) / (high - low)


class ParameterSpace:
    """Ordered container of parameter definitions."""

    def __init__(self, definitions: Sequence[ParameterDefinition]):
        self.parameters: Dict[str, ParameterDefinition] = {}
        for definition in definitions:
            if definition.name in self.parameters:
                raise ConfigurationError(f"Duplicate parameter definition: {definition.name}")
            self.parameters[definition.name] = definition
        if not self.parameters:
            raise ConfigurationError("A parameter space needs at least one parameter")

    @classmethod
    def from_config(cls, config: Mapping[str, Mapping[str, Any]]) -> "ParameterSpace":
        """Build from a `{name: {"lower", "upper", "integer", "log_scale"} | {"values"}}` mapping."""
        definitions = []
        for name, raw in config.items():
            values = raw.get("values")
            definitions.append(ParameterDefinition(
                name=name,
                values=tuple(values) if values is not None else None,
                lower=raw.get("lower"),
                upper=raw.get("upper"),
                integer=raw.get("integer", False),
                log_scale=raw.get("log_scale", False),
            ))
        return cls(definitions)

    @property
    def names(self) -> List[str]:
        return list(self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)

    def sample(self, n: int, rng: np.random.Generator) -> List[Candidate]:
        columns = {name: definition.sample(n, rng) for name, definition in self.parameters.items()}
        return [Candidate({name: columns[name][i] for name in self.names}) for i in range(n)]

    def check(self, candidates: Sequence[Mapping[str, Any]]) -> None:
        for candidate in candidates:
            for name, definition in self.parameters.items():
                definition.check(candidate[name])

    def encode(self, candidates: Sequence[Mapping[str, Any]]) -> np.ndarray:
        rows = [[self.parameters[name].encode(c[name]) for name in self.names] for c in candidates]
        return np.asarray(rows, dtype=float).reshape(len(rows), len(self.names))
