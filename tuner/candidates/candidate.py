import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np

# Stable stand-in for NaN inside grouping keys (NaN != NaN would split groups).
NAN_KEY = ("<nan>",)


def normalize_value(value: Any) -> Any:
    """Turn a parameter value into something hashable with value semantics."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return NAN_KEY
    if isinstance(value, (list, tuple, np.ndarray)):
        return tuple(normalize_value(v) for v in value)
    return value


class Candidate(Mapping):
    """
    One concrete assignment of values to tunable parameters.

    Candidates compare and hash by value, so two candidates built separately from
    identical values are the same candidate.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs):
        data: Dict[str, Any] = dict(values or {})
        data.update(kwargs)
        self._values = data
        self._key = tuple(sorted((name, normalize_value(v)) for name, v in data.items()))

    @property
    def key(self) -> Tuple:
        return self._key

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other) -> bool:
        if isinstance(other, Candidate):
            return self._key == other._key
        if isinstance(other, Mapping):
            return self._key == Candidate(other)._key
        return NotImplemented

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"Candidate({inner})"

    def subset(self, names: Iterable[str]) -> "Candidate":
        """The part of this candidate covering `names` (missing names are skipped)."""
        return Candidate({name: self._values[name] for name in names if name in self._values})

    def without(self, names: Iterable[str]) -> "Candidate":
        excluded = set(names)
        return Candidate({k: v for k, v in self._values.items() if k not in excluded})

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)
