from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from sklearn.model_selection import ParameterGrid

from tuner.candidates.candidate import Candidate


@dataclass
class GroupMember:
    """A candidate inside a preprocessing group, with its position in the set."""
    position: int
    candidate: Candidate
    config: str


@dataclass
class PreprocessingGroup:
    """Candidates that share identical preprocessing parameter values."""
    preprocessor_id: str
    params: Candidate
    members: List[GroupMember] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.members)


class CandidateSet(Sequence):
    """
    Ordered, deduplicated collection of candidates.

    Static for grid search; the sequential controller extends it with `add`.
    """

    def __init__(self, candidates: Iterable[Any] = ()):
        self._candidates: List[Candidate] = []
        self._index: Dict[Tuple, int] = {}
        self.add(candidates)

    @classmethod
    def from_grid(cls, grid: Mapping[str, Sequence]) -> "CandidateSet":
        """Full factorial expansion of literal value lists."""
        if not grid:
            return cls([Candidate()])
        return cls(Candidate(params) for params in ParameterGrid(dict(grid)))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "CandidateSet":
        """One candidate per row; values are taken as-is (no dtype coercion)."""
        columns = list(df.columns)
        return cls(Candidate(dict(zip(columns, row))) for row in df.itertuples(index=False, name=None))

    def add(self, candidates: Iterable[Any]) -> List[Candidate]:
        """Append new candidates, skipping ones already present. Returns the added ones."""
        added = []
        for item in candidates:
            candidate = item if isinstance(item, Candidate) else Candidate(item)
            if candidate.key in self._index:
                continue
            self._index[candidate.key] = len(self._candidates)
            self._candidates.append(candidate)
            added.append(candidate)
        return added

    def __getitem__(self, i):
        return self._candidates[i]

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, item) -> bool:
        candidate = item if isinstance(item, Candidate) else Candidate(item)
        return candidate.key in self._index

    def position(self, candidate: Candidate) -> int:
        return self._index[candidate.key]

    @property
    def parameter_names(self) -> List[str]:
        names: List[str] = []
        for candidate in self._candidates:
            for name in candidate:
                if name not in names:
                    names.append(name)
        return names

    def group_by(self, names: Iterable[str], config_labels: Optional[Sequence[str]] = None,
                 offset: int = 0) -> List[PreprocessingGroup]:
        """
        Stable grouping pass over the preprocessing parameter subset.

        Groups come out in the order they first appear; members keep set order.
        Member positions are shifted by `offset`.
        """
        names = list(names)
        groups: Dict[Tuple, PreprocessingGroup] = {}
        for position, candidate in enumerate(self._candidates):
            prep = candidate.subset(names)
            group = groups.get(prep.key)
            if group is None:
                group = PreprocessingGroup(f"Preprocessor{len(groups) + 1}", prep)
                groups[prep.key] = group
            if config_labels is not None:
                config = config_labels[position]
            else:
                config = f"{group.preprocessor_id}_Model{len(group.members) + 1}"
            group.members.append(GroupMember(offset + position, candidate, config))
        return list(groups.values())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([c.to_dict() for c in self._candidates], columns=self.parameter_names)
