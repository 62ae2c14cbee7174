from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class Resample:
    """One train/validation split over a fixed base dataset (positional indices)."""

    id: str
    train_index: np.ndarray
    validation_index: np.ndarray

    def __post_init__(self):
        # Freeze the index arrays so no fit unit can mutate a shared split.
        for name in ("train_index", "validation_index"):
            arr = np.array(getattr(self, name), dtype=int, copy=True)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def train_view(self, dataset: pd.DataFrame) -> pd.DataFrame:
        return dataset.iloc[self.train_index]

    def validation_view(self, dataset: pd.DataFrame) -> pd.DataFrame:
        return dataset.iloc[self.validation_index]

    def __repr__(self) -> str:
        return (f"Resample(id={self.id!r}, n_train={len(self.train_index)}, "
                f"n_validation={len(self.validation_index)})")
