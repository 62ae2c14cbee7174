"""
Resample generation for tuning runs.

Produces an ordered list of train/validation splits with stable identifiers that
are reused verbatim in every output record. All shuffling takes an explicit seed.
"""
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, RepeatedKFold

from tuner.resampling.resample import Resample
from tuner.utils.exceptions import ConfigurationError


class ResampleGenerator:
    """
    Builds resamples from a strategy configuration.

    Strategies:
    - vfold: V-fold cross-validation, optionally repeated.
    - bootstrap: sampling with replacement, out-of-bag rows for validation.
    - validation_split: a single shuffled holdout split.
    """

    STRATEGIES = ('vfold', 'bootstrap', 'validation_split')

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def generate(self, dataset: pd.DataFrame, strategy_config: Dict[str, Any]) -> List[Resample]:
        strategy = strategy_config.get('strategy', 'vfold')
        seed = strategy_config.get('seed')
        n_rows = len(dataset)

        if strategy == 'vfold':
            resamples = self._vfold(n_rows, strategy_config.get('v', 10),
                                    strategy_config.get('repeats', 1), seed)
        elif strategy == 'bootstrap':
            resamples = self._bootstrap(n_rows, strategy_config.get('times', 25), seed)
        elif strategy == 'validation_split':
            resamples = self._validation_split(n_rows, strategy_config.get('prop', 0.75), seed)
        else:
            raise ConfigurationError(f"Unknown resampling strategy '{strategy}'. Available: {self.STRATEGIES}")

        self.logger.info(f"Generated {len(resamples)} resamples ({strategy}) over {n_rows} rows.")
        return resamples

    def _vfold(self, n_rows: int, v: int, repeats: int, seed: Optional[int]) -> List[Resample]:
        if v < 2:
            raise ConfigurationError(f"vfold needs v >= 2, got {v}")
        if v > n_rows:
            raise ConfigurationError(f"vfold needs at least v={v} rows, got {n_rows}")
        if repeats < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {repeats}")

        width = len(str(v))
        positions = np.arange(n_rows)
        if repeats == 1:
            splitter = KFold(n_splits=v, shuffle=True, random_state=seed)
        else:
            splitter = RepeatedKFold(n_splits=v, n_repeats=repeats, random_state=seed)

        resamples = []
        for i, (train_idx, val_idx) in enumerate(splitter.split(positions)):
            fold = f"Fold{(i % v) + 1:0{width}d}"
            split_id = fold if repeats == 1 else f"Repeat{i // v + 1}_{fold}"
            resamples.append(Resample(split_id, train_idx, val_idx))
        return resamples

    def _bootstrap(self, n_rows: int, times: int, seed: Optional[int]) -> List[Resample]:
        if times < 1:
            raise ConfigurationError(f"bootstrap times must be >= 1, got {times}")
        rng = np.random.default_rng(seed)
        width = len(str(times))
        positions = np.arange(n_rows)
        resamples = []
        for i in range(times):
            train_idx = rng.integers(0, n_rows, size=n_rows)
            val_idx = np.setdiff1d(positions, train_idx)
            if len(val_idx) == 0:
                self.logger.warning(f"Bootstrap{i + 1} has no out-of-bag rows.")
            resamples.append(Resample(f"Bootstrap{i + 1:0{width}d}", train_idx, val_idx))
        return resamples

    def _validation_split(self, n_rows: int, prop: float, seed: Optional[int]) -> List[Resample]:
        if not (0.0 < prop < 1.0):
            raise ConfigurationError(f"validation_split prop must be in (0, 1), got {prop}")
        rng = np.random.default_rng(seed)
        order = rng.permutation(n_rows)
        n_train = int(np.floor(n_rows * prop))
        if n_train == 0 or n_train == n_rows:
            raise ConfigurationError(f"validation_split prop={prop} leaves an empty split for {n_rows} rows")
        return [Resample("Validation", np.sort(order[:n_train]), np.sort(order[n_train:]))]
