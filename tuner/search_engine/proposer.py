import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from tuner.candidates.candidate import Candidate
from tuner.candidates.candidate_set import CandidateSet
from tuner.candidates.parameter_space import ParameterSpace
from tuner.config_manager.control import SearchOptions
from tuner.metrics.metric_set import Metric
from tuner.search_engine.acquisition import create_acquisition
from tuner.search_engine.surrogate import GaussianProcessSurrogate
from tuner.utils import constants
from tuner.utils.exceptions import SurrogateOptimizationFailure


class CandidateProposer:
    """
    Proposes new candidates from the aggregated history.

    The surrogate is fitted on encoded parameters against the target metric
    (negated when the metric is minimized), then `n_candidates` random draws
    from the space are scored with the acquisition function. Draws already
    evaluated are skipped and ties keep draw order.
    """

    def __init__(self, space: ParameterSpace, metric: Metric, options: SearchOptions,
                 rng: np.random.Generator, logger: Optional[logging.Logger] = None):
        self.space = space
        self.metric = metric
        self.options = options
        self.rng = rng
        self.logger = logger or logging.getLogger(__name__)
        self.acquisition = create_acquisition(options.acquisition)
        surrogate_cfg = options.surrogate or {}
        self.surrogate = GaussianProcessSurrogate(
            n_restarts=surrogate_cfg.get('n_restarts', 2),
            nu=surrogate_cfg.get('nu', 2.5),
            noise_level=surrogate_cfg.get('noise_level', 1e-5),
            random_state=surrogate_cfg.get('seed'),
            logger=self.logger
        )
        self.last_decision: Dict[str, Any] = {}

    def observations(self, history: pd.DataFrame):
        """Encoded parameters and scores of candidates with a finite mean for the target metric."""
        rows = history[(history[constants.COL_METRIC] == self.metric.name) & (history[constants.COL_N] > 0)]
        rows = rows[np.isfinite(rows[constants.COL_MEAN].to_numpy(dtype=float))]
        candidates = [Candidate({name: row[name] for name in self.space.names})
                      for row in rows.to_dict(orient='records')]
        try:
            X = self.space.encode(candidates)
        except (ValueError, TypeError) as e:
            raise SurrogateOptimizationFailure(f"Evaluated candidates cannot be encoded: {e}") from e
        y = rows[constants.COL_MEAN].to_numpy(dtype=float)
        if not self.metric.maximize:
            y = -y
        return X, y

    def propose(self, history: pd.DataFrame, budget: int, iteration: int,
                exclude: Optional[CandidateSet] = None, n_no_improve: int = 0) -> List[Candidate]:
        X, y = self.observations(history)
        self.surrogate.fit(X, y)

        draws = CandidateSet(self.space.sample(self.options.n_candidates, self.rng))
        pool = [c for c in draws if exclude is None or c not in exclude]
        if not pool:
            raise SurrogateOptimizationFailure(
                f"No unevaluated candidates left among {self.options.n_candidates} draws at iteration {iteration}"
            )

        mean, std = self.surrogate.predict(self.space.encode(pool))

        explore = (self.options.uncertain is not None and n_no_improve > 0
                   and n_no_improve % self.options.uncertain == 0)
        if explore:
            scores = std
            mode = "uncertainty"
        else:
            trade_off = self.options.trade_off_at(iteration)
            scores = self.acquisition(mean, std, float(np.max(y)), trade_off)
            mode = self.acquisition.name

        if not np.any(np.isfinite(scores)):
            raise SurrogateOptimizationFailure(f"Acquisition scores are not finite at iteration {iteration}")
        scores = np.where(np.isfinite(scores), scores, -np.inf)

        order = np.argsort(-scores, kind='stable')[:budget]
        chosen = [pool[i] for i in order]

        self.last_decision = {
            'iteration': iteration,
            'mode': mode,
            'pool_size': len(pool),
            'scores': [float(scores[i]) for i in order],
            'predicted_mean': [float(mean[i]) for i in order],
            'predicted_std': [float(std[i]) for i in order]
        }
        self.logger.info(
            f"Iteration {iteration}: proposed {len(chosen)} candidate(s) by {mode} "
            f"(best score {self.last_decision['scores'][0]:.4g}, pool {len(pool)})"
        )
        return chosen
