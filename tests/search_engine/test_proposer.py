import numpy as np
import pandas as pd
import pytest

from tuner.candidates import CandidateSet
from tuner.candidates.parameter_space import ParameterSpace
from tuner.config_manager.control import SearchOptions
from tuner.metrics.metric_set import rmse, rsq
from tuner.search_engine.proposer import CandidateProposer
from tuner.utils.exceptions import SurrogateOptimizationFailure


@pytest.fixture
def space():
    return ParameterSpace.from_config({"scale": {"lower": 0.0, "upper": 4.0}})


@pytest.fixture
def history():
    scales = [0.5, 1.5, 2.5, 3.5]
    return pd.DataFrame({
        "scale": scales,
        "metric": "rmse",
        "estimator": "standard",
        "mean": [abs(s - 2.0) for s in scales],
        "n": 4,
        "std_err": 0.1,
        "config": [f"Preprocessor1_Model{i + 1}" for i in range(4)]
    })


def _proposer(space, metric=rmse, **options):
    options.setdefault("n_candidates", 50)
    options.setdefault("surrogate", {"n_restarts": 0, "seed": 0})
    return CandidateProposer(space, metric, SearchOptions(**options), np.random.default_rng(3))


class TestCandidateProposer:

    def test_minimized_metric_scores_are_negated(self, space, history):
        X, y = _proposer(space).observations(history)
        assert X.shape == (4, 1)
        np.testing.assert_allclose(y, [-1.5, -0.5, -0.5, -1.5])

    def test_rows_without_estimates_are_ignored(self, space, history):
        history.loc[0, "n"] = 0
        history.loc[1, "mean"] = np.nan
        X, y = _proposer(space).observations(history)
        assert len(y) == 2

    def test_proposes_budget_of_new_candidates(self, space, history):
        proposer = _proposer(space, budget=3)
        evaluated = CandidateSet.from_frame(history[["scale"]])
        proposals = proposer.propose(history, budget=3, iteration=1, exclude=evaluated)

        assert len(proposals) == 3
        assert all(p not in evaluated for p in proposals)
        assert all(0.0 <= p["scale"] <= 4.0 for p in proposals)
        assert proposer.last_decision["mode"] == "expected_improvement"
        scores = proposer.last_decision["scores"]
        assert scores == sorted(scores, reverse=True)

    def test_uncertainty_mode_after_stalled_iterations(self, space, history):
        proposer = _proposer(space, uncertain=2)
        proposer.propose(history, budget=1, iteration=3, n_no_improve=2)
        assert proposer.last_decision["mode"] == "uncertainty"
        proposer.propose(history, budget=1, iteration=4, n_no_improve=1)
        assert proposer.last_decision["mode"] == "expected_improvement"

    def test_maximized_metric_keeps_sign(self, space, history):
        history["metric"] = "rsq"
        _, y = _proposer(space, metric=rsq).observations(history)
        np.testing.assert_allclose(y, history["mean"])

    def test_exhausted_discrete_space_fails(self, history):
        discrete = ParameterSpace.from_config({"scale": {"values": [0.5, 1.5, 2.5, 3.5]}})
        evaluated = CandidateSet.from_frame(history[["scale"]])
        with pytest.raises(SurrogateOptimizationFailure, match="No unevaluated candidates"):
            _proposer(discrete).propose(history, budget=1, iteration=1, exclude=evaluated)

    def test_too_few_observations_fail(self, space, history):
        with pytest.raises(SurrogateOptimizationFailure):
            _proposer(space).propose(history.iloc[:1], budget=1, iteration=1)

    def test_values_outside_discrete_space_fail(self, history):
        discrete = ParameterSpace.from_config({"scale": {"values": [0.5, 1.5, 3.5]}})
        with pytest.raises(SurrogateOptimizationFailure, match="cannot be encoded"):
            _proposer(discrete).propose(history, budget=1, iteration=1)
