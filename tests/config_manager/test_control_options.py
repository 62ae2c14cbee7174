import pytest

from tuner.config_manager import ControlOptions, SearchOptions
from tuner.utils.exceptions import ConfigurationError


class TestControlOptions:

    def test_defaults(self):
        control = ControlOptions()
        assert control.parallel_over == "resamples"
        assert control.n_jobs == 1
        assert control.save_pred is False
        assert control.extract is None

    def test_from_config(self):
        control = ControlOptions.from_config(
            {"control": {"save_pred": True, "parallel_over": "everything", "n_jobs": -1, "timeout": 30}},
            extract=len
        )
        assert control.save_pred is True
        assert control.parallel_over == "everything"
        assert control.n_jobs == -1
        assert control.timeout == 30
        assert control.extract is len

    @pytest.mark.parametrize("kwargs", [
        {"parallel_over": "candidates"},
        {"n_jobs": 0},
        {"n_jobs": -3},
        {"prefer": "gpus"},
        {"timeout": 0},
        {"extract": "not callable"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            ControlOptions(**kwargs)


class TestSearchOptions:

    def test_from_config_uses_propagated_seeds(self):
        options = SearchOptions.from_config({
            "search": {"iter": 12, "no_improve": 4, "acquisition": "confidence_bound", "trade_off": 2.0},
            "_internal_seeds": {"search": 1042, "surrogate": 2042}
        })
        assert options.n_iter == 12
        assert options.no_improve == 4
        assert options.seed == 1042
        assert options.surrogate["seed"] == 2042
        assert options.trade_off_at(3) == 2.0

    def test_explicit_surrogate_seed_wins(self):
        options = SearchOptions.from_config({
            "search": {"surrogate": {"seed": 5}},
            "_internal_seeds": {"surrogate": 2042}
        })
        assert options.surrogate["seed"] == 5

    def test_trade_off_schedule(self):
        options = SearchOptions(trade_off=lambda i: 1.0 / i)
        assert options.trade_off_at(4) == pytest.approx(0.25)
        assert SearchOptions().trade_off_at(4) is None

    @pytest.mark.parametrize("kwargs", [
        {"n_iter": 0},
        {"no_improve": 0},
        {"initial": 0},
        {"uncertain": 0},
        {"acquisition": "random"},
        {"n_candidates": 0},
        {"budget": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            SearchOptions(**kwargs)
