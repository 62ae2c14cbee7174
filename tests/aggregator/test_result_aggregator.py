import math

import numpy as np
import pandas as pd
import pytest

from tuner.aggregator import ResultAggregator, records_to_frame
from tuner.candidates import Candidate
from tuner.fit_eval_engine import FitRecord, MetricRow


def _record(resample, position, params, estimates, config="Preprocessor1_Model1", iteration=0, failed=None):
    metrics = [MetricRow(name, "standard", value) for name, value in estimates.items()]
    return FitRecord(
        resample_id=f"Fold{resample}",
        resample_position=resample,
        candidate=Candidate(params),
        candidate_position=position,
        config=config,
        iteration=iteration,
        metrics=[] if failed else metrics,
        failed_stage=failed,
    )


@pytest.fixture
def aggregator(mock_logger):
    return ResultAggregator(mock_logger)


class TestResultAggregator:

    def test_mean_n_and_std_err(self, aggregator):
        records = [_record(r, 0, {"alpha": 1.0}, {"rmse": v}) for r, v in enumerate([1.0, 2.0, 3.0, 6.0])]
        summary = aggregator.aggregate(records)

        row = summary.iloc[0]
        assert list(summary.columns) == ["alpha", "metric", "estimator", "mean", "n", "std_err", "config"]
        assert row["mean"] == pytest.approx(3.0)
        assert row["n"] == 4
        assert row["std_err"] == pytest.approx(np.std([1, 2, 3, 6], ddof=1) / 2.0)

    def test_failed_resamples_reduce_n(self, aggregator):
        records = [
            _record(0, 0, {"alpha": 1.0}, {"rmse": 2.0}),
            _record(1, 0, {"alpha": 1.0}, {}, failed="model"),
            _record(2, 0, {"alpha": 1.0}, {"rmse": 4.0}),
        ]
        row = aggregator.aggregate(records).iloc[0]
        assert row["n"] == 2
        assert row["mean"] == pytest.approx(3.0)

    def test_all_missing_estimates_kept_with_zero_n(self, aggregator):
        records = [_record(r, 0, {"alpha": 1.0}, {"rsq": np.nan}) for r in range(3)]
        summary = aggregator.aggregate(records)

        assert len(summary) == 1
        assert summary.iloc[0]["n"] == 0
        assert math.isnan(summary.iloc[0]["mean"])
        assert math.isnan(summary.iloc[0]["std_err"])

    def test_single_value_has_no_std_err(self, aggregator):
        summary = aggregator.aggregate([_record(0, 0, {"alpha": 1.0}, {"rmse": 5.0})])
        assert summary.iloc[0]["n"] == 1
        assert math.isnan(summary.iloc[0]["std_err"])

    def test_never_observed_metrics_are_not_fabricated(self, aggregator):
        records = [
            _record(0, 0, {"alpha": 1.0}, {"rmse": 1.0, "rsq": 0.5}),
            _record(0, 1, {"alpha": 2.0}, {"rmse": 1.5}, config="Preprocessor1_Model2"),
        ]
        summary = aggregator.aggregate(records)
        assert list(zip(summary["alpha"], summary["metric"])) == [(1.0, "rmse"), (1.0, "rsq"), (2.0, "rmse")]

    def test_nan_parameter_values_group_together(self, aggregator):
        records = [_record(r, 0, {"knots": np.nan}, {"rmse": float(r)}) for r in range(3)]
        summary = aggregator.aggregate(records)
        assert len(summary) == 1
        assert summary.iloc[0]["n"] == 3

    def test_first_appearance_order(self, aggregator):
        records = [
            _record(0, 1, {"alpha": 2.0}, {"rmse": 1.0}, config="b"),
            _record(0, 0, {"alpha": 1.0}, {"rmse": 1.0}, config="a"),
        ]
        summary = aggregator.aggregate(records)
        assert list(summary["config"]) == ["a", "b"]

    def test_iteration_column_for_sequential_history(self, aggregator):
        records = [
            _record(0, 0, {"alpha": 1.0}, {"rmse": 1.0}),
            _record(0, 1, {"alpha": 2.0}, {"rmse": 0.5}, config="Iter1", iteration=1),
        ]
        summary = aggregator.aggregate(records)
        assert list(summary["iteration"]) == [0, 1]

    def test_reaggregation_is_idempotent(self, aggregator):
        rng = np.random.default_rng(3)
        records = [
            _record(r, c, {"alpha": float(c)}, {"rmse": float(rng.normal(c, 1)), "rsq": float(rng.uniform())},
                    config=f"Preprocessor1_Model{c + 1}")
            for r in range(5) for c in range(3)
        ]
        once = aggregator.aggregate(records)
        twice = aggregator.aggregate(once)
        pd.testing.assert_frame_equal(once, twice)

    def test_pooling_disjoint_summaries_is_exact(self, aggregator):
        values = [1.0, 2.0, 4.0, 8.0, 16.0]
        first = aggregator.aggregate([_record(r, 0, {"alpha": 1.0}, {"rmse": v}) for r, v in enumerate(values[:2])])
        second = aggregator.aggregate([_record(r, 0, {"alpha": 1.0}, {"rmse": v}) for r, v in enumerate(values[2:])])

        pooled = aggregator.aggregate(pd.concat([first, second], ignore_index=True)).iloc[0]

        assert pooled["n"] == 5
        assert pooled["mean"] == pytest.approx(np.mean(values))
        assert pooled["std_err"] == pytest.approx(np.std(values, ddof=1) / math.sqrt(5))

    def test_aggregates_per_resample_frame(self, aggregator):
        records = [_record(r, 0, {"alpha": 1.0}, {"rmse": float(r)}) for r in range(4)]
        from_frame = aggregator.aggregate(records_to_frame(records), include_iteration=False)
        from_records = aggregator.aggregate(records)
        pd.testing.assert_frame_equal(from_frame, from_records)
