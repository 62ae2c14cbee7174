import numpy as np
import pytest

from tuner.candidates import Candidate
from tuner.fit_eval_engine import FitRecord, MetricRow, Note
from tuner.metrics.metric_set import MetricSet
from tuner.resampling import Resample
from tuner.results import TuneResults
from tuner.utils import constants


@pytest.fixture
def resamples():
    return [Resample(f"Fold{i + 1}", np.arange(3), np.arange(3, 5)) for i in range(2)]


def _records():
    shared = Note(constants.STAGE_PREPROCESSING, constants.SEVERITY_ERROR, "ValueError: bad", "Preprocessor2")
    records = []
    for r in range(2):
        records.append(FitRecord(
            resample_id=f"Fold{r + 1}", resample_position=r, candidate=Candidate(k=1), candidate_position=0,
            config="Preprocessor1_Model1",
            metrics=[MetricRow("rmse", "standard", 1.0 + r), MetricRow("rsq", "standard", 0.9)],
            extract=f"fit-{r}", has_extract=True,
        ))
        for position in (1, 2):
            records.append(FitRecord(
                resample_id=f"Fold{r + 1}", resample_position=r, candidate=Candidate(k=2, m=position),
                candidate_position=position, config=f"Preprocessor2_Model{position}",
                notes=[shared], failed_stage=constants.STAGE_PREPROCESSING,
            ))
    return records


class TestTuneResults:

    def test_table_has_one_row_per_resample(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names(), extract=True)

        assert list(results.table.columns) == ["id", "metrics", "notes", "extracts"]
        assert list(results.table["id"]) == ["Fold1", "Fold2"]
        metrics = results.table["metrics"].iloc[0]
        assert list(metrics.columns) == ["k", "m", "metric", "estimator", "estimate", "config"]
        assert len(metrics) == 2

    def test_shared_notes_reported_once_per_resample(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names())
        notes = results.collect_notes()
        assert len(notes) == 2
        assert list(notes["id"]) == ["Fold1", "Fold2"]
        assert list(notes.columns) == ["id", "stage", "severity", "message", "config"]

    def test_extracts_only_for_successful_fits(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names(), extract=True)
        extracts = results.collect_extracts()
        assert list(extracts["extract"]) == ["fit-0", "fit-1"]
        assert set(extracts["config"]) == {"Preprocessor1_Model1"}

    def test_missing_predictions_are_placeholders(self, resamples):
        records = [r for r in _records() if not r.succeeded]
        results = TuneResults(records, resamples, MetricSet.from_names(), save_pred=True, extract=True)
        assert results.table["predictions"].isna().all()
        assert results.table["extracts"].isna().all()
        assert results.collect_predictions().empty

    def test_show_and_select_best(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names())
        best = results.show_best()
        assert len(best) == 1
        assert best.iloc[0]["mean"] == pytest.approx(1.5)
        selected = results.select_best()
        assert selected["k"] == 1
        assert selected["config"] == "Preprocessor1_Model1"

    def test_collect_metrics_unsummarized(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names())
        raw = results.collect_metrics(summarize=False)
        assert len(raw) == 4
        assert "iteration" not in raw.columns

    def test_n_failed(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names())
        assert results.n_failed() == 4
        assert "4 failed" in repr(results)

    def test_accessors_require_requested_columns(self, resamples):
        results = TuneResults(_records(), resamples, MetricSet.from_names())
        with pytest.raises(ValueError):
            results.collect_predictions()
        with pytest.raises(ValueError):
            results.collect_extracts()
