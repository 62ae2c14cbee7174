"""
Result table of a tuning run and accessors over it.
"""
from typing import Dict, List, Optional, Sequence

import pandas as pd

from tuner.aggregator.result_aggregator import ResultAggregator, records_to_frame
from tuner.fit_eval_engine.fit_record import FitRecord
from tuner.metrics.metric_set import MetricSet
from tuner.resampling.resample import Resample
from tuner.utils import constants

NOTE_COLUMNS = ['stage', 'severity', 'message', 'config']

SUMMARY_NON_PARAMS = (
    constants.COL_METRIC, constants.COL_ESTIMATOR, constants.COL_MEAN, constants.COL_N,
    constants.COL_STD_ERR, constants.COL_CONFIG, constants.COL_ITERATION
)


class TuneResults:
    """
    Cumulative outcome of grid or sequential search.

    `table` has one row per resample (per resample and iteration for sequential
    search) with nested `metrics`, `notes` and, when requested, `extracts` and
    `predictions` frames.
    """

    def __init__(self, records: Sequence[FitRecord], resamples: Sequence[Resample], metrics: MetricSet,
                 save_pred: bool = False, extract: bool = False, sequential: bool = False):
        self.records: List[FitRecord] = sorted(records, key=lambda r: r.sort_key)
        self.resamples = list(resamples)
        self.metrics = metrics
        self.save_pred = save_pred
        self.extract = extract
        self.sequential = sequential
        self._aggregator = ResultAggregator()
        self.table = self._build_table()

    # ------------------------------------------------------------------
    # Table construction
    # ------------------------------------------------------------------

    def _build_table(self) -> pd.DataFrame:
        by_unit: Dict[tuple, List[FitRecord]] = {}
        for record in self.records:
            by_unit.setdefault((record.iteration, record.resample_position), []).append(record)

        if self.sequential:
            units = sorted(by_unit)
        else:
            units = [(0, position) for position in range(len(self.resamples))]

        rows = []
        for iteration, position in units:
            records = by_unit.get((iteration, position), [])
            row = {
                constants.COL_ID: self.resamples[position].id,
                constants.COL_METRICS: records_to_frame(records).drop(
                    columns=[constants.COL_ID, constants.COL_ITERATION]),
                constants.COL_NOTES: _notes_frame(records)
            }
            if self.extract:
                row[constants.COL_EXTRACTS] = _extracts_frame(records)
            if self.save_pred:
                row[constants.COL_PREDICTIONS] = _predictions_frame(records)
            if self.sequential:
                row[constants.COL_ITERATION] = iteration
            rows.append(row)

        columns = [constants.COL_ID, constants.COL_METRICS, constants.COL_NOTES]
        if self.extract:
            columns.append(constants.COL_EXTRACTS)
        if self.save_pred:
            columns.append(constants.COL_PREDICTIONS)
        if self.sequential:
            columns.append(constants.COL_ITERATION)
        return pd.DataFrame(rows, columns=columns)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def collect_metrics(self, summarize: bool = True) -> pd.DataFrame:
        if not summarize:
            frame = records_to_frame(self.records)
            if not self.sequential:
                frame = frame.drop(columns=[constants.COL_ITERATION])
            return frame
        return self._aggregator.aggregate(self.records, include_iteration=self.sequential)

    def collect_notes(self) -> pd.DataFrame:
        frames = []
        for _, row in self.table.iterrows():
            notes = row[constants.COL_NOTES]
            if len(notes):
                frames.append(notes.assign(**{constants.COL_ID: row[constants.COL_ID]}))
        if not frames:
            return pd.DataFrame(columns=[constants.COL_ID] + NOTE_COLUMNS)
        notes = pd.concat(frames, ignore_index=True)
        return notes[[constants.COL_ID] + NOTE_COLUMNS]

    def collect_predictions(self) -> pd.DataFrame:
        if not self.save_pred:
            raise ValueError("Predictions were not saved; rerun with save_pred=True")
        frames = [
            p.assign(**{constants.COL_ID: rid})
            for rid, p in zip(self.table[constants.COL_ID], self.table[constants.COL_PREDICTIONS])
            if p is not None
        ]
        if not frames:
            return pd.DataFrame(columns=[constants.COL_ID, constants.COL_ROW, constants.COL_PRED])
        return pd.concat(frames, ignore_index=True)

    def collect_extracts(self) -> pd.DataFrame:
        if not self.extract:
            raise ValueError("No extract function was supplied to the run")
        frames = [
            e.assign(**{constants.COL_ID: rid})
            for rid, e in zip(self.table[constants.COL_ID], self.table[constants.COL_EXTRACTS])
            if e is not None
        ]
        if not frames:
            return pd.DataFrame(columns=[constants.COL_ID, constants.COL_EXTRACT, constants.COL_CONFIG])
        return pd.concat(frames, ignore_index=True)

    def show_best(self, metric: Optional[str] = None, n: int = 5) -> pd.DataFrame:
        """Top `n` candidates for `metric` (the first metric by default)."""
        target = self.metrics.get(metric)
        summary = self.collect_metrics()
        summary = summary[summary[constants.COL_METRIC] == target.name]
        summary = summary[summary[constants.COL_N] > 0]
        # Stable sort keeps creation order for ties.
        ordered = summary.sort_values(constants.COL_MEAN, ascending=not target.maximize, kind='mergesort')
        return ordered.head(n).reset_index(drop=True)

    def select_best(self, metric: Optional[str] = None) -> Dict:
        best = self.show_best(metric, n=1)
        if best.empty:
            raise ValueError("No successful fits to select from")
        params = [c for c in best.columns if c not in SUMMARY_NON_PARAMS]
        row = best.iloc[0]
        selected = {name: row[name] for name in params}
        selected[constants.COL_CONFIG] = row[constants.COL_CONFIG]
        return selected

    def n_failed(self) -> int:
        return sum(1 for r in self.records if not r.succeeded)

    def __len__(self) -> int:
        return len(self.table)

    def __repr__(self) -> str:
        kind = "sequential" if self.sequential else "grid"
        return (f"TuneResults({kind}, {len(self.table)} rows, {len(self.records)} fits, "
                f"{self.n_failed()} failed)")


def _notes_frame(records: Sequence[FitRecord]) -> pd.DataFrame:
    # Group members share a preprocessing note; report it once.
    seen = []
    for record in records:
        for note in record.notes:
            if note not in seen:
                seen.append(note)
    return pd.DataFrame([n.to_dict() for n in seen], columns=NOTE_COLUMNS)


def _extracts_frame(records: Sequence[FitRecord]) -> Optional[pd.DataFrame]:
    rows = []
    param_names: List[str] = []
    for record in records:
        if not record.has_extract:
            continue
        for name in record.candidate:
            if name not in param_names:
                param_names.append(name)
        row = record.candidate.to_dict()
        row[constants.COL_EXTRACT] = record.extract
        row[constants.COL_CONFIG] = record.config
        rows.append(row)
    if not rows:
        return None
    return pd.DataFrame(rows, columns=param_names + [constants.COL_EXTRACT, constants.COL_CONFIG])


def _predictions_frame(records: Sequence[FitRecord]) -> Optional[pd.DataFrame]:
    frames = [r.predictions for r in records if r.predictions is not None]
    if not frames:
        return None
    return pd.concat(frames, ignore_index=True)
