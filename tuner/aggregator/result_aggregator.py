"""
Summarizes per-resample metric estimates into one row per
(candidate values, metric, estimator).
"""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tuner.candidates.candidate import Candidate
from tuner.fit_eval_engine.fit_record import FitRecord
from tuner.utils import constants

RESERVED_COLUMNS = (
    constants.COL_ID,
    constants.COL_ITERATION,
    constants.COL_METRIC,
    constants.COL_ESTIMATOR,
    constants.COL_ESTIMATE,
    constants.COL_MEAN,
    constants.COL_N,
    constants.COL_STD_ERR,
    constants.COL_CONFIG
)

SUMMARY_COLUMNS = [constants.COL_METRIC, constants.COL_ESTIMATOR, constants.COL_MEAN,
                   constants.COL_N, constants.COL_STD_ERR, constants.COL_CONFIG]


def records_to_frame(records: Sequence[FitRecord]) -> pd.DataFrame:
    """Long per-resample metrics: id, parameters, metric, estimator, estimate, config, iteration."""
    param_names: List[str] = []
    rows = []
    for record in records:
        for name in record.candidate:
            if name not in param_names:
                param_names.append(name)
        for metric in record.metrics:
            row = {constants.COL_ID: record.resample_id}
            row.update(record.candidate.to_dict())
            row[constants.COL_METRIC] = metric.metric
            row[constants.COL_ESTIMATOR] = metric.estimator
            row[constants.COL_ESTIMATE] = metric.estimate
            row[constants.COL_CONFIG] = record.config
            row[constants.COL_ITERATION] = record.iteration
            rows.append(row)
    columns = ([constants.COL_ID] + param_names +
               [constants.COL_METRIC, constants.COL_ESTIMATOR, constants.COL_ESTIMATE,
                constants.COL_CONFIG, constants.COL_ITERATION])
    return pd.DataFrame(rows, columns=columns)


class ResultAggregator:
    """
    Computes mean, count and standard error of every metric per candidate.

    Missing (NaN) estimates do not count towards `n`. A candidate/metric pair
    whose estimates are all missing is kept with mean NaN and n 0.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(self, data: Union[Sequence[FitRecord], pd.DataFrame],
                  include_iteration: Optional[bool] = None) -> pd.DataFrame:
        """
        Aggregate fit records, a per-resample metrics frame, or an already
        aggregated frame (which is pooled exactly, so re-aggregation is a no-op).
        """
        if isinstance(data, pd.DataFrame):
            frame = data
        else:
            # Creation order: iteration, then candidate, then resample.
            records = sorted(data, key=lambda r: (r.iteration, r.candidate_position, r.resample_position))
            frame = records_to_frame(records)
            if include_iteration is None:
                include_iteration = any(r.iteration > 0 for r in records)

        if include_iteration is None:
            include_iteration = constants.COL_ITERATION in frame.columns
        include_iteration = include_iteration and constants.COL_ITERATION in frame.columns

        param_names = [c for c in frame.columns if c not in RESERVED_COLUMNS]
        pooled = constants.COL_MEAN in frame.columns

        groups: Dict[Any, Dict[str, Any]] = {}
        for row in frame.to_dict(orient='records'):
            params = {name: row[name] for name in param_names}
            key = (Candidate(params).key, row[constants.COL_METRIC], row[constants.COL_ESTIMATOR])
            group = groups.get(key)
            if group is None:
                group = {
                    'params': params,
                    'metric': row[constants.COL_METRIC],
                    'estimator': row[constants.COL_ESTIMATOR],
                    'config': row.get(constants.COL_CONFIG),
                    'iteration': row.get(constants.COL_ITERATION),
                    'rows': []
                }
                groups[key] = group
            group['rows'].append(row)

        out_rows = []
        for group in groups.values():
            if pooled:
                mean, n, std_err = _pool_summaries(group['rows'])
            else:
                mean, n, std_err = _summarize([r[constants.COL_ESTIMATE] for r in group['rows']])
            out = dict(group['params'])
            out[constants.COL_METRIC] = group['metric']
            out[constants.COL_ESTIMATOR] = group['estimator']
            out[constants.COL_MEAN] = mean
            out[constants.COL_N] = n
            out[constants.COL_STD_ERR] = std_err
            out[constants.COL_CONFIG] = group['config']
            if include_iteration:
                out[constants.COL_ITERATION] = group['iteration']
            out_rows.append(out)

        columns = param_names + SUMMARY_COLUMNS
        if include_iteration:
            columns = columns + [constants.COL_ITERATION]
        summary = pd.DataFrame(out_rows, columns=columns)
        summary[constants.COL_N] = summary[constants.COL_N].astype(int)
        summary[constants.COL_MEAN] = summary[constants.COL_MEAN].astype(float)
        summary[constants.COL_STD_ERR] = summary[constants.COL_STD_ERR].astype(float)
        self.logger.debug(f"Aggregated {len(frame)} rows into {len(summary)} summary rows")
        return summary


def _summarize(estimates: Iterable[Any]):
    values = np.asarray([np.nan if v is None else v for v in estimates], dtype=float)
    values = values[~np.isnan(values)]
    n = len(values)
    if n == 0:
        return np.nan, 0, np.nan
    mean = float(values.mean())
    std_err = float(values.std(ddof=1) / math.sqrt(n)) if n > 1 else np.nan
    return mean, n, std_err


def _pool_summaries(rows: Sequence[Dict[str, Any]]):
    """Exact pooling of (mean, n, std_err) summaries of disjoint samples."""
    if len(rows) == 1:
        row = rows[0]
        return row[constants.COL_MEAN], int(row[constants.COL_N]), row[constants.COL_STD_ERR]

    parts = [(float(r[constants.COL_MEAN]), int(r[constants.COL_N]), float(r[constants.COL_STD_ERR]))
             for r in rows if int(r[constants.COL_N]) > 0]
    total = sum(n for _, n, _ in parts)
    if total == 0:
        return np.nan, 0, np.nan
    mean = sum(m * n for m, n, _ in parts) / total
    if total < 2:
        return mean, total, np.nan

    # Within-part sum of squares is (n - 1) * s^2 with s^2 = se^2 * n.
    ss = 0.0
    for m, n, se in parts:
        if n > 1:
            ss += (n - 1) * (se ** 2) * n
        ss += n * (m - mean) ** 2
    variance = ss / (total - 1)
    return mean, total, math.sqrt(variance / total)
