import logging
import warnings
from typing import List, Optional, Sequence

import pandas as pd
from joblib import Parallel, delayed

from tuner.backend.base_backend import ModelBackend
from tuner.candidates.candidate_set import CandidateSet, PreprocessingGroup
from tuner.config_manager.control import ControlOptions
from tuner.fit_eval_engine.fit_eval_unit import FitEvalUnit
from tuner.fit_eval_engine.fit_record import FitRecord
from tuner.metrics.metric_set import MetricSet
from tuner.resampling.resample import Resample
from tuner.utils import constants
from tuner.utils.exceptions import AllCandidatesFailedWarning


def _evaluate_resample(unit: FitEvalUnit, dataset: pd.DataFrame, resample: Resample, resample_position: int,
                       groups: Sequence[PreprocessingGroup], iteration: int) -> List[FitRecord]:
    records = []
    for group in groups:
        records.extend(unit.evaluate_group(dataset, resample, group, resample_position, iteration))
    return records


def _evaluate_unit(unit: FitEvalUnit, dataset: pd.DataFrame, resample: Resample, resample_position: int,
                   group: PreprocessingGroup, iteration: int) -> List[FitRecord]:
    return unit.evaluate_group(dataset, resample, group, resample_position, iteration)


class ExecutionEngine:
    """
    Resample x candidate execution loop.

    Produces exactly one FitRecord per (resample, candidate) pair, in resample
    order then candidate order, whatever the parallel layout. Individual fit
    failures never raise out of `run`.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def run(self, dataset: pd.DataFrame, resamples: Sequence[Resample], candidates: CandidateSet,
            backend: ModelBackend, metrics: MetricSet, control: Optional[ControlOptions] = None,
            iteration: int = 0, config_labels: Optional[Sequence[str]] = None,
            position_offset: int = 0) -> List[FitRecord]:
        control = control or ControlOptions()
        unit = FitEvalUnit(backend, metrics, control, self.logger)

        # One grouping pass, reused for every resample.
        groups = candidates.group_by(backend.preprocessing_parameters, config_labels, position_offset)

        self.logger.info(
            f"Evaluating {len(candidates)} candidates ({len(groups)} preprocessing groups) "
            f"on {len(resamples)} resamples [iteration {iteration}, parallel over {control.parallel_over}, "
            f"n_jobs={control.n_jobs}]"
        )

        parallel = Parallel(n_jobs=control.n_jobs, prefer=control.prefer)
        if control.parallel_over == constants.PARALLEL_OVER_EVERYTHING:
            batches = parallel(
                delayed(_evaluate_unit)(unit, dataset, resample, position, group, iteration)
                for position, resample in enumerate(resamples)
                for group in groups
            )
        else:
            batches = parallel(
                delayed(_evaluate_resample)(unit, dataset, resample, position, groups, iteration)
                for position, resample in enumerate(resamples)
            )

        records = [record for batch in batches for record in batch]
        records.sort(key=lambda r: (r.resample_position, r.candidate_position))

        n_failed = sum(1 for r in records if not r.succeeded)
        self.logger.info(f"Iteration {iteration}: {len(records) - n_failed}/{len(records)} fits succeeded")

        if records and n_failed == len(records):
            self._warn_all_failed(records)

        return records

    def _warn_all_failed(self, records: Sequence[FitRecord]) -> None:
        stages = []
        for record in records:
            if record.failed_stage not in stages:
                stages.append(record.failed_stage)
        message = f"All models failed. Failing stage(s): {', '.join(stages)}. See the notes column for details."
        self.logger.warning(message)
        warnings.warn(message, AllCandidatesFailedWarning, stacklevel=3)
