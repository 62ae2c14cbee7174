"""
Fit-and-evaluate one resample for a group of candidates.

Every backend call runs as a named stage. Exceptions, fatal warnings and
timeouts inside a stage become a `FitFailure` of that stage, which is caught here
and written onto the affected records as notes. Nothing raised by the backend
escapes this module.
"""
import dataclasses
import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from tuner.backend.base_backend import FittedWorkflow, ModelBackend
from tuner.candidates.candidate import Candidate
from tuner.candidates.candidate_set import GroupMember, PreprocessingGroup
from tuner.config_manager.control import ControlOptions
from tuner.fit_eval_engine.fit_record import FitRecord, MetricRow, Note
from tuner.fit_eval_engine.stage_warnings import capture_stage_warnings
from tuner.metrics.metric_set import MetricSet
from tuner.resampling.resample import Resample
from tuner.utils import constants
from tuner.utils.error_handling import describe_exception
from tuner.utils.exceptions import (
    ExtractFailure,
    MetricComputationFailure,
    ModelFitFailure,
    PredictionFailure,
    PreprocessingFailure
)


class FitEvalUnit:
    """Runs the preprocessing, model, prediction, metric and extract stages."""

    def __init__(self, backend: ModelBackend, metrics: MetricSet,
                 control: Optional[ControlOptions] = None,
                 logger: Optional[logging.Logger] = None):
        self.backend = backend
        self.metrics = metrics
        self.control = control or ControlOptions()
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(self, dataset: pd.DataFrame, resample: Resample, candidate: Candidate,
                 resample_position: int = 0, candidate_position: int = 0,
                 config: str = "Preprocessor1_Model1", iteration: int = 0) -> FitRecord:
        """Evaluate a single candidate on a single resample."""
        prep, _ = self.backend.split_parameters(candidate)
        group = PreprocessingGroup("Preprocessor1", prep,
                                   [GroupMember(candidate_position, candidate, config)])
        return self.evaluate_group(dataset, resample, group, resample_position, iteration)[0]

    def evaluate_group(self, dataset: pd.DataFrame, resample: Resample, group: PreprocessingGroup,
                       resample_position: int = 0, iteration: int = 0) -> List[FitRecord]:
        """
        Evaluate every member of a preprocessing group on one resample.

        Preprocessing is fitted once for the group. If it fails, every member
        gets the same failure note and no model is fitted.
        """
        records = {
            member.position: FitRecord(
                resample_id=resample.id,
                resample_position=resample_position,
                candidate=member.candidate,
                candidate_position=member.position,
                config=member.config,
                iteration=iteration
            )
            for member in group.members
        }

        train_view = resample.train_view(dataset)
        validation_view = resample.validation_view(dataset)

        prep_notes: List[Note] = []
        try:
            preprocessor, processed_train, processed_validation = self._run_stage(
                constants.STAGE_PREPROCESSING, PreprocessingFailure, group.preprocessor_id, prep_notes,
                self._preprocess, train_view, validation_view, group.params
            )
        except PreprocessingFailure as e:
            failure = Note(constants.STAGE_PREPROCESSING, constants.SEVERITY_ERROR, str(e), group.preprocessor_id)
            self._log_failure(resample.id, group.preprocessor_id, failure)
            for record in records.values():
                record.notes.extend(prep_notes)
                record.notes.append(failure)
                record.failed_stage = constants.STAGE_PREPROCESSING
            return list(records.values())

        for record in records.values():
            record.notes.extend(prep_notes)

        truth = self._truth(processed_validation, validation_view)

        for fit_params, members, submodel_values in self._model_batches(group):
            self._evaluate_batch(records, members, fit_params, submodel_values,
                                 preprocessor, processed_train, processed_validation,
                                 truth, validation_view, resample.id)

        return list(records.values())

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _preprocess(self, train_view, validation_view, params):
        preprocessor = self.backend.fit_preprocessing(train_view, params)
        processed_train = self.backend.apply_preprocessing(preprocessor, train_view)
        processed_validation = self.backend.apply_preprocessing(preprocessor, validation_view)
        return preprocessor, processed_train, processed_validation

    def _evaluate_batch(self, records: Dict[int, FitRecord], members: Sequence[GroupMember],
                        fit_params: Dict[str, Any], submodel_values: Optional[List[Any]],
                        preprocessor, processed_train, processed_validation,
                        truth: np.ndarray, validation_view: pd.DataFrame, resample_id: str) -> None:
        lead = members[0]
        batch_notes: List[Note] = []
        try:
            model = self._run_stage(constants.STAGE_MODEL, ModelFitFailure, lead.config, batch_notes,
                                    self.backend.fit_model, processed_train, fit_params)
        except ModelFitFailure as e:
            failure = Note(constants.STAGE_MODEL, constants.SEVERITY_ERROR, str(e), lead.config)
            self._fail_members(records, members, batch_notes, failure, resample_id)
            return

        try:
            if submodel_values is None:
                predicted = {lead.position: self._run_stage(
                    constants.STAGE_PREDICTION, PredictionFailure, lead.config, batch_notes,
                    self.backend.predict, model, processed_validation
                )}
            else:
                by_value = self._run_stage(
                    constants.STAGE_PREDICTION, PredictionFailure, lead.config, batch_notes,
                    self.backend.predict_submodels, model, processed_validation, submodel_values
                )
                param = self.backend.submodel_parameter
                predicted = {m.position: by_value[m.candidate[param]] for m in members}
        except PredictionFailure as e:
            failure = Note(constants.STAGE_PREDICTION, constants.SEVERITY_ERROR, str(e), lead.config)
            self._fail_members(records, members, batch_notes, failure, resample_id)
            return

        for member in members:
            record = records[member.position]
            record.notes.extend(_relabel(batch_notes, member.config))
            estimate = np.asarray(predicted[member.position]).ravel()
            self._compute_metrics(record, truth, estimate)

            if self.control.save_pred:
                record.predictions = self._prediction_frame(member, validation_view, estimate)

            if self.control.extract is not None:
                workflow = FittedWorkflow(preprocessor, model, member.candidate)
                try:
                    record.extract = self._run_stage(constants.STAGE_EXTRACT, ExtractFailure, member.config,
                                                     record.notes, self.control.extract, workflow)
                    record.has_extract = True
                except ExtractFailure as e:
                    note = Note(constants.STAGE_EXTRACT, constants.SEVERITY_ERROR, str(e), member.config)
                    record.notes.append(note)
                    self._log_failure(resample_id, member.config, note)

    def _compute_metrics(self, record: FitRecord, truth: np.ndarray, estimate: np.ndarray) -> None:
        for metric in self.metrics:
            try:
                result = self._run_stage(constants.STAGE_METRICS, MetricComputationFailure, record.config,
                                         record.notes, metric, truth, estimate)
            except MetricComputationFailure as e:
                note = Note(constants.STAGE_METRICS, constants.SEVERITY_ERROR, f"{metric.name}: {e}", record.config)
                record.notes.append(note)
                continue
            record.metrics.append(MetricRow(result.name, result.estimator, result.estimate))

    def _run_stage(self, stage: str, failure_cls, config: str, notes: List[Note],
                   fn: Callable, *args) -> Any:
        """
        Call `fn(*args)` as one stage.

        Captured warnings are appended to `notes`. Exceptions, fatal warning
        categories and timeouts raise `failure_cls`.
        """
        if self.control.timeout is None:
            result, caught, error = _call_capturing(fn, args)
        else:
            executor = ThreadPoolExecutor(max_workers=1)
            future = executor.submit(_call_capturing, fn, args)
            try:
                result, caught, error = future.result(timeout=self.control.timeout)
            except TimeoutError:
                raise failure_cls(f"{stage} timed out after {self.control.timeout} seconds")
            finally:
                executor.shutdown(wait=False)

        if error is not None:
            raise failure_cls(describe_exception(error)) from error

        fatal = self.backend.fatal_warnings
        for w in caught:
            if fatal and issubclass(w.category, fatal):
                raise failure_cls(f"{w.category.__name__}: {w.message}")
            notes.append(Note(stage, constants.SEVERITY_WARNING, f"{w.category.__name__}: {w.message}", config))
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _model_batches(self, group: PreprocessingGroup) -> List[Tuple[Dict[str, Any], List[GroupMember], Optional[List[Any]]]]:
        """
        Split a group into model fits.

        Members that differ only in the submodel parameter share one fit with the
        largest value. Members whose value is not a finite number >= 1 are fitted
        on their own so the backend can reject them.
        """
        param = self.backend.submodel_parameter
        batches: Dict[Any, List[GroupMember]] = {}
        singles = []
        for member in group.members:
            _, model_part = self.backend.split_parameters(member.candidate)
            if param is None or param not in model_part:
                singles.append(member)
                continue
            batches.setdefault(model_part.without([param]).key, []).append(member)

        plan = []
        for member in singles:
            plan.append((self.backend.split_parameters(member.candidate)[1].to_dict(), [member], None))
        for batch in batches.values():
            members = []
            for member in batch:
                value = member.candidate[param]
                if _is_finite_number(value) and value >= 1:
                    members.append(member)
                else:
                    plan.append((self.backend.split_parameters(member.candidate)[1].to_dict(), [member], None))
            if not members:
                continue
            values = [m.candidate[param] for m in members]
            fit_params = self.backend.split_parameters(members[0].candidate)[1].to_dict()
            fit_params[param] = max(values)
            plan.append((fit_params, members, values))

        order = {m.position: i for i, m in enumerate(group.members)}
        return sorted(plan, key=lambda item: order[item[1][0].position])

    def _truth(self, processed_validation, validation_view: pd.DataFrame) -> np.ndarray:
        if processed_validation.y is not None:
            return np.asarray(processed_validation.y).ravel()
        return validation_view[self.backend.outcome].to_numpy()

    def _prediction_frame(self, member: GroupMember, validation_view: pd.DataFrame,
                          estimate: np.ndarray) -> pd.DataFrame:
        frame = pd.DataFrame({
            constants.COL_ROW: validation_view.index.to_numpy(),
            constants.COL_PRED: estimate
        })
        if self.backend.outcome in validation_view.columns:
            frame[self.backend.outcome] = validation_view[self.backend.outcome].to_numpy()
        for name, value in member.candidate.items():
            frame[name] = [value] * len(frame)
        frame[constants.COL_CONFIG] = member.config
        return frame

    def _fail_members(self, records, members, batch_notes, failure: Note, resample_id: str) -> None:
        self._log_failure(resample_id, failure.config, failure)
        for member in members:
            record = records[member.position]
            record.notes.extend(_relabel(batch_notes, member.config))
            record.notes.append(dataclasses.replace(failure, config=member.config))
            record.failed_stage = failure.stage

    def _log_failure(self, resample_id: str, config: str, note: Note) -> None:
        message = f"[{resample_id}] {config} failed at {note.stage}: {note.message}"
        if self.control.verbose:
            self.logger.warning(message)
        else:
            self.logger.debug(message)


def _call_capturing(fn: Callable, args: Sequence[Any]):
    """Run `fn` recording warnings; returns (result, warnings, exception)."""
    with capture_stage_warnings() as caught:
        try:
            result = fn(*args)
        except Exception as e:
            return None, list(caught), e
    return result, list(caught), None


def _relabel(notes: Sequence[Note], config: str) -> List[Note]:
    return [n if n.config == config else dataclasses.replace(n, config=config) for n in notes]


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    return math.isfinite(float(value))
