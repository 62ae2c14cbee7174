import enum
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tuner.aggregator.result_aggregator import ResultAggregator
from tuner.backend.base_backend import ModelBackend
from tuner.base.base_engine import BaseEngine
from tuner.candidates.candidate_set import CandidateSet
from tuner.candidates.parameter_space import ParameterSpace
from tuner.config_manager.control import ControlOptions, SearchOptions
from tuner.execution_engine.execution_engine import ExecutionEngine
from tuner.fit_eval_engine.fit_record import FitRecord
from tuner.metrics.metric_set import Metric, MetricSet
from tuner.resampling.resample import Resample
from tuner.results.tune_results import TuneResults
from tuner.search_engine.proposer import CandidateProposer
from tuner.search_engine.stopping_criteria import StoppingCriteria
from tuner.utils import constants
from tuner.utils.error_handling import handle_engine_errors
from tuner.utils.exceptions import ConfigurationError, SurrogateOptimizationFailure
from tuner.utils.file_io import append_jsonl, save_dataframe, write_json


class SearchState(enum.Enum):
    INITIALIZING = "initializing"
    PROPOSING = "proposing"
    EVALUATING = "evaluating"
    AGGREGATING = "aggregating"
    STOPPED = "stopped"


class SequentialSearchEngine(BaseEngine):
    """
    Surrogate guided search.

    Lifecycle:
    1. INITIALIZING: evaluate the initial batch (iteration 0).
    2. PROPOSING: fit the surrogate on the summary, pick new candidates.
    3. EVALUATING: run the proposals on every resample.
    4. AGGREGATING: recompute the summary from the full history.
    5. STOPPED: iteration limit, no improvement, or a surrogate failure.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        super().__init__(config, logger)
        self.execution_engine = ExecutionEngine(logger)
        self.aggregator = ResultAggregator(logger)
        self.state: Optional[SearchState] = None
        self.iteration_history: List[Dict[str, Any]] = []
        self.stop_reason: str = ""
        self.target_metric: Optional[str] = None

    def _get_engine_directory_name(self) -> str:
        return constants.SEQUENTIAL_SEARCH_DIR

    @handle_engine_errors("Sequential Search")
    def execute(self, dataset: pd.DataFrame, resamples: Sequence[Resample], space: ParameterSpace,
                backend: ModelBackend, metrics: Optional[MetricSet] = None,
                control: Optional[ControlOptions] = None, options: Optional[SearchOptions] = None,
                initial: Optional[Union[CandidateSet, pd.DataFrame, TuneResults, Sequence[Dict]]] = None
                ) -> TuneResults:
        """
        Run the search until a stopping rule fires.

        Args:
            initial: Optional starting point. Candidates are evaluated as
                iteration 0; a TuneResults from an earlier run on the same
                resamples is reused without refitting. When omitted,
                `options.initial` decides (a count of random draws or explicit
                candidates).

        Raises:
            SurrogateOptimizationFailure: The surrogate or acquisition step
                failed; `.results` holds every completed iteration.
        """
        metrics = metrics or MetricSet.from_names()
        control = control or ControlOptions.from_config(self.config)
        options = options or SearchOptions.from_config(self.config)
        target = metrics.get(options.metric)
        rng = np.random.default_rng(options.seed)

        if not resamples:
            raise ConfigurationError("At least one resample is required")

        self.iteration_history = []
        self.stop_reason = ""
        self.target_metric = target.name
        self.state = SearchState.INITIALIZING
        self.logger.info(
            f"Starting sequential search: optimizing {target.name} ({target.direction}), "
            f"iter={options.n_iter}, no_improve={options.no_improve}, acquisition={options.acquisition}"
        )

        candidates, history = self._initialize(dataset, resamples, space, backend, metrics,
                                               control, options, initial, rng)

        self.state = SearchState.AGGREGATING
        summary = self.aggregator.aggregate(history, include_iteration=True)
        best = self._best_value(summary, target)
        self._record_iteration(0, best, improved=best is not None, n_no_improve=0, n_new=len(candidates))
        self._save_progress([r for r in history if r.iteration == 0])

        proposer = CandidateProposer(space, target, options, rng, self.logger)
        stopping = StoppingCriteria(options, self.logger)
        iteration = 0

        while True:
            stop, reason = stopping.should_stop(self.iteration_history)
            if stop:
                self.stop_reason = reason
                self.state = SearchState.STOPPED
                self.logger.info(f"Sequential search stopped at iteration {iteration}: {reason}")
                break

            iteration += 1
            self.state = SearchState.PROPOSING
            try:
                proposals = proposer.propose(summary, options.budget, iteration, exclude=candidates,
                                             n_no_improve=self.iteration_history[-1]['n_no_improve'])
            except SurrogateOptimizationFailure as e:
                self.state = SearchState.STOPPED
                self.stop_reason = f"Surrogate failure: {e}"
                self.logger.error(f"Sequential search failed at iteration {iteration}: {e}")
                results = self._build_results(history, resamples, metrics, control)
                self._save_results(results)
                raise SurrogateOptimizationFailure(str(e), results=results) from e

            self.state = SearchState.EVALUATING
            offset = len(candidates)
            candidates.add(proposals)
            if len(proposals) == 1:
                labels = [f"Iter{iteration}"]
            else:
                labels = [f"Iter{iteration}_Candidate{j + 1}" for j in range(len(proposals))]
            new_records = self.execution_engine.run(
                dataset, resamples, CandidateSet(proposals), backend, metrics, control,
                iteration=iteration, config_labels=labels, position_offset=offset
            )
            history.extend(new_records)
            self._save_progress(new_records)

            self.state = SearchState.AGGREGATING
            summary = self.aggregator.aggregate(history, include_iteration=True)
            current = self._best_value(summary, target)
            improved = _is_better(current, best, target)
            if improved:
                best = current
                n_no_improve = 0
            else:
                n_no_improve = self.iteration_history[-1]['n_no_improve'] + 1
            self._record_iteration(iteration, best, improved, n_no_improve, len(proposals))

        results = self._build_results(history, resamples, metrics, control)
        self._save_results(results)
        return results

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def _initialize(self, dataset, resamples, space, backend, metrics, control, options, initial, rng):
        if isinstance(initial, TuneResults):
            ids = [r.id for r in initial.resamples]
            if ids != [r.id for r in resamples]:
                raise ConfigurationError("Initial results were computed on different resamples")
            records = sorted(initial.records, key=lambda r: r.candidate_position)
            candidates = CandidateSet(r.candidate for r in records)
            self._check_candidates(candidates, space, backend)
            history = [_as_initial(r, candidates) for r in initial.records]
            self.logger.info(f"Reusing {len(candidates)} evaluated candidates as iteration 0")
            return candidates, history

        if initial is None:
            initial = options.initial
        if isinstance(initial, int):
            candidates = CandidateSet(space.sample(initial, rng))
        elif isinstance(initial, pd.DataFrame):
            candidates = CandidateSet.from_frame(initial)
        else:
            candidates = CandidateSet(initial)
        if len(candidates) == 0:
            raise ConfigurationError("The initial candidate set is empty")
        self._check_candidates(candidates, space, backend)

        history = self.execution_engine.run(dataset, resamples, candidates, backend, metrics, control, iteration=0)
        return candidates, list(history)

    def _check_candidates(self, candidates: CandidateSet, space: ParameterSpace, backend: ModelBackend) -> None:
        names = candidates.parameter_names
        if sorted(names) != sorted(space.names):
            raise ConfigurationError(
                f"Initial candidates parameters {names} do not match the parameter space {space.names}"
            )
        space.check(candidates)
        try:
            backend.check_candidates(names)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _best_value(self, summary: pd.DataFrame, target: Metric) -> Optional[float]:
        rows = summary[(summary[constants.COL_METRIC] == target.name) & (summary[constants.COL_N] > 0)]
        means = rows[constants.COL_MEAN].to_numpy(dtype=float)
        means = means[np.isfinite(means)]
        if len(means) == 0:
            return None
        return float(means.max() if target.maximize else means.min())

    def _record_iteration(self, iteration: int, best: Optional[float], improved: bool,
                          n_no_improve: int, n_new: int) -> None:
        entry = {
            'iteration': iteration,
            'best': best,
            'improved': improved,
            'n_no_improve': n_no_improve,
            'n_candidates': n_new
        }
        self.iteration_history.append(entry)
        marker = "improved" if improved else f"no improvement ({n_no_improve})"
        self.logger.info(f"Iteration {iteration}: best={best} [{marker}]")

    def _build_results(self, history: List[FitRecord], resamples, metrics, control) -> TuneResults:
        return TuneResults(history, resamples, metrics,
                           save_pred=control.save_pred,
                           extract=control.extract is not None,
                           sequential=True)

    def _save_progress(self, records: Sequence[FitRecord]) -> None:
        if not self.save_results or not records:
            return
        try:
            append_jsonl(self.output_dir / constants.PROGRESS_FILE,
                         (record.to_progress_entry() for record in records))
        except Exception as e:
            self.logger.warning(f"Could not append search progress: {e}")

    def _save_results(self, results: TuneResults) -> None:
        if not self.save_results:
            return
        try:
            save_dataframe(results.collect_metrics(), self.output_dir / constants.METRICS_FILE)
            save_dataframe(results.collect_notes(), self.output_dir / constants.NOTES_FILE)
            write_json(self.output_dir / constants.SEARCH_HISTORY_FILE,
                       {'stop_reason': self.stop_reason, 'iterations': self.iteration_history})
            try:
                best = results.select_best(self.target_metric)
            except ValueError:
                best = None
            write_json(self.output_dir / constants.BEST_CONFIG_FILE,
                       {"metric": self.target_metric, "best": best})
            self.logger.info(f"Sequential search results saved to {self.output_dir}")
        except Exception as e:
            self.logger.warning(f"Could not save sequential search results: {e}")


def _is_better(current: Optional[float], best: Optional[float], target: Metric) -> bool:
    if current is None:
        return False
    if best is None:
        return True
    return current > best if target.maximize else current < best


def _as_initial(record: FitRecord, candidates: CandidateSet) -> FitRecord:
    """Copy of an earlier record placed at iteration 0 of this search."""
    return FitRecord(
        resample_id=record.resample_id,
        resample_position=record.resample_position,
        candidate=record.candidate,
        candidate_position=candidates.position(record.candidate),
        config=record.config,
        iteration=0,
        metrics=list(record.metrics),
        predictions=record.predictions,
        extract=record.extract,
        has_extract=record.has_extract,
        notes=list(record.notes),
        failed_stage=record.failed_stage
    )
