import logging
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from tuner.aggregator.result_aggregator import ResultAggregator
from tuner.backend.base_backend import ModelBackend
from tuner.base.base_engine import BaseEngine
from tuner.candidates.candidate_set import CandidateSet
from tuner.config_manager.control import ControlOptions
from tuner.execution_engine.execution_engine import ExecutionEngine
from tuner.metrics.metric_set import MetricSet
from tuner.resampling.resample import Resample
from tuner.results.tune_results import TuneResults
from tuner.utils import constants
from tuner.utils.error_handling import handle_engine_errors
from tuner.utils.exceptions import ConfigurationError
from tuner.utils.file_io import append_jsonl, save_dataframe, write_json


class GridSearchEngine(BaseEngine):
    """
    Evaluates a fixed candidate set on every resample.

    Failed fits are recorded as notes and never abort the run. When
    `outputs.save_results` is set, the per-fit progress log, metric summary,
    notes and best configuration are written to the engine directory.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        super().__init__(config, logger)
        self.execution_engine = ExecutionEngine(logger)
        self.aggregator = ResultAggregator(logger)

    def _get_engine_directory_name(self) -> str:
        return constants.GRID_SEARCH_DIR

    @handle_engine_errors("Grid Search")
    def execute(self, dataset: pd.DataFrame, resamples: Sequence[Resample], candidates: CandidateSet,
                backend: ModelBackend, metrics: Optional[MetricSet] = None,
                control: Optional[ControlOptions] = None) -> TuneResults:
        """
        Run every (resample, candidate) fit and return the result table.

        Args:
            dataset: Base data the resample indices point into.
            resamples: Train/validation splits, evaluated in the given order.
            candidates: Parameter values to evaluate.
            backend: Preprocessing and model capability object.
            metrics: Metrics to compute (rmse and rsq by default).
            control: Execution options.

        Returns:
            TuneResults with one table row per resample.
        """
        metrics = metrics or MetricSet.from_names()
        control = control or ControlOptions.from_config(self.config)

        if not resamples:
            raise ConfigurationError("At least one resample is required")
        if not isinstance(candidates, CandidateSet):
            candidates = CandidateSet(candidates)
        if len(candidates) == 0:
            raise ConfigurationError("The candidate set is empty")
        try:
            backend.check_candidates(candidates.parameter_names)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.logger.info(
            f"Starting grid search: {len(candidates)} candidates x {len(resamples)} resamples "
            f"= {len(candidates) * len(resamples)} fits"
        )

        records = self.execution_engine.run(dataset, resamples, candidates, backend, metrics, control)

        results = TuneResults(records, resamples, metrics,
                              save_pred=control.save_pred,
                              extract=control.extract is not None)

        self.logger.info(f"Grid search complete: {results!r}")

        if self.save_results:
            self._save_results(results)

        return results

    def _save_results(self, results: TuneResults) -> None:
        try:
            append_jsonl(self.output_dir / constants.PROGRESS_FILE,
                         (record.to_progress_entry() for record in results.records))
            save_dataframe(results.collect_metrics(), self.output_dir / constants.METRICS_FILE)
            save_dataframe(results.collect_notes(), self.output_dir / constants.NOTES_FILE)
            try:
                best = results.select_best()
            except ValueError:
                best = None
            write_json(self.output_dir / constants.BEST_CONFIG_FILE,
                       {'metric': results.metrics.get().name, 'best': best})
            self.logger.info(f"Grid search results saved to {self.output_dir}")
        except Exception as e:
            self.logger.warning(f"Could not save grid search results: {e}")
