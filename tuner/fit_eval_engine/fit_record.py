from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from tuner.candidates.candidate import Candidate
from tuner.utils import constants
from tuner.utils.cache import fingerprint


@dataclass(frozen=True)
class Note:
    """A diagnostic captured while fitting one (resample, candidate) pair."""
    stage: str
    severity: str
    message: str
    config: str

    @property
    def is_error(self) -> bool:
        return self.severity == constants.SEVERITY_ERROR

    def to_dict(self) -> Dict[str, str]:
        return {
            'stage': self.stage,
            'severity': self.severity,
            'message': self.message,
            'config': self.config
        }


@dataclass(frozen=True)
class MetricRow:
    metric: str
    estimator: str
    estimate: float


@dataclass
class FitRecord:
    """
    Outcome of evaluating one candidate on one resample.

    A record with a `failed_stage` has no metrics; metric-level and extract
    failures only add notes.
    """
    resample_id: str
    resample_position: int
    candidate: Candidate
    candidate_position: int
    config: str
    iteration: int = 0
    metrics: List[MetricRow] = field(default_factory=list)
    predictions: Optional[pd.DataFrame] = None
    extract: Any = None
    has_extract: bool = False
    notes: List[Note] = field(default_factory=list)
    failed_stage: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None

    @property
    def sort_key(self):
        return (self.iteration, self.resample_position, self.candidate_position)

    def metrics_frame(self) -> pd.DataFrame:
        """Parameter columns followed by metric, estimator, estimate and config."""
        params = self.candidate.to_dict()
        rows = []
        for row in self.metrics:
            entry = dict(params)
            entry[constants.COL_METRIC] = row.metric
            entry[constants.COL_ESTIMATOR] = row.estimator
            entry[constants.COL_ESTIMATE] = row.estimate
            entry[constants.COL_CONFIG] = self.config
            rows.append(entry)
        columns = list(params) + [
            constants.COL_METRIC, constants.COL_ESTIMATOR, constants.COL_ESTIMATE, constants.COL_CONFIG
        ]
        return pd.DataFrame(rows, columns=columns)

    def to_progress_entry(self) -> Dict[str, Any]:
        """Flat, JSON serializable summary used for the progress log."""
        return {
            'iteration': self.iteration,
            'resample': self.resample_id,
            'config': self.config,
            'params': {k: v for k, v in self.candidate.items()},
            'candidate_hash': fingerprint(repr(self.candidate.key)),
            'status': 'success' if self.succeeded else 'failed',
            'failed_stage': self.failed_stage,
            'metrics': {row.metric: row.estimate for row in self.metrics},
            'notes': [note.to_dict() for note in self.notes]
        }
