"""
Fit-Eval Engine Module
======================

Responsibility:
- Evaluate candidates on one resample, stage by stage.
- Convert backend failures, warnings and timeouts into notes on fit records.
"""

from .fit_record import FitRecord, MetricRow, Note
from .fit_eval_unit import FitEvalUnit

__all__ = ['FitRecord', 'MetricRow', 'Note', 'FitEvalUnit']
