"""
Search Engine Module
====================

Responsibility:
- Sequential (surrogate guided) search controller and its state machine.
- Gaussian process surrogate and acquisition functions.
- Candidate proposal from the aggregated history.
- Stopping rules (iteration limit, no improvement).
"""

from .acquisition import (
    AcquisitionFunction,
    ConfidenceBound,
    ExpectedImprovement,
    ProbabilityImprovement,
    create_acquisition
)
from .surrogate import GaussianProcessSurrogate
from .proposer import CandidateProposer
from .stopping_criteria import StoppingCriteria
from .sequential_search_engine import SearchState, SequentialSearchEngine

__all__ = [
    'AcquisitionFunction',
    'ConfidenceBound',
    'ExpectedImprovement',
    'ProbabilityImprovement',
    'create_acquisition',
    'GaussianProcessSurrogate',
    'CandidateProposer',
    'StoppingCriteria',
    'SearchState',
    'SequentialSearchEngine'
]
