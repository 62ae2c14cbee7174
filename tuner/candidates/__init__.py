"""
Candidate Module
================

Responsibility:
- Value-keyed candidates (parameter name -> concrete value).
- Ordered, deduplicated candidate sets and grid expansion.
- Stable grouping of candidates sharing preprocessing values.
- Parameter spaces for sequential search (sampling and unit-cube encoding).
"""

from .candidate import Candidate
from .candidate_set import CandidateSet, PreprocessingGroup, GroupMember
from .parameter_space import ParameterDefinition, ParameterSpace

__all__ = [
    'Candidate',
    'CandidateSet',
    'PreprocessingGroup',
    'GroupMember',
    'ParameterDefinition',
    'ParameterSpace'
]
