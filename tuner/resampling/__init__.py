"""
Resampling Module
=================

Responsibility:
- Immutable train/validation splits with stable identifiers.
- Seeded V-fold, bootstrap and validation-split generation.
"""

from .resample import Resample
from .resample_generator import ResampleGenerator

__all__ = ['Resample', 'ResampleGenerator']
