"""
Resample Tuner
==============

Hyperparameter tuning over resampled data: grid search, surrogate guided
sequential search, per-fit failure isolation and metric aggregation.
"""

__version__ = "1.0.0"
