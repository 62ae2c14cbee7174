"""
Configuration Manager Module
============================

Responsibility:
- Centralized loading and validation of JSON configuration files.
- Enforcement of schema constraints and logical bounds.
- Resource usage guardrails (grid size, memory).
- Deterministic seed propagation for reproducibility.
- Typed control and search options.
"""

from .config_manager import ConfigurationManager
from .control import ControlOptions, SearchOptions

__all__ = ['ConfigurationManager', 'ControlOptions', 'SearchOptions']
