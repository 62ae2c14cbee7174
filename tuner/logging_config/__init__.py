"""
Logging Configuration Module
============================

Responsibility:
- Console (colored) and rotating file handlers for tuning runs.
"""

from .logging_config import LoggingConfigurator, ColoredFormatter

__all__ = ['LoggingConfigurator', 'ColoredFormatter']
