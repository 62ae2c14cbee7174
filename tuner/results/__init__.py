from .tune_results import TuneResults

__all__ = ['TuneResults']
