from .result_aggregator import ResultAggregator, records_to_frame

__all__ = ['ResultAggregator', 'records_to_frame']
