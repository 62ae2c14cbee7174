from .metric_set import Metric, MetricResult, MetricSet, BUILTIN_METRICS, rmse, mae, rsq, rsq_trad

__all__ = ['Metric', 'MetricResult', 'MetricSet', 'BUILTIN_METRICS', 'rmse', 'mae', 'rsq', 'rsq_trad']
