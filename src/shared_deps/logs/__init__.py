from .aggregator import Severity, LogEvent, LogAggregator, threshold_for

__all__ = ["Severity", "LogEvent", "LogAggregator", "threshold_for"]
