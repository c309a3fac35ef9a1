"""Metrics collection for frameforge.

Example:
    >>> from frameforge.metrics import MetricsCollector
    >>> metrics = MetricsCollector()
    >>> metrics.record_operation("list_sessions", 12.5, True)
    >>> print(metrics.get_summary())
"""

from .lib import (
    AggregatedMetrics,
    MetricsCollector,
    MetricsSnapshot,
    OperationMetric,
    SessionMetric,
)

__all__ = [
    "AggregatedMetrics",
    "MetricsCollector",
    "MetricsSnapshot",
    "OperationMetric",
    "SessionMetric",
]
