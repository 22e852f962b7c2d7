"""Completion metrics over instances and ad-hoc submissions."""

from cadence.metrics.aggregator import (
    AdHocItem,
    AggregatedWorkItem,
    CadenceMetrics,
    Metrics,
    MetricsAggregator,
    NormalizedItem,
    RecurringItem,
    compute_metrics,
    normalize,
)

__all__ = [
    "AdHocItem",
    "AggregatedWorkItem",
    "CadenceMetrics",
    "Metrics",
    "MetricsAggregator",
    "NormalizedItem",
    "RecurringItem",
    "compute_metrics",
    "normalize",
]
