"""
Monitoring package.
"""

from .metrics import InMemoryMetricsSink, LoggingMetricsSink, MetricsSink, NullMetricsSink

__all__ = ["InMemoryMetricsSink", "LoggingMetricsSink", "MetricsSink", "NullMetricsSink"]
