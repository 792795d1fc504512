"""
Metrics sinks for sync and budget evaluation.

Sinks are injected into the services that report to them; there is no
process-wide collector.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class MetricsSink(Protocol):
    """Destination for counters and timings."""

    def increment(self, name: str, value: int = 1, **tags: Any) -> None: ...

    def timing(self, name: str, duration_ms: float, **tags: Any) -> None: ...


class NullMetricsSink:
    """Discards everything."""

    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        pass

    def timing(self, name: str, duration_ms: float, **tags: Any) -> None:
        pass


class LoggingMetricsSink:
    """Writes every metric as a debug log record."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        self.log.debug("metric %s +%s", name, value, extra={"metric": name, "tags": tags})

    def timing(self, name: str, duration_ms: float, **tags: Any) -> None:
        self.log.debug(
            "metric %s %.1fms", name, duration_ms, extra={"metric": name, "tags": tags}
        )


class InMemoryMetricsSink:
    """
    Collects metrics in memory.

    Useful for tests and for exposing recent numbers on a status page.
    """

    def __init__(self):
        self.counters: dict[str, int] = defaultdict(int)
        self.timings: dict[str, list[float]] = defaultdict(list)
        self.events: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        self.counters[name] += value
        self.events.append(
            {
                "timestamp": datetime.now(timezone.utc),
                "name": name,
                "value": value,
                "tags": tags,
            }
        )

    def timing(self, name: str, duration_ms: float, **tags: Any) -> None:
        self.timings[name].append(duration_ms)
        self.events.append(
            {
                "timestamp": datetime.now(timezone.utc),
                "name": name,
                "duration_ms": duration_ms,
                "tags": tags,
            }
        )

    def get_success_rate(self, prefix: str = "sync.connection") -> float:
        """
        Share of successful attempts for a ``<prefix>.succeeded`` /
        ``<prefix>.failed`` counter pair.

        Returns:
            Success rate (0-1); 1.0 when nothing was recorded
        """
        succeeded = self.counters.get(f"{prefix}.succeeded", 0)
        failed = self.counters.get(f"{prefix}.failed", 0)
        total = succeeded + failed
        if not total:
            return 1.0
        return succeeded / total
