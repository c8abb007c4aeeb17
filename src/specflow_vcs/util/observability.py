"""Structured operation events and per-operation metrics."""

from __future__ import annotations

import json
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any

from specflow_vcs.util.logging import get_logger, normalize_level

EVENTS_LOGGER = "specflow_vcs.events"


@dataclass(frozen=True)
class LogEvent:
    """One machine-readable event.

    Attributes:
        event_type: Dotted event name, e.g. ``vcs.operation_failed``.
        timestamp: Unix timestamp in seconds.
        payload: Event data (operation, workspace, error, ...).
        context: Fields shared by every event of the emitting logger.
    """

    event_type: str
    timestamp: float
    payload: dict[str, Any]
    context: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True, default=str)


class EventLogger:
    """Writes events as single-line JSON records."""

    def __init__(self, logger_name: str = EVENTS_LOGGER, context: dict[str, Any] | None = None) -> None:
        self._logger = get_logger(logger_name)
        self._context = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def log(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        level: str = "INFO",
        context: dict[str, Any] | None = None,
    ) -> None:
        numeric = normalize_level(level)
        if not self._logger.isEnabledFor(numeric):
            return
        event = LogEvent(
            event_type=event_type,
            timestamp=time.time(),
            payload=payload,
            context={**self._context, **(context or {})},
        )
        self._logger.log(numeric, event.to_json())


@dataclass
class MetricsCollector:
    """In-process counters and timings keyed by metric name.

    Operation metrics follow the ``vcs.<operation>`` naming: ``.calls`` and
    ``.failures`` counters plus a duration series under the bare name.
    """

    counters: dict[str, int] = field(default_factory=dict)
    durations: dict[str, list[float]] = field(default_factory=dict)

    def increment(self, name: str, value: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + value

    def record_duration(self, name: str, duration_s: float) -> None:
        self.durations.setdefault(name, []).append(duration_s)

    def snapshot(self) -> dict[str, Any]:
        """Return counters and duration summaries as plain data."""

        summary: dict[str, dict[str, float]] = {}
        for name, values in self.durations.items():
            count = len(values)
            total = sum(values)
            summary[name] = {
                "count": float(count),
                "total_s": total,
                "avg_s": total / count if count else 0.0,
                "max_s": max(values, default=0.0),
            }
        return {"counters": dict(self.counters), "durations": summary}


@dataclass(frozen=True)
class ObservabilityManager:
    """Event logger and metrics collector handed to the orchestrator."""

    events: EventLogger
    metrics: MetricsCollector

    def log_event(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        self.events.log(event_type, payload, level=level)

    @contextmanager
    def track_duration(self, metric_name: str) -> Iterator[None]:
        """Record the wall time of the enclosed block under ``metric_name``."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.metrics.record_duration(metric_name, time.perf_counter() - start)


def create_observability_manager(context: dict[str, Any] | None = None) -> ObservabilityManager:
    """Create a manager writing events to the ``specflow_vcs.events`` logger."""

    return ObservabilityManager(events=EventLogger(EVENTS_LOGGER, context), metrics=MetricsCollector())
