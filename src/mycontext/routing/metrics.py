"""Per-operation performance samples kept in bounded ring buffers."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PerformanceMetric:
    duration_ms: float
    success: bool
    timestamp: float


@dataclass(frozen=True, slots=True)
class PerformanceStats:
    """Aggregate over a set of samples; all zero when there are none."""

    count: int = 0
    success_rate: float = 0.0
    avg_duration_ms: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0

    @classmethod
    def from_metrics(cls, metrics: Iterable[PerformanceMetric]) -> PerformanceStats:
        samples = list(metrics)
        if not samples:
            return cls()
        durations = [m.duration_ms for m in samples]
        return cls(
            count=len(samples),
            success_rate=sum(1 for m in samples if m.success) / len(samples),
            avg_duration_ms=sum(durations) / len(durations),
            min_duration_ms=min(durations),
            max_duration_ms=max(durations),
        )


class MetricsRecorder:
    """Ring buffer of samples per operation kind.

    Each kind keeps at most ``capacity`` samples; the oldest is evicted first.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._buffers: dict[str, deque[PerformanceMetric]] = {}

    def record(self, kind: str, duration_ms: float, success: bool) -> PerformanceMetric:
        metric = PerformanceMetric(duration_ms=duration_ms, success=success, timestamp=time.time())
        buffer = self._buffers.setdefault(kind, deque(maxlen=self.capacity))
        buffer.append(metric)
        return metric

    def samples(self, kind: str) -> list[PerformanceMetric]:
        return list(self._buffers.get(kind, ()))

    def kinds(self) -> list[str]:
        return list(self._buffers)

    def stats(self, kind: str | None = None) -> PerformanceStats:
        """Stats for one kind, or across every kind when ``kind`` is None."""
        if kind is not None:
            return PerformanceStats.from_metrics(self._buffers.get(kind, ()))
        return PerformanceStats.from_metrics(m for buffer in self._buffers.values() for m in buffer)

    def clear(self) -> None:
        self._buffers.clear()
