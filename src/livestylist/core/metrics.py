"""
LiveStylist Metrics — in-process counters and latency histograms.

Counts session starts/ends, relay drops and side-effect runs, and keeps a
rolling window of vision/preview latencies. Read via GET /metrics.

Usage:
    from livestylist.core.metrics import metrics

    metrics.inc("session.ended", labels={"reason": "expired"})
    metrics.observe("relay.vision_ms", 1840.0)
    metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import defaultdict


class MetricsCollector:
    """Counters and rolling-window histograms, keyed by name plus labels."""

    HISTOGRAM_MAX_SAMPLES = 500

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._histograms: dict[str, list[float]] = defaultdict(list)
        self._started_at = time.time()

    def inc(self, name: str, value: int = 1, labels: dict | None = None) -> None:
        self._counters[self._key(name, labels)] += value

    def observe(self, name: str, value: float, labels: dict | None = None) -> None:
        samples = self._histograms[self._key(name, labels)]
        samples.append(value)
        if len(samples) > self.HISTOGRAM_MAX_SAMPLES:
            del samples[0]

    def count(self, name: str, labels: dict | None = None) -> int:
        return self._counters.get(self._key(name, labels), 0)

    def snapshot(self) -> dict:
        histograms: dict[str, dict] = {}
        for key, samples in self._histograms.items():
            if not samples:
                continue
            ordered = sorted(samples)
            n = len(ordered)
            histograms[key] = {
                "count": n,
                "p50": ordered[n // 2],
                "p95": ordered[min(int(n * 0.95), n - 1)],
                "max": ordered[-1],
            }
        return {
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "counters": dict(self._counters),
            "histograms": histograms,
        }

    def reset(self) -> None:
        self._counters.clear()
        self._histograms.clear()

    def _key(self, name: str, labels: dict | None) -> str:
        # "session.ended{reason=expired}"
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


# Process-wide singleton — import this directly
metrics = MetricsCollector()
