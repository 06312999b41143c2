"""
Metrics collection for scanner health monitoring.

Tracks request latencies, per-exchange fetch outcomes and refresh
cycle results with efficient in-memory storage.
"""

import time
from collections import deque
from dataclasses import dataclass

from crossarb.config.constants import LATENCY_WINDOW_SIZE


@dataclass
class LatencyStats:
    """Aggregated latency statistics."""

    min_ms: float = 0.0
    max_ms: float = 0.0
    avg_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    count: int = 0


@dataclass
class ExchangeStats:
    """Fetch outcomes for one exchange."""

    requests: int = 0
    successes: int = 0
    timeouts: int = 0
    errors: int = 0
    unsupported: int = 0
    malformed: int = 0

    @property
    def success_rate(self) -> float:
        """Share of requests that produced a quote."""
        return self.successes / self.requests if self.requests > 0 else 0.0


@dataclass
class CycleStats:
    """Refresh cycle outcomes."""

    fresh: int = 0
    partial: int = 0
    no_data: int = 0
    opportunities_found: int = 0
    best_percentage: float = 0.0

    @property
    def total(self) -> int:
        return self.fresh + self.partial + self.no_data


class MetricsCollector:
    """
    Collects and aggregates scanner metrics.

    Features:
    - Rolling window latency tracking
    - Counter-based event tracking
    - Per-exchange fetch statistics
    - Refresh cycle statistics
    """

    def __init__(
        self,
        latency_window_size: int = LATENCY_WINDOW_SIZE,
    ) -> None:
        """
        Initialize metrics collector.

        Args:
            latency_window_size: Number of samples to keep for latency stats.
        """
        self._window_size = latency_window_size
        self._latencies: dict[str, deque[float]] = {}
        self._counters: dict[str, int] = {}
        self._exchange_stats: dict[str, ExchangeStats] = {}
        self._cycle_stats = CycleStats()
        self._start_time = time.time()

    def record_latency(self, name: str, latency_ms: float) -> None:
        """
        Record a latency measurement.

        Args:
            name: Metric name (e.g., "fetch.binance").
            latency_ms: Latency in milliseconds.
        """
        if name not in self._latencies:
            self._latencies[name] = deque(maxlen=self._window_size)

        self._latencies[name].append(latency_ms)

    def increment_counter(self, name: str, value: int = 1) -> None:
        """
        Increment a counter.

        Args:
            name: Counter name.
            value: Amount to increment.
        """
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def exchange(self, exchange: str) -> ExchangeStats:
        """Get (creating if needed) the stats for an exchange."""
        stats = self._exchange_stats.get(exchange)
        if stats is None:
            stats = self._exchange_stats[exchange] = ExchangeStats()
        return stats

    def record_fetch(self, exchange: str, outcome: str, latency_ms: float | None = None) -> None:
        """
        Record the outcome of a single order book request.

        Args:
            exchange: Exchange id.
            outcome: One of "success", "timeout", "error", "unsupported", "malformed".
            latency_ms: Request latency, if measured.
        """
        stats = self.exchange(exchange)
        stats.requests += 1

        if outcome == "success":
            stats.successes += 1
        elif outcome == "timeout":
            stats.timeouts += 1
        elif outcome == "unsupported":
            stats.unsupported += 1
        elif outcome == "malformed":
            stats.malformed += 1
        else:
            stats.errors += 1

        if latency_ms is not None:
            self.record_latency(f"fetch.{exchange}", latency_ms)

    def record_cycle(self, status: str, opportunities: int = 0, best_percentage: float = 0.0) -> None:
        """
        Record a refresh cycle result.

        Args:
            status: "fresh", "partial" or "no_data".
            opportunities: Opportunities detected this cycle.
            best_percentage: Best percentage difference seen this cycle.
        """
        if status == "fresh":
            self._cycle_stats.fresh += 1
        elif status == "partial":
            self._cycle_stats.partial += 1
        else:
            self._cycle_stats.no_data += 1

        self._cycle_stats.opportunities_found += opportunities
        if best_percentage > self._cycle_stats.best_percentage:
            self._cycle_stats.best_percentage = best_percentage

    def get_latency_stats(self, name: str) -> LatencyStats:
        """
        Get latency statistics for a metric.

        Args:
            name: Metric name.

        Returns:
            LatencyStats with aggregated values.
        """
        samples = self._latencies.get(name)
        if not samples:
            return LatencyStats()

        sorted_samples = sorted(samples)
        n = len(sorted_samples)

        return LatencyStats(
            min_ms=sorted_samples[0],
            max_ms=sorted_samples[-1],
            avg_ms=sum(sorted_samples) / n,
            p50_ms=sorted_samples[n // 2],
            p95_ms=sorted_samples[int(n * 0.95)] if n > 1 else sorted_samples[-1],
            count=n,
        )

    @property
    def exchange_stats(self) -> dict[str, ExchangeStats]:
        return dict(self._exchange_stats)

    @property
    def cycle_stats(self) -> CycleStats:
        """Get refresh cycle statistics."""
        return self._cycle_stats

    @property
    def uptime_seconds(self) -> float:
        """Get uptime in seconds."""
        return time.time() - self._start_time

    def to_dict(self) -> dict[str, object]:
        """
        Export all metrics as a dict.

        Returns:
            Dict representation of all metrics.
        """
        return {
            "uptime_seconds": self.uptime_seconds,
            "counters": dict(self._counters),
            "latencies": {
                name: {
                    "min": stats.min_ms,
                    "max": stats.max_ms,
                    "avg": stats.avg_ms,
                    "p50": stats.p50_ms,
                    "p95": stats.p95_ms,
                    "count": stats.count,
                }
                for name, stats in (
                    (name, self.get_latency_stats(name)) for name in self._latencies
                )
            },
            "exchanges": {
                exchange: {
                    "requests": s.requests,
                    "successes": s.successes,
                    "timeouts": s.timeouts,
                    "errors": s.errors,
                    "unsupported": s.unsupported,
                    "malformed": s.malformed,
                    "success_rate": s.success_rate,
                }
                for exchange, s in self._exchange_stats.items()
            },
            "cycles": {
                "fresh": self._cycle_stats.fresh,
                "partial": self._cycle_stats.partial,
                "no_data": self._cycle_stats.no_data,
                "opportunities_found": self._cycle_stats.opportunities_found,
                "best_percentage": self._cycle_stats.best_percentage,
            },
        }

    def summary(self) -> str:
        """One-line human readable summary for logs."""
        cycles = self._cycle_stats
        requests = sum(s.requests for s in self._exchange_stats.values())
        successes = sum(s.successes for s in self._exchange_stats.values())
        return (
            f"cycles={cycles.total} (fresh={cycles.fresh}, partial={cycles.partial}, "
            f"no_data={cycles.no_data}) requests={requests} successes={successes} "
            f"stream_updates={self.get_counter('stream_updates')} "
            f"reconnects={self.get_counter('stream_reconnects')}"
        )

    def reset(self) -> None:
        """Reset all metrics."""
        self._latencies.clear()
        self._counters.clear()
        self._exchange_stats.clear()
        self._cycle_stats = CycleStats()
        self._start_time = time.time()
