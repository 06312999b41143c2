"""Telemetry module for logging and metrics."""

from crossarb.telemetry.logger import AsyncLogger, setup_logging
from crossarb.telemetry.metrics import MetricsCollector


__all__ = [
    "AsyncLogger",
    "MetricsCollector",
    "setup_logging",
]
