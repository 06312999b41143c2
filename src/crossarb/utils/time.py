"""
Time utilities.

Quotes and opportunities carry Unix epoch milliseconds, matching
the timestamps exchanges report.
"""

import time
from datetime import UTC, datetime


def get_timestamp_ms() -> int:
    """
    Get current timestamp in milliseconds.

    Returns:
        Current Unix timestamp in milliseconds.
    """
    return time.time_ns() // 1_000_000


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, for measuring durations."""
    return time.perf_counter() * 1000.0


def format_timestamp_ms(timestamp_ms: int, include_date: bool = False) -> str:
    """
    Format millisecond timestamp for logging.

    Args:
        timestamp_ms: Timestamp in milliseconds.
        include_date: Whether to include the date portion.

    Returns:
        Formatted UTC timestamp string with millisecond precision.

    Example:
        >>> format_timestamp_ms(1704067200123)
        '00:00:00.123'
        >>> format_timestamp_ms(1704067200123, include_date=True)
        '2024-01-01 00:00:00.123'
    """
    seconds, millis = divmod(timestamp_ms, 1000)
    dt = datetime.fromtimestamp(seconds, tz=UTC)

    if include_date:
        return f"{dt.strftime('%Y-%m-%d %H:%M:%S')}.{millis:03d}"
    return f"{dt.strftime('%H:%M:%S')}.{millis:03d}"
