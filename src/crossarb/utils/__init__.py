"""Utility functions for the arbitrage scanner."""

from crossarb.utils.math import format_profit, is_valid_price, percent_change, safe_divide
from crossarb.utils.time import (
    format_timestamp_ms,
    get_timestamp_ms,
    monotonic_ms,
)


__all__ = [
    "format_profit",
    "format_timestamp_ms",
    "get_timestamp_ms",
    "is_valid_price",
    "monotonic_ms",
    "percent_change",
    "safe_divide",
]
