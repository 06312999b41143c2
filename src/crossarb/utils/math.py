"""
Mathematical utilities for price comparisons.
"""

import math
from typing import Final


# Epsilon for floating point comparisons
EPSILON: Final[float] = 1e-10


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default on division by zero.

    Args:
        numerator: The dividend.
        denominator: The divisor.
        default: Value to return if denominator is zero.

    Returns:
        Result of division or default value.
    """
    if abs(denominator) < EPSILON:
        return default
    return numerator / denominator


def is_valid_price(price: float) -> bool:
    """True for a finite price above zero; NaN and infinities are rejected."""
    return math.isfinite(price) and price > 0


def percent_change(from_value: float, to_value: float) -> float:
    """
    Percentage move from one price to another.

    Example:
        >>> round(percent_change(100.0, 100.6), 6)
        0.6
    """
    return safe_divide(to_value - from_value, from_value) * 100


def format_profit(profit_pct: float) -> str:
    """
    Format a percentage for display with sign.

    Example:
        >>> format_profit(0.6)
        '+0.6000%'
    """
    return f"{profit_pct:+.4f}%"
