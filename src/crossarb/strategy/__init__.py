"""Strategy module for arbitrage detection and calculation."""

from crossarb.strategy.calculator import ArbitrageCalculator
from crossarb.strategy.opportunity import ArbitrageDetector, OpportunityBook


__all__ = [
    "ArbitrageCalculator",
    "ArbitrageDetector",
    "OpportunityBook",
]
