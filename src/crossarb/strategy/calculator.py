"""
Arbitrage profit calculation.

Computes the spread and fee-adjusted profit of buying a unit of the
base asset on one exchange and selling it on another.
"""

import logging

from crossarb.config.constants import DEFAULT_FEE_RATE, DEFAULT_SLIPPAGE_FACTOR
from crossarb.core.types import ArbitrageOpportunity, Quote
from crossarb.utils.math import percent_change


logger = logging.getLogger(__name__)


class ArbitrageCalculator:
    """
    Calculates cross-exchange opportunity figures for a quote pair.

    Direct float operations (no Decimal). One unit of the base asset is
    bought at the buy venue's ask and sold at the sell venue's bid; the
    fee is charged on both legs' notional.
    """

    __slots__ = ("_fee_rate", "_slippage_factor")

    def __init__(
        self,
        fee_rate: float = DEFAULT_FEE_RATE,
        slippage_factor: float = DEFAULT_SLIPPAGE_FACTOR,
    ) -> None:
        """
        Initialize calculator.

        Args:
            fee_rate: Trading fee per leg (e.g., 0.001 = 0.1%).
            slippage_factor: Share of the estimated profit kept after slippage.
        """
        self._fee_rate = fee_rate
        self._slippage_factor = slippage_factor

    def compute(
        self,
        symbol: str,
        buy_quote: Quote,
        sell_quote: Quote,
        timestamp: int,
    ) -> ArbitrageOpportunity:
        """
        Evaluate buying at ``buy_quote.ask`` and selling at ``sell_quote.bid``.

        Args:
            symbol: Canonical symbol.
            buy_quote: Quote on the exchange to buy from.
            sell_quote: Quote on the exchange to sell to.
            timestamp: Timestamp stamped on the opportunity.

        Returns:
            ArbitrageOpportunity; callers decide whether to keep it.

        Example:
            X.ask=100.00, Y.bid=100.60 gives absolute_difference 0.60,
            percentage_difference 0.6, estimated_profit 0.3994 and
            net_profit 0.35946.
        """
        buy_price = buy_quote.ask
        sell_price = sell_quote.bid

        absolute_difference = sell_price - buy_price
        percentage_difference = percent_change(buy_price, sell_price)
        fees = self.fees(buy_price, sell_price)
        estimated_profit = absolute_difference - fees

        return ArbitrageOpportunity(
            symbol=symbol,
            buy_exchange=buy_quote.exchange,
            sell_exchange=sell_quote.exchange,
            buy_price=buy_price,
            sell_price=sell_price,
            absolute_difference=absolute_difference,
            percentage_difference=percentage_difference,
            estimated_profit=estimated_profit,
            net_profit=estimated_profit * self._slippage_factor,
            timestamp=timestamp,
        )

    def fees(self, buy_price: float, sell_price: float) -> float:
        """Total fee for one unit across both legs."""
        return (buy_price + sell_price) * self._fee_rate

    def break_even_price(self, buy_price: float) -> float:
        """
        Minimum sell price above ``buy_price`` for a positive estimated profit.

        Solves ``s - b - (b + s) * f = 0`` for ``s``.
        """
        return buy_price * (1 + self._fee_rate) / (1 - self._fee_rate)

    @property
    def fee_rate(self) -> float:
        """Get per-leg fee rate."""
        return self._fee_rate

    @property
    def slippage_factor(self) -> float:
        return self._slippage_factor
