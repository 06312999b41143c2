"""
Pydantic models for exchange responses.

These models provide type-safe parsing of connector responses
with automatic validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crossarb.utils.math import is_valid_price


class OrderBookTop(BaseModel):
    """
    Order book as returned by ``fetch_order_book``.

    Levels are ``[price, amount, ...]`` rows, best price first.
    Both sides must be non-empty.
    """

    model_config = ConfigDict(extra="ignore")

    bids: list[list[float | None]] = Field(min_length=1)
    asks: list[list[float | None]] = Field(min_length=1)
    timestamp: int | None = None

    @field_validator("bids", "asks", mode="after")
    @classmethod
    def validate_best_level(cls, v: list[list[float | None]]) -> list[list[float | None]]:
        """Ensure the best level carries a positive price."""
        best = v[0]
        if not best or best[0] is None or not is_valid_price(best[0]):
            raise ValueError("best level has no positive price")
        return v

    @property
    def best_bid(self) -> float:
        """Highest bid price."""
        return float(self.bids[0][0])  # type: ignore[arg-type]

    @property
    def best_ask(self) -> float:
        """Lowest ask price."""
        return float(self.asks[0][0])  # type: ignore[arg-type]
