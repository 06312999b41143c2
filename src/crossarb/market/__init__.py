"""Market data module for cached and streamed prices."""

from crossarb.market.price_cache import PriceCache
from crossarb.market.symbols import SymbolMapper
from crossarb.market.websocket import StreamingFeedManager


__all__ = [
    "PriceCache",
    "StreamingFeedManager",
    "SymbolMapper",
]
