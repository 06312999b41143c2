"""
Registry of (exchange, symbol) pairs that an exchange does not list.

Seeded from static configuration and grown at runtime whenever a fetch
fails with an unsupported-symbol error. Entries are never removed.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping


logger = logging.getLogger(__name__)


class UnavailablePairRegistry:
    """Monotonically growing set of unsupported (exchange, symbol) pairs."""

    __slots__ = ("_pairs",)

    def __init__(self, seed: Mapping[str, Iterable[str]] | None = None) -> None:
        """
        Initialize the registry.

        Args:
            seed: Exchange id -> canonical symbols known to be unsupported.
        """
        self._pairs: set[tuple[str, str]] = set()
        for exchange, symbols in (seed or {}).items():
            for symbol in symbols:
                self._pairs.add((exchange, symbol))

    def add(self, exchange: str, symbol: str) -> bool:
        """
        Mark a pair as unsupported.

        Args:
            exchange: Exchange id.
            symbol: Canonical symbol.

        Returns:
            True if the pair was newly added, False if already present.
        """
        key = (exchange, symbol)
        if key in self._pairs:
            return False
        self._pairs.add(key)
        logger.info(f"Marked {symbol} as unavailable on {exchange}")
        return True

    def contains(self, exchange: str, symbol: str) -> bool:
        """Check whether a pair is known to be unsupported."""
        return (exchange, symbol) in self._pairs

    def is_available(self, exchange: str, symbol: str) -> bool:
        return (exchange, symbol) not in self._pairs

    def filter_available(self, exchange: str, symbols: Iterable[str]) -> list[str]:
        """
        Drop unsupported symbols for an exchange, keeping order.

        Args:
            exchange: Exchange id.
            symbols: Canonical symbols.

        Returns:
            Symbols not marked unavailable on ``exchange``.
        """
        return [s for s in symbols if (exchange, s) not in self._pairs]

    def for_exchange(self, exchange: str) -> frozenset[str]:
        """Get all unsupported symbols for one exchange."""
        return frozenset(s for e, s in self._pairs if e == exchange)

    def as_dict(self) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for exchange, symbol in sorted(self._pairs):
            result.setdefault(exchange, []).append(symbol)
        return result

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._pairs

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(sorted(self._pairs))

    def __len__(self) -> int:
        return len(self._pairs)
