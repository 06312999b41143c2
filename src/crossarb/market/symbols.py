"""
Symbol remapping between canonical and venue-native forms.

The scanner keys everything by canonical ``BASE/QUOTE`` symbols. Each
venue may spell the same pair differently (``BTC-USDT``, ``BTCUSDT``,
``BTC-USDT-SPOT``); a SymbolMapper converts in both directions.
"""

from collections.abc import Iterable, Mapping

from crossarb.config.constants import KNOWN_QUOTE_ASSETS


SEPARATORS = ("/", "-", "_", ":")


def split_symbol(symbol: str) -> tuple[str, str]:
    """
    Split a canonical symbol into base and quote.

    Example:
        >>> split_symbol("BTC/USDT")
        ('BTC', 'USDT')
    """
    base, _, quote = symbol.partition("/")
    return base, quote


def format_symbol(native: str, quote_assets: Iterable[str] = KNOWN_QUOTE_ASSETS) -> str:
    """
    Best-effort conversion of a native symbol to ``BASE/QUOTE``.

    Handles separated forms (``BTC-USDT``, ``BTC_USDT``, ``BTC-USDT-SPOT``)
    and concatenated forms ending in a known quote asset (``BTCUSDT``).
    Unrecognised symbols are returned upper-cased and unchanged.

    Example:
        >>> format_symbol("btcusdt")
        'BTC/USDT'
        >>> format_symbol("ETH-USDT-SPOT")
        'ETH/USDT'
    """
    upper = native.upper()

    for sep in SEPARATORS:
        if sep in upper:
            parts = [p for p in upper.split(sep) if p]
            if len(parts) >= 2:
                return f"{parts[0]}/{parts[1]}"

    # Longest quote first so "USDT" wins over "USD"
    for quote in sorted(quote_assets, key=len, reverse=True):
        if upper.endswith(quote) and len(upper) > len(quote):
            return f"{upper[: -len(quote)]}/{quote}"

    return upper


class SymbolMapper:
    """
    Two-way symbol table for one venue.

    Explicit mappings win; anything else falls back to the
    identity (canonical -> native) or to ``format_symbol``
    (native -> canonical).
    """

    __slots__ = ("_to_native", "_to_canonical")

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        """
        Initialize the mapper.

        Args:
            mapping: Canonical symbol -> native symbol.
        """
        self._to_native: dict[str, str] = dict(mapping or {})
        self._to_canonical: dict[str, str] = {
            native.upper(): canonical for canonical, native in self._to_native.items()
        }

    def to_native(self, symbol: str) -> str:
        """Convert a canonical symbol to the venue's spelling."""
        return self._to_native.get(symbol, symbol)

    def to_canonical(self, native: str) -> str:
        """Convert a venue symbol back to ``BASE/QUOTE``."""
        mapped = self._to_canonical.get(native.upper())
        if mapped is not None:
            return mapped
        return format_symbol(native)

    def with_mapping(self, mapping: Mapping[str, str]) -> "SymbolMapper":
        """Return a new mapper with extra entries layered on top."""
        return SymbolMapper({**self._to_native, **mapping})

    def as_dict(self) -> dict[str, str]:
        return dict(self._to_native)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._to_native

    def __len__(self) -> int:
        return len(self._to_native)
