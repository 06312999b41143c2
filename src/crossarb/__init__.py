"""
Cross-Exchange Arbitrage Scanner.

An asynchronous, read-only monitor that polls and streams best bid/ask
quotes from multiple centralized crypto exchanges and ranks the
cross-exchange price differences after fees.
"""

__version__ = "1.0.0"
