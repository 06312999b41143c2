"""
Entry point for the arbitrage scanner.

Usage:
    python -m crossarb
    crossarb  # if installed via pip
"""

import asyncio
import sys


# uvloop is optional and unavailable on Windows
try:
    import uvloop

    UVLOOP_AVAILABLE = True
except ImportError:
    UVLOOP_AVAILABLE = False


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    from crossarb import __version__
    from crossarb.config.settings import get_settings
    from crossarb.core.engine import ArbitrageEngine
    from crossarb.telemetry.logger import setup_logging

    # Print banner
    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     CROSS-EXCHANGE ARBITRAGE SCANNER v{__version__:<18}      ║
║                                                               ║
║     Read-only spread monitor across centralized exchanges     ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    # Load settings
    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nSettings are read from CROSSARB_* environment variables or .env, e.g.:")
        print('  CROSSARB_EXCHANGES=["binance","kraken","coinbase"]')
        print('  CROSSARB_SYMBOLS=["BTC/USDT","ETH/USDT"]')
        return 1

    uvloop_enabled = settings.use_uvloop and UVLOOP_AVAILABLE
    if uvloop_enabled:
        uvloop.install()

    # Print configuration summary
    print("Configuration:")
    print(f"  Exchanges:      {', '.join(settings.exchanges)}")
    print(f"  Symbols:        {', '.join(settings.symbols)}")
    print(f"  Streaming:      {', '.join(settings.stream_exchanges) if settings.enable_streaming else 'Disabled'}")
    print(f"  Fee rate:       {settings.fee_rate * 100:.3f}% per leg")
    print(f"  Freshness:      {settings.freshness_window_ms / 1000:.0f}s")
    print(f"  Refresh every:  {settings.refresh_interval_s:.1f}s")
    print(f"  Concurrency:    {settings.max_concurrent_requests} requests / {settings.global_rate_limit_ms}ms")
    print(f"  uvloop:         {'Enabled' if uvloop_enabled else 'Disabled'}")
    print()

    # Run the engine
    async def run_engine() -> int:
        async_logger = setup_logging(level=settings.log_level, log_file=settings.log_file)
        engine = ArbitrageEngine(settings)

        try:
            await engine.setup()
            await engine.run()
            return 0

        except KeyboardInterrupt:
            print("\nInterrupted by user")
            return 0

        except Exception as e:
            print(f"\nFatal error: {e}")
            import traceback

            traceback.print_exc()
            return 1

        finally:
            await engine.shutdown()
            async_logger.stop()

    return asyncio.run(run_engine())


if __name__ == "__main__":
    sys.exit(main())
