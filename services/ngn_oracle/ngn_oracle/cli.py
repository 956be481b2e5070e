"""Console runner: print the feed once, then keep monitoring until Ctrl+C."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .errors import ConstructionError
from .main import setup_logging
from .oracle import OracleService
from .settings import get_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    s = get_settings()
    p = argparse.ArgumentParser(prog="ngn_oracle", description="Read and monitor the NGN/USD oracle feed")
    p.add_argument("--interval-ms", type=int, default=s.MONITOR_INTERVAL_MS, help="monitor polling interval")
    p.add_argument("--blocks", type=int, default=s.HISTORY_DEFAULT_BLOCKS, help="history lookback in blocks")
    p.add_argument("--once", action="store_true", help="print once and exit without monitoring")
    return p


async def run(oracle: OracleService, interval_ms: int, blocks: int, once: bool = False) -> None:
    s = get_settings()
    description = await oracle.get_description()
    print(f"\nConnected to: {description}")
    print(f"Contract: {s.ORACLE_CONTRACT_ADDRESS}\n")

    print(f"Fetching current {s.COUNTER_CURRENCY}/{s.BASE_CURRENCY} rate...")
    price = await oracle.get_current_price()
    print(f"  {price.formatted_price}")
    print(f"  {price.reverse_price}")

    try:
        rd = await oracle.get_latest_round_data()
        print(f"\nLatest round {rd.round_id}: {rd.formatted_price} ({rd.reverse_price}) at {rd.updated_at_formatted}")
    except Exception as e:
        print(f"Could not fetch round data: {e}")

    await oracle.setup_event_listeners()

    events = await oracle.query_historical_events(blocks)
    if events:
        print("\nRecent Price Updates:")
        for i, ev in enumerate(events[:3], start=1):
            print(f"{i}. {ev.formatted_price} ({ev.reverse_price}) at {ev.updated_at_formatted}")

    if once:
        return

    await oracle.monitor_price(interval_ms)
    print("\nOracle monitor is running. Press Ctrl+C to exit.")
    # Park until cancelled (Ctrl+C cancels the main task under asyncio.run).
    await asyncio.Event().wait()


async def _main(args: argparse.Namespace) -> int:
    try:
        oracle = OracleService.from_settings()
    except ConstructionError as e:
        print(f"Main execution error: {e}", file=sys.stderr)
        return 1
    try:
        await run(oracle, args.interval_ms, args.blocks, once=args.once)
    except asyncio.CancelledError:
        print("\n\nShutting down oracle monitor...")
    except Exception as e:
        print(f"Main execution error: {e}", file=sys.stderr)
        return 1
    finally:
        await oracle.aclose()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().LOG_LEVEL)
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
