#!/usr/bin/env python3
"""
Recompute moving averages and signals for stored bars.

Usage:
    python scripts/recompute_indicators.py                 # every symbol
    python scripts/recompute_indicators.py --symbol TCS    # one symbol
    python scripts/recompute_indicators.py --since 2026-01-01

Exits non-zero when any symbol failed.
"""

import asyncio
import json
import logging
import os
import sys
from argparse import ArgumentParser
from datetime import date

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from trendwatch.core.database import close_db
from trendwatch.core.logging import setup_logging
from trendwatch.services.recompute_service import SymbolStatus, build_recompute_service

logger = logging.getLogger(__name__)


async def recompute(symbol: str | None = None, since: date | None = None) -> int:
    """Run the recompute and return the number of failed symbols."""
    service = build_recompute_service()
    try:
        if symbol:
            result = await service.recompute_one(symbol.upper())
            logger.info(f"{result.symbol}: {result.status.value} ({result.bars} bars)")
            print(json.dumps(result.to_dict(), indent=2))
            return 1 if result.status == SymbolStatus.ERROR else 0

        if since is not None:
            summary = await service.recompute_since(since)
        else:
            summary = await service.recompute_all()

        logger.info(
            f"Processed {summary.processed} symbols: {summary.sufficient_data} updated, "
            f"{summary.skipped_insufficient} skipped for insufficient history"
        )
        for window, coverage in summary.to_dict()["coverage"].items():
            logger.info(f"  {window}-day MA coverage: {coverage}%")
        for failed, error in summary.errors.items():
            logger.error(f"  {failed}: {error}")
        print(json.dumps(summary.to_dict(), indent=2))
        return len(summary.errors)
    finally:
        await close_db()


def main():
    parser = ArgumentParser(description="Recompute moving-average indicators")
    parser.add_argument("--symbol", help="Recompute a single symbol")
    parser.add_argument(
        "--since",
        type=date.fromisoformat,
        help="Only symbols with bars on or after this date (YYYY-MM-DD)"
    )
    args = parser.parse_args()

    setup_logging()
    try:
        failures = asyncio.run(recompute(symbol=args.symbol, since=args.since))
    except Exception as e:
        logger.error(f"Recompute aborted: {e}", exc_info=True)
        sys.exit(2)

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
