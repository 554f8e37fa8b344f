#!/usr/bin/env python3
"""
Backfill historical price data for the trading universe, then recompute
moving-average indicators over the full history.

Usage:
    python scripts/backfill_prices.py [--days 400] [--skip-recompute]
"""

import asyncio
import logging
import os
import sys
from datetime import date, timedelta
from argparse import ArgumentParser

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from trendwatch.core.config import settings
from trendwatch.core.database import close_db
from trendwatch.core.logging import setup_logging
from trendwatch.services.bar_store import SqlAlchemyBarStore
from trendwatch.services.ingestion_service import IngestionService
from trendwatch.services.recompute_service import build_recompute_service

logger = logging.getLogger(__name__)


async def backfill_prices(days: int = 400, recompute: bool = True) -> int:
    """Backfill historical price data. Returns the number of bars written."""
    logger.info(f"Starting backfill for {days} days of historical data")

    universe = list(settings.TRADING_UNIVERSE)
    logger.info(f"Universe: {len(universe)} symbols")

    end_date = date.today()
    start_date = end_date - timedelta(days=days)
    logger.info(f"Fetching data from {start_date} to {end_date}")

    store = SqlAlchemyBarStore()
    service = IngestionService(store, provider_name=settings.MARKET_DATA_PROVIDER)

    try:
        result = await service.fetch_and_store(universe, start_date, end_date)
        logger.info(f"Successfully processed {result.processed} bars")

        if result.alerts:
            warnings = [a for a in result.alerts if a.severity == "WARNING"]
            if warnings:
                logger.warning(f"Data quality warnings: {len(warnings)}")
                for alert in warnings[:5]:  # Show first 5
                    logger.warning(f"  {alert.symbol} ({alert.date}): {alert.message}")
            if result.errors:
                logger.error(f"Data quality errors: {len(result.errors)}")
                for alert in result.errors[:5]:
                    logger.error(f"  {alert.symbol} ({alert.date}): {alert.message}")

        if recompute and result.processed > 0:
            summary = await build_recompute_service(store).recompute_all()
            logger.info(
                f"Indicators recomputed: {summary.sufficient_data} updated, "
                f"{summary.skipped_insufficient} skipped, {len(summary.errors)} errors"
            )

        return result.processed

    except Exception as e:
        logger.error(f"Backfill failed: {e}", exc_info=True)
        return 0
    finally:
        await close_db()


def main():
    parser = ArgumentParser(description="Backfill historical price data")
    parser.add_argument(
        "--days",
        type=int,
        default=400,
        help="Number of days to backfill (default: 400, enough for a 200-day average)"
    )
    parser.add_argument(
        "--skip-recompute",
        action="store_true",
        help="Only ingest prices; leave indicator columns untouched"
    )
    args = parser.parse_args()

    setup_logging()
    result = asyncio.run(backfill_prices(days=args.days, recompute=not args.skip_recompute))

    if result > 0:
        logger.info(f"Backfill completed successfully: {result} bars")
        sys.exit(0)
    else:
        logger.error("Backfill failed or no data processed")
        sys.exit(1)


if __name__ == "__main__":
    main()
