from trendwatch.scheduler.celery_app import app
from trendwatch.services.bar_store import SqlAlchemyBarStore
from trendwatch.services.ingestion_service import IngestionResult, IngestionService
from trendwatch.core.redis import get_redis, StreamNames
from trendwatch.core.config import settings
from trendwatch.core.database import close_db
from trendwatch.tasks.indicators import run_recompute
from datetime import date, timedelta
import logging
import asyncio

logger = logging.getLogger(__name__)


async def _ingest_async(universe: list[str], start_date: date, end_date: date) -> IngestionResult:
    service = IngestionService(SqlAlchemyBarStore(), provider_name=settings.MARKET_DATA_PROVIDER)
    try:
        return await service.fetch_and_store(universe, start_date, end_date)
    finally:
        await close_db()


@app.task(name="trendwatch.tasks.market_data.ingest_market_data")
def ingest_market_data():
    """
    Scheduled task to ingest daily market data.
    Runs after market close, then recomputes indicators for the symbols
    that received new bars.
    """
    # Fetch the last few days to catch up any missing/corrections
    today = date.today()
    start_date = today - timedelta(days=settings.INGEST_LOOKBACK_DAYS)
    universe = list(settings.TRADING_UNIVERSE)

    result = asyncio.run(_ingest_async(universe, start_date, today))

    if result.processed > 0:
        logger.info(f"Ingested {result.processed} daily bars for {len(result.symbols)} symbols")
        try:
            r = get_redis()
            r.xadd(StreamNames.MARKET_BARS, {
                "event_type": "batch_complete",
                "date": str(today),
                "symbols": ",".join(result.symbols),
                "count": str(result.processed),
            })
        except Exception as e:
            logger.error(f"Failed to publish stream event: {e}")

    if result.errors:
        logger.error(f"Data quality ERRORS detected: {len(result.errors)}")
        try:
            r = get_redis()
            r.xadd(StreamNames.ALERTS, {
                "level": "ERROR",
                "title": "Data Quality Issues",
                "message": f"{len(result.errors)} data quality errors during ingestion",
            })
        except Exception as e:
            logger.error(f"Failed to publish alert: {e}")

    recompute = {"status": "skipped"}
    if result.earliest_date is not None:
        recompute = run_recompute(result.earliest_date)

    return {
        "status": "completed",
        "processed": result.processed,
        "date": str(today),
        "alerts": len(result.alerts),
        "errors": len(result.errors),
        "recompute": recompute,
    }
