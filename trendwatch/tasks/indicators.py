import asyncio
import logging
from datetime import date
from typing import Optional

from trendwatch.core.config import settings
from trendwatch.core.database import close_db
from trendwatch.core.exceptions import StoreUnavailable
from trendwatch.core.redis import StreamNames, get_redis, recompute_lock, release_recompute_lock
from trendwatch.scheduler.celery_app import app
from trendwatch.services.recompute_service import RecomputeSummary, SymbolResult, build_recompute_service

logger = logging.getLogger(__name__)


async def _recompute_async(since: Optional[date]) -> RecomputeSummary:
    service = build_recompute_service()
    try:
        if since is not None:
            return await service.recompute_since(since)
        return await service.recompute_all()
    finally:
        # Pooled connections are bound to this event loop
        await close_db()


async def _recompute_symbol_async(symbol: str) -> SymbolResult:
    try:
        return await build_recompute_service().recompute_one(symbol)
    finally:
        await close_db()


def run_recompute(since: Optional[date] = None) -> dict[str, object]:
    """
    Recompute indicators under the global recompute lock.

    Shared by the scheduled ingestion task and the on-demand task.
    """
    if not settings.MOVING_AVERAGES_ENABLED:
        logger.info("Moving averages calculation is disabled")
        return {"status": "disabled"}

    lock = recompute_lock(get_redis())
    if not lock.acquire():
        logger.warning("Indicator recompute already running; skipping")
        return {"status": "locked"}

    try:
        summary = asyncio.run(_recompute_async(since))
    except StoreUnavailable as e:
        logger.error(f"Indicator recompute aborted: {e}", exc_info=True)
        return {"status": "failed", "error": str(e)}
    finally:
        release_recompute_lock(lock)

    publish_summary(summary, since)
    return {"status": "completed", **summary.to_dict()}


def publish_summary(summary: RecomputeSummary, since: Optional[date]) -> None:
    try:
        r = get_redis()
        r.xadd(StreamNames.INDICATORS, {
            "event_type": "recompute_complete",
            "since": str(since or ""),
            "processed": str(summary.processed),
            "sufficient_data": str(summary.sufficient_data),
            "errors": str(len(summary.errors)),
        })
    except Exception as e:
        logger.error(f"Failed to publish stream event: {e}")


@app.task(name="trendwatch.tasks.indicators.recompute_all_indicators")
def recompute_all_indicators(since: str | None = None) -> dict[str, object]:
    """On-demand task to recompute indicators for all (or recently updated) symbols."""
    cutoff = date.fromisoformat(since) if since else None
    return run_recompute(cutoff)


@app.task(name="trendwatch.tasks.indicators.recompute_symbol_indicators")
def recompute_symbol_indicators(symbol: str) -> dict[str, object]:
    """On-demand task to recompute a single symbol."""
    if not settings.MOVING_AVERAGES_ENABLED:
        return {"status": "disabled"}

    lock = recompute_lock(get_redis())
    if not lock.acquire():
        return {"status": "locked"}
    try:
        result = asyncio.run(_recompute_symbol_async(symbol.upper()))
    except Exception as e:
        logger.error(f"Recompute failed for {symbol}: {e}", exc_info=True)
        return {"status": "failed", "symbol": symbol, "error": str(e)}
    finally:
        release_recompute_lock(lock)

    logger.info("Indicators recomputed for %s: %s", symbol, result.status.value)
    return {"status": "completed", "symbol": result.symbol, "result": result.to_dict()}
