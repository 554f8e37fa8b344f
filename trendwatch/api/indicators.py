"""
Indicators API Router.

On-demand recomputation plus moving-average coverage and readiness reports.
"""
from datetime import date, timedelta
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from trendwatch.api.deps import get_recompute_lock, get_recompute_service, get_store
from trendwatch.core.config import settings
from trendwatch.core.redis import arelease_recompute_lock
from trendwatch.services.bar_store import BarStore
from trendwatch.services.indicator_stats_service import IndicatorStatsService
from trendwatch.services.recompute_service import RecomputeService

router = APIRouter()


# ---------- Pydantic Schemas ----------

class RecomputeRequest(BaseModel):
    """Recompute everything, or only symbols with bars on/after `since`."""
    since: Optional[date] = None


# ---------- Helpers ----------

async def _ensure_symbol(store: BarStore, symbol: str) -> str:
    symbol = symbol.upper()
    if await store.count_by_symbol(symbol) == 0:
        raise HTTPException(status_code=404, detail=f"Unknown symbol: {symbol}")
    return symbol


def _ensure_enabled() -> None:
    if not settings.MOVING_AVERAGES_ENABLED:
        raise HTTPException(status_code=503, detail="Moving averages calculation is disabled")


async def _acquire(lock) -> None:
    if not await lock.acquire():
        raise HTTPException(status_code=409, detail="Another indicator recompute is running")


# ---------- Endpoints ----------

@router.post("/recompute")
async def recompute(
    body: Optional[RecomputeRequest] = None,
    service: RecomputeService = Depends(get_recompute_service),
    lock=Depends(get_recompute_lock),
) -> dict[str, Any]:
    """Run a recompute synchronously and return the run summary."""
    _ensure_enabled()
    await _acquire(lock)
    try:
        if body is not None and body.since is not None:
            summary = await service.recompute_since(body.since)
        else:
            summary = await service.recompute_all()
    finally:
        await arelease_recompute_lock(lock)
    return summary.to_dict()


@router.get("/readiness")
async def readiness(store: BarStore = Depends(get_store)) -> dict[str, Any]:
    """Bucket stored symbols by the longest moving average they can support."""
    return await IndicatorStatsService(store).readiness()


@router.get("/golden-cross")
async def golden_cross(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    store: BarStore = Depends(get_store),
) -> dict[str, Any]:
    """Symbols with stored GOLDEN_CROSS rows in the range (default: last 30 days)."""
    to_date = to_date or date.today()
    from_date = from_date or to_date - timedelta(days=30)
    return await IndicatorStatsService(store).golden_cross_symbols(from_date, to_date)


@router.post("/{symbol}/recompute")
async def recompute_symbol(
    symbol: str,
    store: BarStore = Depends(get_store),
    service: RecomputeService = Depends(get_recompute_service),
    lock=Depends(get_recompute_lock),
) -> dict[str, Any]:
    """Recompute one symbol's full history."""
    _ensure_enabled()
    symbol = await _ensure_symbol(store, symbol)
    await _acquire(lock)
    try:
        result = await service.recompute_one(symbol)
    finally:
        await arelease_recompute_lock(lock)
    return result.to_dict()


@router.get("/{symbol}/stats")
async def moving_average_stats(symbol: str, store: BarStore = Depends(get_store)) -> dict[str, Any]:
    symbol = await _ensure_symbol(store, symbol)
    return await IndicatorStatsService(store).moving_average_stats(symbol)


@router.get("/{symbol}/sufficiency")
async def data_sufficiency(symbol: str, store: BarStore = Depends(get_store)) -> dict[str, Any]:
    symbol = await _ensure_symbol(store, symbol)
    return await IndicatorStatsService(store).data_sufficiency(symbol)
