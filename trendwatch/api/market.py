"""
Market API Router.

Cross-symbol statistics: daily aggregates, movers and store totals.
"""
from datetime import date, timedelta
from typing import Any, Literal, Optional
from fastapi import APIRouter, Depends, Query

from trendwatch.api.bars import BarSchema
from trendwatch.api.deps import get_store
from trendwatch.services.bar_store import BarStore
from trendwatch.services.market_stats_service import MarketStatsService

router = APIRouter()


def _range(from_date: Optional[date], to_date: Optional[date], days: int) -> tuple[date, date]:
    to_date = to_date or date.today()
    return from_date or to_date - timedelta(days=days), to_date


@router.get("/daily-stats")
async def daily_stats(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    store: BarStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """Per-date average/max/min percentage change and total volume."""
    start, end = _range(from_date, to_date, 30)
    return await MarketStatsService(store).daily_statistics(start, end)


@router.get("/movers", response_model=list[BarSchema])
async def movers(
    direction: Literal["top", "bottom"] = "top",
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = Query(default=10, ge=1, le=100),
    store: BarStore = Depends(get_store),
):
    """Largest (top) or smallest (bottom) percentage changes in the range."""
    start, end = _range(from_date, to_date, 7)
    service = MarketStatsService(store)
    if direction == "bottom":
        return await service.bottom_movers(start, end, limit)
    return await service.top_movers(start, end, limit)


@router.get("/system-stats")
async def system_stats(store: BarStore = Depends(get_store)) -> dict[str, Any]:
    return await MarketStatsService(store).system_stats()
