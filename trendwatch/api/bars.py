"""
Bars API Router.

Pass-through filters over stored bars; nothing here re-derives indicators.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from trendwatch.api.deps import get_store
from trendwatch.core.config import settings
from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength
from trendwatch.services.bar_store import BarStore
from trendwatch.strategy.bars import PriceBar

router = APIRouter()

ALL = "ALL"
DEFAULT_RANGE_DAYS = 365

# ---------- Pydantic Schemas ----------

class BarSchema(BaseModel):
    symbol: str
    date: date
    open: Optional[Decimal]
    high: Optional[Decimal]
    low: Optional[Decimal]
    close: Optional[Decimal]
    volume: int
    percentage_change: Optional[Decimal]
    price_change: Optional[Decimal]
    ma_50: Optional[Decimal]
    ma_100: Optional[Decimal]
    ma_200: Optional[Decimal]
    signal_50: Optional[MaSignal]
    signal_100: Optional[MaSignal]
    signal_200: Optional[MaSignal]
    cross_signal: Optional[CrossSignal]
    signal_strength: Optional[SignalStrength]

    class Config:
        from_attributes = True


class SymbolsResponse(BaseModel):
    universe: list[str]
    stored: dict[str, int]
    total_symbols: int


# ---------- Filtering ----------

def _wanted(value: Optional[str]) -> Optional[str]:
    if value is None or value.upper() == ALL:
        return None
    return value.upper()


def _label(value) -> Optional[str]:
    return value.value if value is not None else None


def filter_bars(
    bars: list[PriceBar],
    signal_50: Optional[str] = None,
    signal_100: Optional[str] = None,
    signal_200: Optional[str] = None,
    cross_signal: Optional[str] = None,
    signal_strength: Optional[str] = None,
    min_change: Optional[float] = None,
    max_change: Optional[float] = None,
) -> list[PriceBar]:
    """Apply label and percentage-change filters; ALL or None means no filter."""
    criteria = {
        "signal_50": _wanted(signal_50),
        "signal_100": _wanted(signal_100),
        "signal_200": _wanted(signal_200),
        "cross_signal": _wanted(cross_signal),
        "signal_strength": _wanted(signal_strength),
    }
    criteria = {key: value for key, value in criteria.items() if value is not None}

    selected = []
    for bar in bars:
        if any(_label(getattr(bar, key)) != value for key, value in criteria.items()):
            continue
        if min_change is not None or max_change is not None:
            if bar.percentage_change is None:
                continue
            change = float(bar.percentage_change)
            if min_change is not None and change < min_change:
                continue
            if max_change is not None and change > max_change:
                continue
        selected.append(bar)
    return selected


# ---------- Endpoints ----------

@router.get("/symbols", response_model=SymbolsResponse)
async def list_symbols(store: BarStore = Depends(get_store)):
    """Configured universe plus stored symbols with their record counts."""
    stored = await store.symbol_counts()
    return SymbolsResponse(
        universe=list(settings.TRADING_UNIVERSE),
        stored=stored,
        total_symbols=len(stored),
    )


@router.get("/bars/by-signal", response_model=list[BarSchema])
async def get_bars_by_signal(
    as_of: Optional[date] = None,
    signal_strength: Optional[str] = None,
    cross_signal: Optional[str] = None,
    signal_50: Optional[str] = None,
    signal_100: Optional[str] = None,
    signal_200: Optional[str] = None,
    store: BarStore = Depends(get_store),
):
    """Bars across all symbols for one date (default: latest) matching the given labels."""
    target = as_of or await store.latest_date()
    if target is None:
        return []
    bars = await store.find_by_date(target)
    return filter_bars(
        bars,
        signal_50=signal_50,
        signal_100=signal_100,
        signal_200=signal_200,
        cross_signal=cross_signal,
        signal_strength=signal_strength,
    )


@router.get("/bars/{symbol}", response_model=list[BarSchema])
async def get_bars(
    symbol: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    signal_50: Optional[str] = None,
    signal_100: Optional[str] = None,
    signal_200: Optional[str] = None,
    cross_signal: Optional[str] = None,
    signal_strength: Optional[str] = None,
    min_change: Optional[float] = None,
    max_change: Optional[float] = None,
    limit: int = Query(default=500, ge=1, le=5000),
    store: BarStore = Depends(get_store),
):
    """Stored bars for a symbol, newest first, filtered by date range and labels."""
    symbol = symbol.upper()
    to_date = to_date or date.today()
    from_date = from_date or to_date - timedelta(days=DEFAULT_RANGE_DAYS)
    if from_date > to_date:
        raise HTTPException(status_code=400, detail="from_date must not be after to_date")

    if await store.count_by_symbol(symbol) == 0:
        raise HTTPException(status_code=404, detail=f"Unknown symbol: {symbol}")

    bars = await store.find_by_symbol_and_date_range(symbol, from_date, to_date)
    selected = filter_bars(
        bars,
        signal_50=signal_50,
        signal_100=signal_100,
        signal_200=signal_200,
        cross_signal=cross_signal,
        signal_strength=signal_strength,
        min_change=min_change,
        max_change=max_change,
    )
    selected.sort(key=lambda bar: bar.date, reverse=True)
    return selected[:limit]
