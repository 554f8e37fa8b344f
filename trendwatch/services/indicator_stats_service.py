from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from trendwatch.core.config import settings
from trendwatch.models.signals import CrossSignal
from trendwatch.services.bar_store import BarStore
from trendwatch.services.series_loader import SeriesLoader
from trendwatch.strategy.bars import WINDOW_FIELDS

logger = logging.getLogger(__name__)


class IndicatorStatsService:
    """Read-only reporting over stored indicator columns."""

    def __init__(self, store: BarStore, windows: Iterable[int] | None = None):
        self.store = store
        self.loader = SeriesLoader(store)
        self.windows = tuple(windows if windows is not None else settings.MA_WINDOWS)

    async def moving_average_stats(self, symbol: str) -> dict[str, Any]:
        raw_count = await self.store.count_by_symbol(symbol)
        series = await self.loader.load(symbol)
        clean_count = len(series)

        stats: dict[str, Any] = {
            "symbol": symbol,
            "total_raw_records": raw_count,
            "total_clean_records": clean_count,
            "normalization_success": _pct(clean_count, raw_count),
        }
        for window in self.windows:
            attr = WINDOW_FIELDS[window][0]
            dated = [bar.date for bar in series if getattr(bar, attr) is not None]
            stats[f"records_with_ma_{window}"] = len(dated)
            stats[f"coverage_ma_{window}"] = _pct(len(dated), clean_count)
            stats[f"first_ma_{window}_date"] = min(dated) if dated else None
            stats[f"can_calculate_ma_{window}"] = clean_count >= window
        return stats

    async def data_sufficiency(self, symbol: str) -> dict[str, Any]:
        raw_count = await self.store.count_by_symbol(symbol)
        series = await self.loader.load(symbol)
        clean_count = len(series)

        result: dict[str, Any] = {
            "symbol": symbol,
            "total_raw_days": raw_count,
            "total_clean_days": clean_count,
            "normalization_success": _pct(clean_count, raw_count),
        }
        for window in self.windows:
            result[f"can_calculate_ma_{window}"] = clean_count >= window
            result[f"days_needed_for_ma_{window}"] = max(0, window - clean_count)
        if series:
            result["earliest_clean_date"] = series[0].date
            result["latest_clean_date"] = series[-1].date
        return result

    async def readiness(self) -> dict[str, Any]:
        """Bucket every stored symbol by the longest window it can support."""
        symbols = await self.store.distinct_symbols()
        windows = sorted(self.windows, reverse=True)
        buckets: dict[str, list[str]] = {f"ready_for_ma_{window}": [] for window in windows}
        insufficient: list[str] = []

        for symbol in symbols:
            count = len(await self.loader.load(symbol))
            for window in windows:
                if count >= window:
                    buckets[f"ready_for_ma_{window}"].append(symbol)
                    break
            else:
                insufficient.append(symbol)

        logger.info(
            "MA readiness: %s, insufficient=%s",
            ", ".join(f"{key}={len(value)}" for key, value in buckets.items()),
            len(insufficient),
        )
        return {
            "total_symbols": len(symbols),
            **buckets,
            "insufficient_data": insufficient,
            "counts": {key: len(value) for key, value in buckets.items()}
            | {"insufficient_data": len(insufficient)},
        }

    async def golden_cross_symbols(self, from_date: date, to_date: date) -> dict[str, Any]:
        """Symbols whose stored cross_signal was GOLDEN_CROSS within the range."""
        bars = await self.store.find_by_date_range(from_date, to_date)
        by_symbol: dict[str, list[date]] = {}
        for bar in bars:
            if bar.cross_signal == CrossSignal.GOLDEN_CROSS:
                by_symbol.setdefault(bar.symbol, []).append(bar.date)

        stocks = [
            {
                "symbol": symbol,
                "golden_cross_days": len(dates),
                "first_golden_cross": min(dates),
                "latest_golden_cross": max(dates),
            }
            for symbol, dates in sorted(by_symbol.items())
        ]
        return {
            "from_date": from_date,
            "to_date": to_date,
            "golden_cross_stocks": stocks,
            "total_stocks": len(stocks),
        }


def _pct(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 2)
