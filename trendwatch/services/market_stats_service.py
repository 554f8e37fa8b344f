from __future__ import annotations

from datetime import date
from typing import Any

import pandas as pd

from trendwatch.services.bar_store import BarStore
from trendwatch.strategy.bars import PriceBar


class MarketStatsService:
    """Cross-symbol aggregates over stored bars."""

    def __init__(self, store: BarStore):
        self.store = store

    async def daily_statistics(self, from_date: date, to_date: date) -> list[dict[str, Any]]:
        df = self._to_frame(await self.store.find_by_date_range(from_date, to_date))
        if df.empty:
            return []

        grouped = df.groupby("date").agg(
            avg_change=("percentage_change", "mean"),
            max_change=("percentage_change", "max"),
            min_change=("percentage_change", "min"),
            total_volume=("volume", "sum"),
            count=("symbol", "count"),
        )
        grouped = grouped.sort_index()

        rows = []
        for bar_date, row in grouped.iterrows():
            rows.append(
                {
                    "date": bar_date,
                    "avg_change": _round_or_none(row["avg_change"]),
                    "max_change": _round_or_none(row["max_change"]),
                    "min_change": _round_or_none(row["min_change"]),
                    "total_volume": int(row["total_volume"]),
                    "count": int(row["count"]),
                }
            )
        return rows

    async def top_movers(self, from_date: date, to_date: date, limit: int = 10) -> list[PriceBar]:
        return await self._movers(from_date, to_date, limit, ascending=False)

    async def bottom_movers(self, from_date: date, to_date: date, limit: int = 10) -> list[PriceBar]:
        return await self._movers(from_date, to_date, limit, ascending=True)

    async def system_stats(self) -> dict[str, Any]:
        total = await self.store.count_all()
        symbols = await self.store.distinct_symbols()
        latest = await self.store.latest_date()
        counts = await self.store.indicator_counts()

        return {
            "total_records": total,
            "total_symbols": len(symbols),
            "latest_date": latest,
            **counts,
        }

    async def _movers(
        self, from_date: date, to_date: date, limit: int, ascending: bool
    ) -> list[PriceBar]:
        bars = [
            bar
            for bar in await self.store.find_by_date_range(from_date, to_date)
            if bar.percentage_change is not None
        ]
        bars.sort(key=lambda bar: bar.percentage_change, reverse=not ascending)
        return bars[:limit]

    def _to_frame(self, bars: list[PriceBar]) -> pd.DataFrame:
        if not bars:
            return pd.DataFrame()
        df = pd.DataFrame(
            [
                {
                    "symbol": bar.symbol,
                    "date": bar.date,
                    "percentage_change": (
                        float(bar.percentage_change) if bar.percentage_change is not None else None
                    ),
                    "volume": int(bar.volume or 0),
                }
                for bar in bars
            ]
        )
        df["percentage_change"] = df["percentage_change"].astype(float)
        return df


def _round_or_none(value: Any) -> float | None:
    if value is None or pd.isna(value):
        return None
    return round(float(value), 2)
