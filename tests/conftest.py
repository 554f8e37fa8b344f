"""Shared fixtures: an in-memory BarStore and bar factories."""

import os

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TRADING_UNIVERSE", '["AAA", "BBB", "CCC"]')

from copy import deepcopy
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence

import pytest

from trendwatch.core.exceptions import StoreUnavailable
from trendwatch.models.daily_bar import INDICATOR_COLUMNS, PRICE_COLUMNS
from trendwatch.models.signals import CrossSignal
from trendwatch.services.bar_store import BarStore
from trendwatch.strategy.bars import PriceBar

START = date(2024, 1, 1)


def make_bar(symbol: str = "AAA", day: int = 0, close="100", **kwargs) -> PriceBar:
    """Build a bar ``day`` calendar days after START."""
    close_value = Decimal(str(close)) if close is not None else None
    return PriceBar(
        symbol=symbol,
        date=START + timedelta(days=day),
        close=close_value,
        open=kwargs.pop("open", close_value),
        high=kwargs.pop("high", close_value),
        low=kwargs.pop("low", close_value),
        volume=kwargs.pop("volume", 1000),
        **kwargs,
    )


def make_series(symbol: str, closes: Sequence) -> list[PriceBar]:
    return [make_bar(symbol, day=i, close=c) for i, c in enumerate(closes)]


class InMemoryBarStore(BarStore):
    """Dict-backed BarStore keyed by (symbol, date)."""

    def __init__(self, bars: Sequence[PriceBar] = ()):
        self.rows: dict[tuple[str, date], PriceBar] = {}
        self.indicator_writes = 0
        self.fail_symbols: set[str] = set()
        self.fail_enumeration = False
        for bar in bars:
            self.rows[(bar.symbol, bar.date)] = deepcopy(bar)

    def _all(self) -> list[PriceBar]:
        return [deepcopy(bar) for _, bar in sorted(self.rows.items())]

    async def find_by_symbol(self, symbol: str) -> list[PriceBar]:
        # Reverse order: callers must not rely on store ordering
        return [bar for bar in reversed(self._all()) if bar.symbol == symbol]

    async def find_by_symbol_and_date_range(self, symbol, from_date, to_date):
        return [
            bar for bar in self._all()
            if bar.symbol == symbol and from_date <= bar.date <= to_date
        ]

    async def find_by_date_range(self, from_date, to_date):
        return [bar for bar in self._all() if from_date <= bar.date <= to_date]

    async def find_by_date(self, bar_date):
        return [bar for bar in self._all() if bar.date == bar_date]

    async def distinct_symbols(self) -> list[str]:
        if self.fail_enumeration:
            raise StoreUnavailable("distinct_symbols failed: connection refused")
        return sorted({symbol for symbol, _ in self.rows})

    async def symbol_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for symbol, _ in self.rows:
            counts[symbol] = counts.get(symbol, 0) + 1
        return counts

    async def count_by_symbol(self, symbol: str) -> int:
        return sum(1 for s, _ in self.rows if s == symbol)

    async def count_all(self) -> int:
        return len(self.rows)

    async def symbols_with_bars_since(self, cutoff):
        return sorted({symbol for symbol, d in self.rows if d >= cutoff})

    async def latest_date(self) -> Optional[date]:
        return max((d for _, d in self.rows), default=None)

    async def indicator_counts(self):
        bars = list(self.rows.values())
        return {
            "earliest_date": min((bar.date for bar in bars), default=None),
            "records_with_ma_100": sum(1 for bar in bars if bar.ma_100 is not None),
            "records_with_ma_200": sum(1 for bar in bars if bar.ma_200 is not None),
            "records_with_golden_cross": sum(
                1 for bar in bars if bar.cross_signal == CrossSignal.GOLDEN_CROSS
            ),
        }

    async def last_close_before(self, symbol, bar_date):
        earlier = [
            bar for (s, d), bar in sorted(self.rows.items())
            if s == symbol and d < bar_date and bar.has_valid_close
        ]
        return earlier[-1].close if earlier else None

    async def upsert_indicators(self, bars: Sequence[PriceBar]) -> int:
        return self._upsert(bars, INDICATOR_COLUMNS)

    async def upsert_prices(self, bars: Sequence[PriceBar]) -> int:
        return self._upsert(bars, PRICE_COLUMNS)

    def _upsert(self, bars: Sequence[PriceBar], columns: Sequence[str]) -> int:
        for bar in bars:
            if bar.symbol in self.fail_symbols:
                raise StoreUnavailable(f"write failed for {bar.symbol}", symbol=bar.symbol)
        for bar in bars:
            key = (bar.symbol, bar.date)
            if key not in self.rows:
                self.rows[key] = deepcopy(bar)
                continue
            for column in columns:
                setattr(self.rows[key], column, deepcopy(getattr(bar, column)))
        if columns is INDICATOR_COLUMNS:
            self.indicator_writes += len(bars)
        return len(bars)


@pytest.fixture
def store() -> InMemoryBarStore:
    return InMemoryBarStore()
