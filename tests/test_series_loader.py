"""Tests for loading clean, ordered series from the store."""

from decimal import Decimal

import pytest

from trendwatch.services.series_loader import SeriesLoader

from conftest import InMemoryBarStore, make_bar


class TestSeriesLoader:

    @pytest.mark.asyncio
    async def test_sorted_ascending(self):
        store = InMemoryBarStore([make_bar(day=d, close=d + 1) for d in (3, 0, 2, 1)])
        bars = await SeriesLoader(store).load("AAA")
        assert [bar.date.day for bar in bars] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_excludes_invalid_closes(self):
        store = InMemoryBarStore([
            make_bar(day=0, close="10"),
            make_bar(day=1, close=None),
            make_bar(day=2, close="0"),
            make_bar(day=3, close="-1"),
            make_bar(day=4, close="12"),
        ])
        loaded = await SeriesLoader(store).load_with_report("AAA")
        assert [bar.close for bar in loaded.bars] == [Decimal("10"), Decimal("12")]
        assert loaded.raw_count == 5
        assert loaded.discarded == 3
        assert len(loaded) == 2

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_empty(self, store):
        assert await SeriesLoader(store).load("ZZZ") == []

    @pytest.mark.asyncio
    async def test_only_requested_symbol(self):
        store = InMemoryBarStore([make_bar("AAA", 0), make_bar("BBB", 0), make_bar("AAA", 1)])
        bars = await SeriesLoader(store).load("AAA")
        assert {bar.symbol for bar in bars} == {"AAA"}
        assert len(bars) == 2
