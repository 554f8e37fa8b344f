"""Tests for the recompute orchestrator."""

from datetime import timedelta
from decimal import Decimal

import pytest

from trendwatch.core.exceptions import StoreUnavailable
from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength
from trendwatch.services.recompute_service import RecomputeService, SymbolStatus

from conftest import START, InMemoryBarStore, make_series


def _service(store, **kwargs) -> RecomputeService:
    kwargs.setdefault("universe", None)
    kwargs.setdefault("windows", [50, 100, 200])
    kwargs.setdefault("min_history", 50)
    kwargs.setdefault("max_concurrency", 2)
    return RecomputeService(store, **kwargs)


def _rising(symbol: str, n: int) -> list:
    return make_series(symbol, [100 + i for i in range(n)])


class TestRecomputeOne:

    @pytest.mark.asyncio
    async def test_updates_indicator_columns(self):
        store = InMemoryBarStore(_rising("AAA", 220))
        result = await _service(store).recompute_one("AAA")

        assert result.status == SymbolStatus.UPDATED
        assert result.bars == 220
        assert result.ma_counts == {50: 171, 100: 121, 200: 21}
        assert result.first_ma_dates[200] == START + timedelta(days=199)

        last = store.rows[("AAA", START + timedelta(days=219))]
        assert last.ma_50 == Decimal("294.50")
        assert last.signal_50 == MaSignal.BUY
        assert last.cross_signal == CrossSignal.GOLDEN_CROSS
        assert last.signal_strength == SignalStrength.STRONG_BUY
        assert result.golden_cross_count == 21

    @pytest.mark.asyncio
    async def test_insufficient_history_is_skipped(self):
        store = InMemoryBarStore(_rising("AAA", 30))
        result = await _service(store).recompute_one("AAA")
        assert result.status == SymbolStatus.SKIPPED_INSUFFICIENT
        assert store.indicator_writes == 0
        assert all(bar.ma_50 is None for bar in store.rows.values())

    @pytest.mark.asyncio
    async def test_idempotent(self):
        store = InMemoryBarStore(_rising("AAA", 120))
        service = _service(store)
        await service.recompute_one("AAA")
        first = {key: bar.indicator_values() for key, bar in store.rows.items()}
        await service.recompute_one("AAA")
        second = {key: bar.indicator_values() for key, bar in store.rows.items()}
        assert first == second

    @pytest.mark.asyncio
    async def test_prices_untouched(self):
        store = InMemoryBarStore(_rising("AAA", 60))
        before = {key: bar.price_values() for key, bar in store.rows.items()}
        await _service(store).recompute_one("AAA")
        assert {key: bar.price_values() for key, bar in store.rows.items()} == before

    @pytest.mark.asyncio
    async def test_invalid_bars_are_cleared(self):
        store = InMemoryBarStore(_rising("AAA", 220))
        service = _service(store)
        await service.recompute_one("AAA")
        key = ("AAA", START + timedelta(days=210))
        assert store.rows[key].signal_strength == SignalStrength.STRONG_BUY

        store.rows[key].close = None
        result = await service.recompute_one("AAA")

        row = store.rows[key]
        assert result.bars == 219
        assert result.discarded == 1
        assert (row.ma_50, row.ma_100, row.ma_200) == (None, None, None)
        assert row.signal_50 == MaSignal.INSUFFICIENT_DATA
        assert row.cross_signal == CrossSignal.INSUFFICIENT_DATA
        assert row.signal_strength == SignalStrength.INSUFFICIENT_DATA
        assert store.rows[("AAA", START + timedelta(days=211))].ma_50 is not None

    @pytest.mark.asyncio
    async def test_falling_below_min_history_clears_indicators(self):
        store = InMemoryBarStore(_rising("AAA", 60))
        service = _service(store)
        await service.recompute_one("AAA")
        for day in range(20):
            store.rows[("AAA", START + timedelta(days=day))].close = Decimal("0")

        result = await service.recompute_one("AAA")

        assert result.status == SymbolStatus.SKIPPED_INSUFFICIENT
        assert all(bar.ma_50 is None for bar in store.rows.values())
        assert {bar.signal_strength for bar in store.rows.values()} == {SignalStrength.INSUFFICIENT_DATA}
        assert {bar.signal_50 for bar in store.rows.values()} == {MaSignal.INSUFFICIENT_DATA}


class TestRecomputeAll:

    @pytest.mark.asyncio
    async def test_mixed_universe(self):
        store = InMemoryBarStore(_rising("AAA", 60) + _rising("BBB", 30) + _rising("CCC", 210))
        summary = await _service(store).recompute_all()

        assert summary.processed == 3
        assert summary.sufficient_data == 2
        assert summary.skipped_insufficient == 1
        assert summary.errors == {}
        assert summary.finished_at is not None

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self):
        store = InMemoryBarStore(_rising("AAA", 60) + _rising("BBB", 60) + _rising("CCC", 60))
        store.fail_symbols = {"BBB"}
        summary = await _service(store).recompute_all()

        assert set(summary.errors) == {"BBB"}
        assert summary.processed == 2
        assert store.rows[("AAA", START + timedelta(days=59))].ma_50 is not None
        assert store.rows[("CCC", START + timedelta(days=59))].ma_50 is not None
        assert store.rows[("BBB", START + timedelta(days=59))].ma_50 is None

        # Retrying the failed symbol converges to the unfailed result
        store.fail_symbols = set()
        retry = await _service(store).recompute_one("BBB")
        assert retry.status == SymbolStatus.UPDATED
        for day in range(60):
            a = store.rows[("AAA", START + timedelta(days=day))].indicator_values()
            b = store.rows[("BBB", START + timedelta(days=day))].indicator_values()
            assert a == b

    @pytest.mark.asyncio
    async def test_empty_universe_means_all_stored(self):
        store = InMemoryBarStore(_rising("AAA", 60))
        summary = await _service(store, universe=[]).recompute_all()
        assert [result.symbol for result in summary.symbols] == ["AAA"]
        assert summary.sufficient_data == 1

    @pytest.mark.asyncio
    async def test_enumeration_failure_propagates(self):
        store = InMemoryBarStore(_rising("AAA", 60))
        store.fail_enumeration = True
        with pytest.raises(StoreUnavailable):
            await _service(store).recompute_all()

    @pytest.mark.asyncio
    async def test_universe_restricts_symbols(self):
        store = InMemoryBarStore(_rising("AAA", 60) + _rising("ZZZ", 60))
        summary = await _service(store, universe=["AAA", "BBB"]).recompute_all()
        assert [result.symbol for result in summary.symbols] == ["AAA"]
        assert store.rows[("ZZZ", START + timedelta(days=59))].ma_50 is None

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        summary = await _service(store).recompute_all()
        assert summary.processed == 0
        assert summary.to_dict()["symbols"] == []


class TestRecomputeSince:

    @pytest.mark.asyncio
    async def test_only_recent_symbols_full_history(self):
        store = InMemoryBarStore(_rising("AAA", 80) + _rising("BBB", 60))
        cutoff = START + timedelta(days=70)
        summary = await _service(store).recompute_since(cutoff)

        assert [result.symbol for result in summary.symbols] == ["AAA"]
        # Full history recomputed, not just the tail
        assert store.rows[("AAA", START + timedelta(days=49))].ma_50 == Decimal("124.50")
        assert store.rows[("BBB", START + timedelta(days=59))].ma_50 is None

    @pytest.mark.asyncio
    async def test_summary_to_dict(self):
        store = InMemoryBarStore(_rising("AAA", 100))
        data = (await _service(store).recompute_since(START)).to_dict()
        assert data["processed"] == 1
        assert data["coverage"]["50"] == 51.0
        assert data["symbols"][0]["status"] == "updated"
