from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from trendwatch.core.config import settings
from trendwatch.models.signals import CrossSignal
from trendwatch.services.bar_store import BarStore, SqlAlchemyBarStore
from trendwatch.services.series_loader import SeriesLoader
from trendwatch.strategy.bars import WINDOW_FIELDS, PriceBar
from trendwatch.strategy.moving_average_engine import MovingAverageEngine
from trendwatch.strategy.signal_classifier import SignalClassifier

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


class SymbolStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED_INSUFFICIENT = "skipped_insufficient"
    ERROR = "error"


@dataclass
class SymbolResult:
    """Outcome of recomputing one symbol."""

    symbol: str
    status: SymbolStatus
    bars: int = 0
    discarded: int = 0
    ma_counts: dict[int, int] = field(default_factory=dict)
    first_ma_dates: dict[int, Optional[date]] = field(default_factory=dict)
    golden_cross_count: int = 0
    error: Optional[str] = None

    def coverage(self, window: int) -> float:
        if not self.bars:
            return 0.0
        return self.ma_counts.get(window, 0) * 100.0 / self.bars

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "status": self.status.value,
            "bars": self.bars,
            "discarded": self.discarded,
            "ma_counts": {str(window): count for window, count in self.ma_counts.items()},
            "coverage": {str(window): round(self.coverage(window), 2) for window in self.ma_counts},
            "first_ma_dates": {
                str(window): value.isoformat() if value else None
                for window, value in self.first_ma_dates.items()
            },
            "golden_cross_count": self.golden_cross_count,
            "error": self.error,
        }


@dataclass
class RecomputeSummary:
    """Aggregated statistics for one recompute run."""

    processed: int = 0
    sufficient_data: int = 0
    skipped_insufficient: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    symbols: list[SymbolResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    duration_ms: int = 0

    def record(self, result: SymbolResult) -> None:
        self.symbols.append(result)
        if result.status == SymbolStatus.ERROR:
            self.errors[result.symbol] = result.error or "unknown error"
            return
        self.processed += 1
        if result.status == SymbolStatus.UPDATED:
            self.sufficient_data += 1
        else:
            self.skipped_insufficient += 1

    def coverage(self, window: int) -> float:
        updated = [r for r in self.symbols if r.status == SymbolStatus.UPDATED]
        total_bars = sum(r.bars for r in updated)
        if not total_bars:
            return 0.0
        return sum(r.ma_counts.get(window, 0) for r in updated) * 100.0 / total_bars

    def to_dict(self) -> dict[str, Any]:
        windows = sorted({w for r in self.symbols for w in r.ma_counts})
        return {
            "processed": self.processed,
            "sufficient_data": self.sufficient_data,
            "skipped_insufficient": self.skipped_insufficient,
            "errors": dict(self.errors),
            "coverage": {str(window): round(self.coverage(window), 2) for window in windows},
            "symbols": [result.to_dict() for result in self.symbols],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


class RecomputeService:
    """
    Recompute moving-average indicators for stored symbols.

    Every recompute covers a symbol's entire history: a simple moving average
    at any index depends on the preceding window, so recomputing only the new
    tail would leave the boundary rows wrong.
    """

    def __init__(
        self,
        store: BarStore,
        universe: Iterable[str] | None = None,
        windows: Iterable[int] | None = None,
        min_history: int | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.store = store
        self.universe = list(universe) if universe is not None else None
        self.windows = tuple(windows if windows is not None else settings.MA_WINDOWS)
        self.min_history = min_history if min_history is not None else settings.MIN_HISTORY_DAYS
        self.max_concurrency = max(1, max_concurrency or settings.RECOMPUTE_MAX_CONCURRENCY)
        self.loader = SeriesLoader(store)
        self.engine = MovingAverageEngine(self.windows)
        self.classifier = SignalClassifier()
        self._symbol_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def recompute_one(self, symbol: str) -> SymbolResult:
        """Load, compute, classify and write back one symbol's full series."""
        async with self._symbol_locks[symbol]:
            loaded = await self.loader.load_with_report(symbol)
            # Rows without a usable close can only carry INSUFFICIENT_DATA
            stale = [bar.clear_indicators() for bar in loaded.rejected if bar.has_indicators]

            if len(loaded) < self.min_history:
                stale += [bar.clear_indicators() for bar in loaded.bars if bar.has_indicators]
                if stale:
                    await self.store.upsert_indicators(stale)
                logger.debug(
                    "Skipped %s - only %s clean records (need %s+), cleared %s stale rows",
                    symbol, len(loaded), self.min_history, len(stale),
                )
                return SymbolResult(
                    symbol=symbol,
                    status=SymbolStatus.SKIPPED_INSUFFICIENT,
                    bars=len(loaded),
                    discarded=loaded.discarded,
                )

            series = self.engine.compute_indicators(loaded.bars, self.windows)
            self.classifier.classify_series(series)
            await self.store.upsert_indicators(series + stale)

            result = self._summarize(symbol, series, loaded.discarded)
            self._log_result(result)
            return result

    async def recompute_all(self) -> RecomputeSummary:
        """Recompute every stored symbol (restricted to the universe, if set)."""
        # Enumeration failure is fatal for the run and propagates
        symbols = self._in_universe(await self.store.distinct_symbols())
        logger.info("Starting moving average calculation for %s symbols", len(symbols))
        return await self._run(symbols)

    async def recompute_since(self, cutoff: date) -> RecomputeSummary:
        """Recompute symbols with at least one bar dated on or after cutoff."""
        symbols = self._in_universe(await self.store.symbols_with_bars_since(cutoff))
        logger.info("Calculating moving averages for %s symbols with data since %s",
                    len(symbols), cutoff)
        return await self._run(symbols)

    async def _run(self, symbols: list[str]) -> RecomputeSummary:
        summary = RecomputeSummary()
        started = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        done = 0

        async def run_symbol(symbol: str) -> SymbolResult:
            nonlocal done
            async with semaphore:
                result = await self._safe_recompute(symbol)
            done += 1
            if done % PROGRESS_EVERY == 0:
                logger.info("Progress: %s/%s symbols processed", done, len(symbols))
            return result

        results = await asyncio.gather(*(run_symbol(symbol) for symbol in symbols))
        for result in results:
            summary.record(result)

        summary.finished_at = datetime.now(timezone.utc)
        summary.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Moving average calculation completed: processed=%s sufficient=%s "
            "skipped=%s errors=%s in %sms",
            summary.processed,
            summary.sufficient_data,
            summary.skipped_insufficient,
            len(summary.errors),
            summary.duration_ms,
        )
        return summary

    async def _safe_recompute(self, symbol: str) -> SymbolResult:
        try:
            return await self.recompute_one(symbol)
        except Exception as exc:
            logger.error("Failed to process %s: %s", symbol, exc, exc_info=True)
            return SymbolResult(symbol=symbol, status=SymbolStatus.ERROR, error=str(exc))

    def _in_universe(self, symbols: list[str]) -> list[str]:
        # None or empty: every stored symbol
        if not self.universe:
            return list(symbols)
        allowed = set(self.universe)
        return [symbol for symbol in symbols if symbol in allowed]

    def _summarize(self, symbol: str, series: list[PriceBar], discarded: int) -> SymbolResult:
        ma_counts: dict[int, int] = {}
        first_dates: dict[int, Optional[date]] = {}
        for window in self.windows:
            attr = WINDOW_FIELDS[window][0]
            dated = [bar.date for bar in series if getattr(bar, attr) is not None]
            ma_counts[window] = len(dated)
            first_dates[window] = dated[0] if dated else None

        golden = sum(1 for bar in series if bar.cross_signal == CrossSignal.GOLDEN_CROSS)
        return SymbolResult(
            symbol=symbol,
            status=SymbolStatus.UPDATED,
            bars=len(series),
            discarded=discarded,
            ma_counts=ma_counts,
            first_ma_dates=first_dates,
            golden_cross_count=golden,
        )

    def _log_result(self, result: SymbolResult) -> None:
        counts = ", ".join(
            f"{window}-day MA: {count} records" for window, count in result.ma_counts.items()
        )
        logger.info("%s - moving averages calculated over %s bars (%s); golden cross rows: %s",
                    result.symbol, result.bars, counts, result.golden_cross_count)
        for window, first in result.first_ma_dates.items():
            if first is not None:
                logger.debug("%s first %s-day MA date: %s", result.symbol, window, first)


def build_recompute_service(store: BarStore | None = None) -> RecomputeService:
    """RecomputeService wired to the configured store and universe."""
    return RecomputeService(
        store=store or SqlAlchemyBarStore(),
        universe=settings.TRADING_UNIVERSE,
    )
