from __future__ import annotations

import logging
from dataclasses import dataclass, field

from trendwatch.services.bar_store import BarStore
from trendwatch.strategy.bars import PriceBar

logger = logging.getLogger(__name__)


@dataclass
class LoadedSeries:
    """A symbol's clean, date-ordered series plus what was filtered out."""

    symbol: str
    bars: list[PriceBar] = field(default_factory=list)
    raw_count: int = 0
    rejected: list[PriceBar] = field(default_factory=list)

    @property
    def discarded(self) -> int:
        return len(self.rejected)

    def __len__(self) -> int:
        return len(self.bars)


class SeriesLoader:
    """Read a symbol's full history and reduce it to valid closes in date order."""

    def __init__(self, store: BarStore):
        self.store = store

    async def load(self, symbol: str) -> list[PriceBar]:
        return (await self.load_with_report(symbol)).bars

    async def load_with_report(self, symbol: str) -> LoadedSeries:
        # StoreUnavailable propagates; the orchestrator handles it per symbol
        raw = await self.store.find_by_symbol(symbol)

        clean = []
        rejected = []
        for bar in raw:
            if bar.has_valid_close:
                clean.append(bar)
            else:
                rejected.append(bar)
                logger.debug("Discarding %s %s: invalid close %r", symbol, bar.date, bar.close)

        # Stable: duplicate dates keep store order
        clean.sort(key=lambda bar: bar.date)
        self._warn_duplicate_dates(symbol, clean)

        if rejected:
            logger.info("%s: discarded %s of %s bars with missing or non-positive close",
                        symbol, len(rejected), len(raw))

        return LoadedSeries(symbol=symbol, bars=clean, raw_count=len(raw), rejected=rejected)

    def _warn_duplicate_dates(self, symbol: str, bars: list[PriceBar]) -> None:
        for previous, current in zip(bars, bars[1:]):
            if previous.date == current.date:
                logger.warning("%s has duplicate bars for %s; keeping store order", symbol, current.date)
