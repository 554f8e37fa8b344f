from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import case, distinct, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trendwatch.core.exceptions import StoreUnavailable
from trendwatch.models.base import utcnow
from trendwatch.models.daily_bar import INDICATOR_COLUMNS, PRICE_COLUMNS, DailyBar
from trendwatch.models.signals import CrossSignal
from trendwatch.strategy.bars import PriceBar

logger = logging.getLogger(__name__)


class BarStore(ABC):
    """Keyed time-series store of daily bars, unique on (symbol, date)."""

    @abstractmethod
    async def find_by_symbol(self, symbol: str) -> list[PriceBar]:
        """All bars for a symbol, in no guaranteed order."""

    @abstractmethod
    async def find_by_symbol_and_date_range(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[PriceBar]:
        """Bars for a symbol with from_date <= date <= to_date, ascending."""

    @abstractmethod
    async def find_by_date_range(self, from_date: date, to_date: date) -> list[PriceBar]:
        """Bars for every symbol in an inclusive date range."""

    @abstractmethod
    async def find_by_date(self, bar_date: date) -> list[PriceBar]:
        pass

    @abstractmethod
    async def distinct_symbols(self) -> list[str]:
        pass

    @abstractmethod
    async def symbol_counts(self) -> dict[str, int]:
        pass

    @abstractmethod
    async def count_by_symbol(self, symbol: str) -> int:
        pass

    @abstractmethod
    async def count_all(self) -> int:
        pass

    @abstractmethod
    async def symbols_with_bars_since(self, cutoff: date) -> list[str]:
        """Symbols having at least one bar dated on or after cutoff."""

    @abstractmethod
    async def latest_date(self) -> Optional[date]:
        pass

    @abstractmethod
    async def indicator_counts(self) -> dict[str, Any]:
        """earliest_date plus row counts carrying ma_100, ma_200 and GOLDEN_CROSS."""

    @abstractmethod
    async def last_close_before(self, symbol: str, bar_date: date) -> Optional[Decimal]:
        """Close of the most recent bar strictly before bar_date."""

    @abstractmethod
    async def upsert_indicators(self, bars: Sequence[PriceBar]) -> int:
        """Write indicator columns keyed by (symbol, date); price columns untouched."""

    @abstractmethod
    async def upsert_prices(self, bars: Sequence[PriceBar]) -> int:
        """Write price columns keyed by (symbol, date); indicator columns untouched."""


class SqlAlchemyBarStore(BarStore):
    """BarStore over the prices_daily table using async SQLAlchemy."""

    # Stay well under the driver bind-parameter limit (~32k)
    _MAX_QUERY_PARAMS = 30000
    _DEFAULT_COLUMN_OVERHEAD = 2

    def __init__(self, session_factory: async_sessionmaker | None = None) -> None:
        if session_factory is None:
            from trendwatch.core.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Store %s failed: %s", action, exc)
            raise StoreUnavailable(f"{action} failed: {exc}") from exc

    async def _scalars(self, action: str, stmt) -> list[Any]:
        async with self._session(action) as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_by_symbol(self, symbol: str) -> list[PriceBar]:
        stmt = select(DailyBar).where(DailyBar.symbol == symbol)
        rows = await self._scalars(f"find_by_symbol({symbol})", stmt)
        return [PriceBar.from_row(row) for row in rows]

    async def find_by_symbol_and_date_range(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[PriceBar]:
        stmt = (
            select(DailyBar)
            .where(
                DailyBar.symbol == symbol,
                DailyBar.date >= from_date,
                DailyBar.date <= to_date,
            )
            .order_by(DailyBar.date.asc())
        )
        rows = await self._scalars(f"find_by_symbol_and_date_range({symbol})", stmt)
        return [PriceBar.from_row(row) for row in rows]

    async def find_by_date_range(self, from_date: date, to_date: date) -> list[PriceBar]:
        stmt = (
            select(DailyBar)
            .where(DailyBar.date >= from_date, DailyBar.date <= to_date)
            .order_by(DailyBar.symbol.asc(), DailyBar.date.asc())
        )
        rows = await self._scalars("find_by_date_range", stmt)
        return [PriceBar.from_row(row) for row in rows]

    async def find_by_date(self, bar_date: date) -> list[PriceBar]:
        stmt = select(DailyBar).where(DailyBar.date == bar_date).order_by(DailyBar.symbol.asc())
        rows = await self._scalars("find_by_date", stmt)
        return [PriceBar.from_row(row) for row in rows]

    async def distinct_symbols(self) -> list[str]:
        stmt = select(distinct(DailyBar.symbol)).order_by(DailyBar.symbol.asc())
        return await self._scalars("distinct_symbols", stmt)

    async def symbol_counts(self) -> dict[str, int]:
        stmt = (
            select(DailyBar.symbol, func.count(DailyBar.id))
            .group_by(DailyBar.symbol)
            .order_by(func.count(DailyBar.id).desc())
        )
        async with self._session("symbol_counts") as session:
            result = await session.execute(stmt)
            return {symbol: int(count) for symbol, count in result.all()}

    async def count_by_symbol(self, symbol: str) -> int:
        stmt = select(func.count(DailyBar.id)).where(DailyBar.symbol == symbol)
        async with self._session("count_by_symbol") as session:
            return int((await session.execute(stmt)).scalar_one())

    async def count_all(self) -> int:
        async with self._session("count_all") as session:
            return int((await session.execute(select(func.count(DailyBar.id)))).scalar_one())

    async def symbols_with_bars_since(self, cutoff: date) -> list[str]:
        stmt = (
            select(distinct(DailyBar.symbol))
            .where(DailyBar.date >= cutoff)
            .order_by(DailyBar.symbol.asc())
        )
        return await self._scalars("symbols_with_bars_since", stmt)

    async def latest_date(self) -> Optional[date]:
        async with self._session("latest_date") as session:
            return (await session.execute(select(func.max(DailyBar.date)))).scalar_one_or_none()

    async def indicator_counts(self) -> dict[str, Any]:
        golden = case((DailyBar.cross_signal == CrossSignal.GOLDEN_CROSS.value, 1), else_=0)
        stmt = select(
            func.min(DailyBar.date),
            func.count(DailyBar.ma_100),
            func.count(DailyBar.ma_200),
            func.coalesce(func.sum(golden), 0),
        )
        async with self._session("indicator_counts") as session:
            earliest, ma_100, ma_200, golden_count = (await session.execute(stmt)).one()
        return {
            "earliest_date": earliest,
            "records_with_ma_100": int(ma_100),
            "records_with_ma_200": int(ma_200),
            "records_with_golden_cross": int(golden_count),
        }

    async def last_close_before(self, symbol: str, bar_date: date) -> Optional[Decimal]:
        stmt = (
            select(DailyBar.close)
            .where(
                DailyBar.symbol == symbol,
                DailyBar.date < bar_date,
                DailyBar.close.is_not(None),
                DailyBar.close > 0,
            )
            .order_by(DailyBar.date.desc())
            .limit(1)
        )
        async with self._session("last_close_before") as session:
            value = (await session.execute(stmt)).scalar_one_or_none()
        return Decimal(str(value)) if value is not None else None

    async def upsert_indicators(self, bars: Sequence[PriceBar]) -> int:
        return await self._upsert(bars, INDICATOR_COLUMNS, "upsert_indicators")

    async def upsert_prices(self, bars: Sequence[PriceBar]) -> int:
        return await self._upsert(bars, PRICE_COLUMNS, "upsert_prices")

    async def _upsert(
        self,
        bars: Sequence[PriceBar],
        update_columns: Sequence[str],
        action: str,
    ) -> int:
        if not bars:
            return 0

        now = utcnow()
        rows = [
            {
                "symbol": bar.symbol,
                "date": bar.date,
                **bar.price_values(),
                **bar.indicator_values(),
                "created_at": now,
                "updated_at": now,
            }
            for bar in bars
        ]

        async with self._session(action) as session:
            insert = self._insert_for(session)
            try:
                for chunk in self._chunk_rows(rows):
                    stmt = insert(DailyBar).values(chunk)
                    set_ = {column: getattr(stmt.excluded, column) for column in update_columns}
                    set_["updated_at"] = stmt.excluded.updated_at
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["symbol", "date"],
                        set_=set_,
                    )
                    await session.execute(stmt)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.debug("%s wrote %s rows", action, len(rows))
        return len(rows)

    def _insert_for(self, session: AsyncSession):
        # SQLite backs the test suite; production runs on PostgreSQL
        if session.get_bind().dialect.name == "sqlite":
            return sqlite.insert
        return postgresql.insert

    def _chunk_rows(self, rows: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
        if not rows:
            return []
        row_size = max(1, len(rows[0]) + self._DEFAULT_COLUMN_OVERHEAD)
        batch_size = max(1, min(1000, self._MAX_QUERY_PARAMS // row_size))
        return [rows[i : i + batch_size] for i in range(0, len(rows), batch_size)]
