from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple
import logging

import pandas as pd

from trendwatch.services.bar_store import BarStore
from trendwatch.services.market_data import get_market_data_provider
from trendwatch.services.market_data.base import MarketDataProvider
from trendwatch.strategy.bars import PriceBar, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass
class DataQualityAlert:
    """Represents a data quality issue."""
    symbol: str
    date: date
    issue_type: str
    message: str
    severity: str  # "WARNING" or "ERROR"


@dataclass
class IngestionResult:
    processed: int = 0
    alerts: List[DataQualityAlert] = field(default_factory=list)
    earliest_date: Optional[date] = None
    symbols: List[str] = field(default_factory=list)

    @property
    def errors(self) -> List[DataQualityAlert]:
        return [a for a in self.alerts if a.severity == "ERROR"]


def percentage_change(previous: Optional[Decimal], current: Optional[Decimal]) -> Decimal:
    """Day-over-day % move of close: ratio rounded to 4 places, then x100 to 2 places."""
    if previous is None or current is None or previous == 0:
        return Decimal("0.00")
    ratio = ((current - previous) / previous).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    return (ratio * HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def price_change(close: Decimal, pct: Decimal) -> Decimal:
    return to_money(close * pct / HUNDRED)


class DataQualityValidator:
    """
    Validates incoming bars:
    - No zero/negative prices or negative volume
    - OHLC consistency (high/low bound open and close)
    - Gaps > 30% from the previous close are flagged but kept
    """

    MAX_GAP_PERCENT = Decimal("0.30")

    def __init__(self):
        self.alerts: List[DataQualityAlert] = []

    def validate_bar(self, bar: PriceBar, prev_close: Optional[Decimal] = None) -> Tuple[bool, Optional[DataQualityAlert]]:
        """
        Validate a single bar.
        Returns (is_valid, alert_if_any).
        """
        for name in ("open", "high", "low", "close"):
            value = getattr(bar, name)
            if value is None or value <= 0:
                return False, self._alert(bar, "INVALID_PRICE", f"{name} is zero or negative: {value}", "ERROR")

        if bar.volume is None or bar.volume < 0:
            return False, self._alert(bar, "INVALID_VOLUME", f"Volume is negative: {bar.volume}", "ERROR")

        o, h, l, c = bar.open, bar.high, bar.low, bar.close
        if h < l:
            return False, self._alert(bar, "INVALID_OHLC", f"High ({h}) < Low ({l})", "ERROR")
        if h < max(o, c) or l > min(o, c):
            return False, self._alert(bar, "INVALID_OHLC", f"OHLC inconsistent: O={o}, H={h}, L={l}, C={c}", "ERROR")

        if prev_close is not None and prev_close > 0:
            gap_pct = abs(o - prev_close) / prev_close
            if gap_pct > self.MAX_GAP_PERCENT:
                alert = self._alert(
                    bar,
                    "LARGE_GAP",
                    f"Gap of {float(gap_pct):.1%} from prev close {prev_close} to open {o}",
                    "WARNING",
                )
                # Don't reject, but flag for review
                logger.warning(f"Large gap detected: {alert.message}")

        return True, None

    def get_alerts(self) -> List[DataQualityAlert]:
        """Return all accumulated alerts."""
        return self.alerts

    def clear_alerts(self) -> None:
        """Clear accumulated alerts."""
        self.alerts = []

    def _alert(self, bar: PriceBar, issue_type: str, message: str, severity: str) -> DataQualityAlert:
        alert = DataQualityAlert(
            symbol=bar.symbol,
            date=bar.date,
            issue_type=issue_type,
            message=message,
            severity=severity,
        )
        self.alerts.append(alert)
        return alert


class IngestionService:
    """
    Fetch daily bars, validate them, derive day-over-day change and upsert
    the price columns. Indicator columns are left to the recompute pipeline.
    """

    def __init__(self, store: BarStore, provider: Optional[MarketDataProvider] = None, provider_name: str = "yfinance"):
        self.store = store
        self.provider = provider or get_market_data_provider(provider_name)
        self.provider_name = getattr(self.provider, "name", provider_name)
        self.validator = DataQualityValidator()

    async def fetch_and_store(self, symbols: List[str], start_date: date, end_date: date) -> IngestionResult:
        logger.info(f"Fetching data for {len(symbols)} symbols from {start_date} to {end_date}")
        self.validator.clear_alerts()

        df = self.provider.fetch_daily_bars(symbols, start_date, end_date)
        if df.empty:
            logger.warning("No data returned from provider")
            return IngestionResult()

        bars: List[PriceBar] = []
        for symbol, group in df.sort_values(["symbol", "date"]).groupby("symbol", sort=True):
            bars.extend(await self._prepare_symbol(str(symbol), group))

        if not bars:
            return IngestionResult(alerts=self.validator.get_alerts())

        written = await self.store.upsert_prices(bars)
        logger.info(f"Successfully upserted {written} daily bars")

        alerts = self.validator.get_alerts()
        if alerts:
            logger.warning(f"Data quality alerts: {len(alerts)} issues detected")
            for alert in alerts:
                logger.warning(f"  [{alert.severity}] {alert.symbol}: {alert.issue_type} - {alert.message}")

        return IngestionResult(
            processed=written,
            alerts=alerts,
            earliest_date=min(bar.date for bar in bars),
            symbols=sorted({bar.symbol for bar in bars}),
        )

    async def _prepare_symbol(self, symbol: str, group: pd.DataFrame) -> List[PriceBar]:
        first_date = group["date"].iloc[0]
        prev_close = await self.store.last_close_before(symbol, first_date)

        prepared = []
        for _, row in group.iterrows():
            bar = self._to_bar(symbol, row)
            if bar is None:
                continue

            is_valid, alert = self.validator.validate_bar(bar, prev_close)
            if not is_valid:
                logger.warning(f"Rejected invalid bar: {symbol} {bar.date}: {alert.message if alert else 'unknown'}")
                continue

            bar.percentage_change = percentage_change(prev_close, bar.close)
            bar.price_change = price_change(bar.close, bar.percentage_change)
            prepared.append(bar)
            prev_close = bar.close
        return prepared

    def _to_bar(self, symbol: str, row: pd.Series) -> Optional[PriceBar]:
        """Convert DataFrame row to a PriceBar with money rounding applied."""
        try:
            return PriceBar(
                symbol=symbol.upper(),
                date=row["date"],
                open=to_money(row["open"]),
                high=to_money(row["high"]),
                low=to_money(row["low"]),
                close=to_money(row["close"]),
                volume=int(row["volume"]),
                source=self.provider_name,
            )
        except (InvalidOperation, TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid row: {symbol} {row.get('date')}: {e}")
            return None
