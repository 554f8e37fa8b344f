from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength

CENT = Decimal("0.01")

# window size -> (average attribute, signal attribute)
WINDOW_FIELDS: dict[int, tuple[str, str]] = {
    50: ("ma_50", "signal_50"),
    100: ("ma_100", "signal_100"),
    200: ("ma_200", "signal_200"),
}


def to_money(value: Any) -> Optional[Decimal]:
    """Coerce to a 2-place Decimal rounded half-up; None passes through."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PriceBar:
    """Detached, in-memory form of one prices_daily row."""

    symbol: str
    date: date
    close: Optional[Decimal]
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    volume: int = 0
    percentage_change: Optional[Decimal] = None
    price_change: Optional[Decimal] = None
    source: str = "yfinance"

    ma_50: Optional[Decimal] = None
    ma_100: Optional[Decimal] = None
    ma_200: Optional[Decimal] = None
    signal_50: Optional[MaSignal] = None
    signal_100: Optional[MaSignal] = None
    signal_200: Optional[MaSignal] = None
    cross_signal: Optional[CrossSignal] = None
    signal_strength: Optional[SignalStrength] = None

    @property
    def has_valid_close(self) -> bool:
        return self.close is not None and self.close > 0

    @property
    def has_indicators(self) -> bool:
        """True if any indicator column holds something other than INSUFFICIENT_DATA."""
        for value in self.indicator_values().values():
            if value is not None and value != MaSignal.INSUFFICIENT_DATA.value:
                return True
        return False

    def clear_indicators(self) -> "PriceBar":
        """Null every average and mark every label INSUFFICIENT_DATA."""
        for average_attr, signal_attr in WINDOW_FIELDS.values():
            setattr(self, average_attr, None)
            setattr(self, signal_attr, MaSignal.INSUFFICIENT_DATA)
        self.cross_signal = CrossSignal.INSUFFICIENT_DATA
        self.signal_strength = SignalStrength.INSUFFICIENT_DATA
        return self

    def indicator_values(self) -> dict[str, Any]:
        """Indicator columns as stored values (enums flattened to strings)."""
        return {
            "ma_50": self.ma_50,
            "ma_100": self.ma_100,
            "ma_200": self.ma_200,
            "signal_50": _label(self.signal_50),
            "signal_100": _label(self.signal_100),
            "signal_200": _label(self.signal_200),
            "cross_signal": _label(self.cross_signal),
            "signal_strength": _label(self.signal_strength),
        }

    def price_values(self) -> dict[str, Any]:
        return {
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "percentage_change": self.percentage_change,
            "price_change": self.price_change,
            "source": self.source,
        }

    @classmethod
    def from_row(cls, row: Any) -> "PriceBar":
        """Build from an ORM row or any object exposing the column attributes."""
        return cls(
            symbol=row.symbol,
            date=row.date,
            open=_decimal_or_none(row.open),
            high=_decimal_or_none(row.high),
            low=_decimal_or_none(row.low),
            close=_decimal_or_none(row.close),
            volume=int(row.volume or 0),
            percentage_change=_decimal_or_none(row.percentage_change),
            price_change=_decimal_or_none(row.price_change),
            source=row.source or "yfinance",
            ma_50=_decimal_or_none(row.ma_50),
            ma_100=_decimal_or_none(row.ma_100),
            ma_200=_decimal_or_none(row.ma_200),
            signal_50=_enum_or_none(MaSignal, row.signal_50),
            signal_100=_enum_or_none(MaSignal, row.signal_100),
            signal_200=_enum_or_none(MaSignal, row.signal_200),
            cross_signal=_enum_or_none(CrossSignal, row.cross_signal),
            signal_strength=_enum_or_none(SignalStrength, row.signal_strength),
        )

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in data.items():
            if isinstance(value, (MaSignal, CrossSignal, SignalStrength)):
                data[key] = value.value
        return data


def _label(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def _decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _enum_or_none(enum_cls, value: Any):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None
