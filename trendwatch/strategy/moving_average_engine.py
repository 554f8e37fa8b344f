from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from trendwatch.core.config import settings
from trendwatch.core.exceptions import ComputationError
from trendwatch.models.signals import MaSignal
from trendwatch.strategy.bars import CENT, WINDOW_FIELDS, PriceBar


def rolling_average(closes: Sequence[Optional[Decimal]], window: int) -> list[Optional[Decimal]]:
    """
    Trailing simple average over ``window`` observations ending at each index.

    Uses a running sum, O(N). The divisor is the number of non-null closes in
    the window, so sparse gaps shrink the divisor instead of skewing the mean.
    Indexes before ``window - 1`` and windows holding no valid close are None.
    """
    size = len(closes)
    averages: list[Optional[Decimal]] = [None] * size
    if window <= 0 or size == 0:
        return averages

    total = Decimal(0)
    count = 0
    for i, close in enumerate(closes):
        if close is not None:
            total += close
            count += 1
        if i >= window:
            leaving = closes[i - window]
            if leaving is not None:
                total -= leaving
                count -= 1
        if i >= window - 1 and count > 0:
            averages[i] = (total / count).quantize(CENT, rounding=ROUND_HALF_UP)
    return averages


def price_signal(close: Optional[Decimal], average: Optional[Decimal]) -> MaSignal:
    if close is None or average is None:
        return MaSignal.INSUFFICIENT_DATA
    if close > average:
        return MaSignal.BUY
    if close < average:
        return MaSignal.SELL
    return MaSignal.HOLD


class MovingAverageEngine:
    """Pure computation engine for moving averages and per-window signals."""

    def __init__(self, windows: Iterable[int] | None = None) -> None:
        self.windows = tuple(windows if windows is not None else settings.MA_WINDOWS)

    def compute_indicators(
        self,
        series: list[PriceBar],
        windows: Iterable[int] | None = None,
    ) -> list[PriceBar]:
        """
        Populate ma_N and signal_N on every bar of an ordered, clean series.

        Bars are mutated in place and the same list is returned. Price columns
        are never touched. Non-positive windows are skipped; an empty series
        or no remaining window is a no-op.
        """
        windows = tuple(windows) if windows is not None else self.windows
        windows = tuple(window for window in windows if window > 0)
        if not series or not windows:
            return series

        for window in windows:
            if window not in WINDOW_FIELDS:
                raise ValueError(f"No indicator columns for a {window}-day window")

        closes = [bar.close if bar.has_valid_close else None for bar in series]
        for window in windows:
            self._apply_window(series, closes, window)
        return series

    def _apply_window(
        self,
        series: list[PriceBar],
        closes: list[Optional[Decimal]],
        window: int,
    ) -> None:
        average_attr, signal_attr = WINDOW_FIELDS[window]
        try:
            averages = rolling_average(closes, window)
        except (InvalidOperation, ArithmeticError, TypeError) as exc:
            raise ComputationError(
                f"Rolling average failed: {exc}",
                symbol=series[0].symbol,
                window=window,
            ) from exc

        for bar, close, average in zip(series, closes, averages):
            try:
                signal = price_signal(close, average)
            except (InvalidOperation, TypeError) as exc:
                raise ComputationError(
                    f"Signal comparison failed: {exc}",
                    symbol=bar.symbol,
                    bar_date=bar.date,
                    window=window,
                ) from exc
            setattr(bar, average_attr, average)
            setattr(bar, signal_attr, signal)
