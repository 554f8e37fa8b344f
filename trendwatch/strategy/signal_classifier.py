from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength
from trendwatch.strategy.bars import PriceBar


def classify_cross(ma_100: Optional[Decimal], ma_200: Optional[Decimal]) -> CrossSignal:
    if ma_100 is None or ma_200 is None:
        return CrossSignal.INSUFFICIENT_DATA
    if ma_100 > ma_200:
        return CrossSignal.GOLDEN_CROSS
    if ma_100 < ma_200:
        return CrossSignal.DEATH_CROSS
    return CrossSignal.NONE


def classify_strength(
    signals: Iterable[Optional[MaSignal]],
    cross: CrossSignal,
) -> SignalStrength:
    """
    Combine per-window signals with the crossover state.

    Only signals with data count. Unanimous BUY is bullish, no BUY at all
    is bearish (HOLD counts as not bullish), anything in between is HOLD.
    The windows carry equal weight.
    """
    available = [
        signal for signal in signals
        if signal is not None and signal != MaSignal.INSUFFICIENT_DATA
    ]
    total = len(available)
    if total == 0:
        return SignalStrength.INSUFFICIENT_DATA

    bullish = sum(1 for signal in available if signal == MaSignal.BUY)
    if bullish == total:
        return SignalStrength.STRONG_BUY if cross == CrossSignal.GOLDEN_CROSS else SignalStrength.BUY
    if bullish == 0:
        return SignalStrength.STRONG_SELL if cross == CrossSignal.DEATH_CROSS else SignalStrength.SELL
    return SignalStrength.HOLD


class SignalClassifier:
    """Derives cross_signal and signal_strength from a bar's own averages."""

    def classify(self, bar: PriceBar) -> PriceBar:
        bar.cross_signal = classify_cross(bar.ma_100, bar.ma_200)
        bar.signal_strength = classify_strength(
            (bar.signal_50, bar.signal_100, bar.signal_200),
            bar.cross_signal,
        )
        return bar

    def classify_series(self, series: list[PriceBar]) -> list[PriceBar]:
        for bar in series:
            self.classify(bar)
        return series
