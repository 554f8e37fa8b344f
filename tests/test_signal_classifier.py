"""Tests for crossover and composite strength classification."""

from decimal import Decimal

import pytest

from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength
from trendwatch.strategy.signal_classifier import (
    SignalClassifier,
    classify_cross,
    classify_strength,
)

from conftest import make_bar

BUY, SELL, HOLD, NA = MaSignal.BUY, MaSignal.SELL, MaSignal.HOLD, MaSignal.INSUFFICIENT_DATA


class TestClassifyCross:

    def test_golden_and_death(self):
        assert classify_cross(Decimal("110"), Decimal("100")) == CrossSignal.GOLDEN_CROSS
        assert classify_cross(Decimal("90"), Decimal("100")) == CrossSignal.DEATH_CROSS

    def test_equal_averages(self):
        assert classify_cross(Decimal("100.00"), Decimal("100")) == CrossSignal.NONE

    @pytest.mark.parametrize("ma_100,ma_200", [(None, Decimal("1")), (Decimal("1"), None), (None, None)])
    def test_missing_average(self, ma_100, ma_200):
        assert classify_cross(ma_100, ma_200) == CrossSignal.INSUFFICIENT_DATA


class TestClassifyStrength:

    @pytest.mark.parametrize(
        "signals,cross,expected",
        [
            ((BUY, BUY, BUY), CrossSignal.GOLDEN_CROSS, SignalStrength.STRONG_BUY),
            ((BUY, BUY, BUY), CrossSignal.DEATH_CROSS, SignalStrength.BUY),
            ((SELL, SELL, SELL), CrossSignal.DEATH_CROSS, SignalStrength.STRONG_SELL),
            ((SELL, SELL, SELL), CrossSignal.GOLDEN_CROSS, SignalStrength.SELL),
            ((BUY, SELL, BUY), CrossSignal.GOLDEN_CROSS, SignalStrength.HOLD),
            ((HOLD, HOLD, HOLD), CrossSignal.NONE, SignalStrength.SELL),
            ((BUY, NA, NA), CrossSignal.INSUFFICIENT_DATA, SignalStrength.BUY),
            ((SELL, None, None), CrossSignal.INSUFFICIENT_DATA, SignalStrength.SELL),
            ((NA, NA, NA), CrossSignal.INSUFFICIENT_DATA, SignalStrength.INSUFFICIENT_DATA),
        ],
    )
    def test_strength_table(self, signals, cross, expected):
        assert classify_strength(signals, cross) == expected


class TestSignalClassifier:

    def test_classify_uses_bar_averages(self):
        bar = make_bar(
            close="120",
            ma_50=Decimal("110"), ma_100=Decimal("105"), ma_200=Decimal("100"),
            signal_50=BUY, signal_100=BUY, signal_200=BUY,
        )
        SignalClassifier().classify(bar)
        assert bar.cross_signal == CrossSignal.GOLDEN_CROSS
        assert bar.signal_strength == SignalStrength.STRONG_BUY

    def test_classify_series_short_history(self):
        bars = [make_bar(day=i, signal_50=NA, signal_100=NA, signal_200=NA) for i in range(3)]
        SignalClassifier().classify_series(bars)
        assert {bar.cross_signal for bar in bars} == {CrossSignal.INSUFFICIENT_DATA}
        assert {bar.signal_strength for bar in bars} == {SignalStrength.INSUFFICIENT_DATA}
