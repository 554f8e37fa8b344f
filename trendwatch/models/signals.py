"""Indicator label enums stored as plain strings on prices_daily."""

from enum import Enum


class MaSignal(str, Enum):
    """Close price relative to a single moving average."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class CrossSignal(str, Enum):
    """100-day average relative to the 200-day average."""

    GOLDEN_CROSS = "GOLDEN_CROSS"
    DEATH_CROSS = "DEATH_CROSS"
    NONE = "NONE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class SignalStrength(str, Enum):
    """Composite of the per-window signals and the crossover state."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
