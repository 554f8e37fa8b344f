# Base
from trendwatch.models.base import TimestampMixin, IdMixin

# Market Data
from trendwatch.models.daily_bar import DailyBar
from trendwatch.models.signals import CrossSignal, MaSignal, SignalStrength

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "DailyBar",
    "CrossSignal",
    "MaSignal",
    "SignalStrength",
]
