from sqlalchemy import Column, String, Date, Numeric, BigInteger, UniqueConstraint
from trendwatch.core.database import Base
from trendwatch.models.base import IdMixin, TimestampMixin

PRICE_COLUMNS = (
    "open",
    "high",
    "low",
    "close",
    "volume",
    "percentage_change",
    "price_change",
    "source",
)

INDICATOR_COLUMNS = (
    "ma_50",
    "ma_100",
    "ma_200",
    "signal_50",
    "signal_100",
    "signal_200",
    "cross_signal",
    "signal_strength",
)


class DailyBar(Base, IdMixin, TimestampMixin):
    """
    Daily OHLCV data plus derived moving-average indicators.

    Ingestion writes the price columns; indicator columns are only ever
    written by the recompute pipeline.
    """
    __tablename__ = "prices_daily"
    __table_args__ = (
        UniqueConstraint("symbol", "date", name="uq_prices_daily_symbol_date"),
    )

    symbol = Column(String(20), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    open = Column(Numeric(14, 2))
    high = Column(Numeric(14, 2))
    low = Column(Numeric(14, 2))
    close = Column(Numeric(14, 2))
    volume = Column(BigInteger, nullable=False, default=0)
    percentage_change = Column(Numeric(10, 2))
    price_change = Column(Numeric(14, 2))
    source = Column(String(50), nullable=False, default="yfinance")

    # Indicators
    ma_50 = Column(Numeric(14, 2))
    ma_100 = Column(Numeric(14, 2))
    ma_200 = Column(Numeric(14, 2))
    signal_50 = Column(String(20))
    signal_100 = Column(String(20))
    signal_200 = Column(String(20))
    cross_signal = Column(String(20), index=True)
    signal_strength = Column(String(20), index=True)
