from abc import ABC, abstractmethod
from datetime import date
from typing import List
import pandas as pd

BAR_COLUMNS = ["symbol", "date", "open", "high", "low", "close", "volume"]


class MarketDataProvider(ABC):
    """Abstract base class for daily bar providers."""

    name: str = "unknown"

    @abstractmethod
    def fetch_daily_bars(
        self,
        symbols: List[str],
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """
        Fetch daily OHLCV bars for symbols.
        Returns DataFrame with columns: [symbol, date, open, high, low, close, volume]
        where symbol is the bare ticker (no exchange suffix) and date a datetime.date.
        """
        pass
