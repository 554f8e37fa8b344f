import yfinance as yf
from trendwatch.core.config import settings
from trendwatch.services.market_data.base import BAR_COLUMNS, MarketDataProvider
from datetime import date, timedelta
from typing import List, Optional
import pandas as pd
import logging

logger = logging.getLogger(__name__)


class YFinanceProvider(MarketDataProvider):
    """yfinance provider for NSE daily bars."""

    name = "yfinance"

    def __init__(self, suffix: Optional[str] = None):
        self.suffix = settings.SYMBOL_SUFFIX if suffix is None else suffix

    def fetch_daily_bars(self, symbols: List[str], start_date: date, end_date: date) -> pd.DataFrame:
        if not symbols:
            return pd.DataFrame(columns=BAR_COLUMNS)

        tickers = {self._ticker(symbol): symbol for symbol in symbols}
        try:
            # yfinance treats end as exclusive
            data = yf.download(
                tickers=list(tickers),
                start=start_date.isoformat(),
                end=(end_date + timedelta(days=1)).isoformat(),
                interval="1d",
                group_by="ticker",
                auto_adjust=False,
                threads=True,
                progress=False,
            )
        except Exception as e:
            logger.error(f"yfinance download failed: {e}")
            return pd.DataFrame(columns=BAR_COLUMNS)

        if data is None or data.empty:
            return pd.DataFrame(columns=BAR_COLUMNS)

        frames = []
        for ticker, symbol in tickers.items():
            try:
                df = data[ticker].copy() if isinstance(data.columns, pd.MultiIndex) else data.copy()
            except KeyError:
                logger.warning(f"No data for {symbol} in yfinance response")
                continue
            df["symbol"] = symbol
            frames.append(df)

        if not frames:
            return pd.DataFrame(columns=BAR_COLUMNS)

        result = pd.concat(frames)
        result.index.name = "date"
        result = result.reset_index()

        cols_map = {
            "Date": "date",
            "Open": "open",
            "High": "high",
            "Low": "low",
            "Close": "close",
            "Volume": "volume",
        }
        result.rename(columns=cols_map, inplace=True)
        result["date"] = pd.to_datetime(result["date"]).dt.date

        # Missing sessions come back as all-NaN rows
        return result[BAR_COLUMNS].dropna(subset=["open", "high", "low", "close"])

    def _ticker(self, symbol: str) -> str:
        return f"{symbol}{self.suffix}" if self.suffix and "." not in symbol else symbol
