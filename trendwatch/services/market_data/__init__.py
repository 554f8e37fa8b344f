from typing import Dict, Type
from trendwatch.services.market_data.base import MarketDataProvider
from trendwatch.services.market_data.yfinance_provider import YFinanceProvider

PROVIDERS: Dict[str, Type[MarketDataProvider]] = {
    "yfinance": YFinanceProvider,
}


def get_market_data_provider(name: str = "yfinance") -> MarketDataProvider:
    """Factory to get provider instance."""
    provider_class = PROVIDERS.get(name)
    if not provider_class:
        raise ValueError(f"Unknown provider: {name}")
    return provider_class()
