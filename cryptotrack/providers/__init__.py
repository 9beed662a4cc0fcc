from cryptotrack.providers.base_provider import BaseMarketDataProvider, ProviderResponseError
from cryptotrack.providers.coingecko_provider import CoinGeckoProvider
from cryptotrack.providers.coinmarketcap_provider import CoinMarketCapProvider
from cryptotrack.providers.livecoinwatch_provider import LiveCoinWatchProvider

__all__ = [
    "BaseMarketDataProvider",
    "ProviderResponseError",
    "CoinGeckoProvider",
    "CoinMarketCapProvider",
    "LiveCoinWatchProvider",
]
