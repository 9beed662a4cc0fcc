"""
CoinMarketCap quotes provider (symbol-keyed, requires an API key)
"""
from typing import Optional

from cryptotrack.core.config import settings
from cryptotrack.models.rules import MarketSnapshot
from cryptotrack.providers.base_provider import BaseMarketDataProvider, ProviderResponseError


class CoinMarketCapProvider(BaseMarketDataProvider):
    """Provider backed by /v2/cryptocurrency/quotes/latest"""

    name = "coinmarketcap"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ):
        super().__init__(timeout_seconds)
        self.api_key = api_key if api_key is not None else settings.COINMARKETCAP_API_KEY
        self.base_url = (base_url or settings.COINMARKETCAP_BASE_URL).rstrip("/")
        self.convert = settings.MARKET_DATA_QUOTE_CURRENCY.upper()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, asset: str) -> MarketSnapshot:
        if not self.api_key:
            raise ProviderResponseError("COINMARKETCAP_API_KEY is not configured")

        symbol = settings.get_asset_symbol(asset)
        payload = await self._request_json(
            "GET",
            f"{self.base_url}/v2/cryptocurrency/quotes/latest",
            params={"symbol": symbol, "convert": self.convert},
            headers={"X-CMC_PRO_API_KEY": self.api_key, "Accept": "application/json"},
        )
        return self.parse(symbol, payload)

    def parse(self, symbol: str, payload) -> MarketSnapshot:
        data = payload.get("data") if isinstance(payload, dict) else None
        entry = data.get(symbol) if isinstance(data, dict) else None
        # v2 returns a list of matches per symbol, v1 a single object
        if isinstance(entry, list):
            entry = entry[0] if entry else None
        if not isinstance(entry, dict):
            raise ProviderResponseError(f"no data for {symbol} in {self.name} response")

        quote = (entry.get("quote") or {}).get(self.convert)
        if not isinstance(quote, dict):
            raise ProviderResponseError(f"no {self.convert} quote for {symbol}")

        return MarketSnapshot(
            current_price=self._required_number(quote.get("price"), "price"),
            percent_change_24h=self._optional_number(quote.get("percent_change_24h")),
            total_volume_24h=self._optional_number(quote.get("volume_24h")),
        )
