"""
CoinGecko "simple price" provider (Pro API with key, or public API without)
"""
from typing import Dict, Optional

from cryptotrack.core.config import settings
from cryptotrack.models.rules import MarketSnapshot
from cryptotrack.providers.base_provider import BaseMarketDataProvider, ProviderResponseError


class CoinGeckoProvider(BaseMarketDataProvider):
    """Slug-keyed provider backed by /simple/price"""

    PRO_KEY_HEADER = "X-Cg-Pro-Api-Key"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        name: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ):
        super().__init__(timeout_seconds)
        self.api_key = api_key or ""
        default_url = settings.COINGECKO_PRO_BASE_URL if self.api_key else settings.COINGECKO_PUBLIC_BASE_URL
        self.base_url = (base_url or default_url).rstrip("/")
        self.name = name or ("coingecko-pro" if self.api_key else "coingecko")
        self.quote = settings.MARKET_DATA_QUOTE_CURRENCY

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers[self.PRO_KEY_HEADER] = self.api_key
        return headers

    async def fetch(self, asset: str) -> MarketSnapshot:
        coin_id = settings.normalize_asset(asset)
        params = {
            "ids": coin_id,
            "vs_currencies": self.quote,
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
        }
        payload = await self._request_json(
            "GET", f"{self.base_url}/simple/price", params=params, headers=self._headers()
        )
        return self.parse(coin_id, payload)

    def parse(self, coin_id: str, payload) -> MarketSnapshot:
        entry = payload.get(coin_id) if isinstance(payload, dict) else None
        if not isinstance(entry, dict):
            raise ProviderResponseError(f"no data for {coin_id} in {self.name} response")

        return MarketSnapshot(
            current_price=self._required_number(entry.get(self.quote), self.quote),
            percent_change_24h=self._optional_number(entry.get(f"{self.quote}_24h_change")),
            total_volume_24h=self._optional_number(entry.get(f"{self.quote}_24h_vol")),
        )
