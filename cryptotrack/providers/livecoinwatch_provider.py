"""
LiveCoinWatch single-coin provider (symbol-keyed, requires an API key)
"""
from typing import Optional

from cryptotrack.core.config import settings
from cryptotrack.models.rules import MarketSnapshot
from cryptotrack.providers.base_provider import BaseMarketDataProvider, ProviderResponseError


class LiveCoinWatchProvider(BaseMarketDataProvider):
    """Provider backed by POST /coins/single"""

    name = "livecoinwatch"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ):
        super().__init__(timeout_seconds)
        self.api_key = api_key if api_key is not None else settings.LIVECOINWATCH_API_KEY
        self.base_url = (base_url or settings.LIVECOINWATCH_BASE_URL).rstrip("/")
        self.currency = settings.MARKET_DATA_QUOTE_CURRENCY.upper()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, asset: str) -> MarketSnapshot:
        if not self.api_key:
            raise ProviderResponseError("LIVECOINWATCH_API_KEY is not configured")

        code = settings.get_asset_symbol(asset)
        payload = await self._request_json(
            "POST",
            f"{self.base_url}/coins/single",
            headers={"content-type": "application/json", "x-api-key": self.api_key},
            json_body={"currency": self.currency, "code": code, "meta": False},
        )
        return self.parse(code, payload)

    def parse(self, code: str, payload) -> MarketSnapshot:
        if not isinstance(payload, dict):
            raise ProviderResponseError(f"no data for {code} in {self.name} response")

        # delta.day is a rate multiplier (1.05 means +5%)
        delta = payload.get("delta") or {}
        day_ratio = delta.get("day") if isinstance(delta, dict) else None
        change = (self._optional_number(day_ratio) - 1.0) * 100.0 if day_ratio is not None else 0.0

        return MarketSnapshot(
            current_price=self._required_number(payload.get("rate"), "rate"),
            percent_change_24h=change,
            total_volume_24h=self._optional_number(payload.get("volume")),
        )
