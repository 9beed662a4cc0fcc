"""
Market data gateway with ordered multi-provider fallback
"""
import asyncio
import logging
from typing import Dict, List

import aiohttp

from cryptotrack.core.config import settings
from cryptotrack.core.exceptions import DataUnavailable
from cryptotrack.models.rules import MarketSnapshot
from cryptotrack.providers import (
    BaseMarketDataProvider,
    CoinGeckoProvider,
    CoinMarketCapProvider,
    LiveCoinWatchProvider,
)

logger = logging.getLogger(__name__)


def _describe_error(error: Exception) -> str:
    if isinstance(error, aiohttp.ClientResponseError):
        return f"HTTP {error.status}"
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    return str(error) or error.__class__.__name__


class MarketDataGateway:
    """Fetches a normalized snapshot from the first provider that answers"""

    def __init__(self, providers: List[BaseMarketDataProvider]):
        self.providers = list(providers)
        self._metrics: Dict[str, int] = {
            "requests": 0,
            "fallbacks": 0,
            "provider_errors": 0,
            "unavailable": 0,
        }
        logger.info(
            "Market data gateway initialized with providers: %s",
            ", ".join(provider.name for provider in self.providers) or "<none>",
        )

    @classmethod
    def from_settings(cls) -> "MarketDataGateway":
        """Build the provider chain in priority order from configured credentials."""
        providers: List[BaseMarketDataProvider] = []
        if settings.COINGECKO_API_KEY:
            providers.append(CoinGeckoProvider(api_key=settings.COINGECKO_API_KEY))
        providers.append(CoinGeckoProvider())

        for provider in (CoinMarketCapProvider(), LiveCoinWatchProvider()):
            if provider.is_configured():
                providers.append(provider)
            else:
                logger.info("Skipping %s provider: no API key configured", provider.name)
        return cls(providers)

    async def fetch(self, asset: str) -> MarketSnapshot:
        """
        Fetch a market snapshot for an asset

        Args:
            asset: Asset slug (aliases are normalized)

        Returns:
            MarketSnapshot from the highest-priority provider that succeeded

        Raises:
            DataUnavailable: every provider failed
        """
        slug = settings.normalize_asset(asset)
        self._metrics["requests"] += 1
        failures: List[str] = []

        for index, provider in enumerate(self.providers):
            if index > 0:
                self._metrics["fallbacks"] += 1
                logger.info("Falling back to %s for %s", provider.name, slug)
            try:
                snapshot = await provider.fetch(slug)
            except Exception as error:
                self._metrics["provider_errors"] += 1
                reason = _describe_error(error)
                failures.append(f"{provider.name}: {reason}")
                logger.warning("Provider %s failed for %s: %s", provider.name, slug, reason)
                continue

            logger.debug("Fetched %s from %s: %s", slug, provider.name, snapshot)
            return snapshot

        self._metrics["unavailable"] += 1
        logger.error("All market data providers failed for %s", slug)
        raise DataUnavailable(slug, failures)

    async def close(self):
        for provider in self.providers:
            await provider.close()

    def get_metrics(self) -> Dict[str, int]:
        return dict(self._metrics)

    def provider_names(self) -> List[str]:
        return [provider.name for provider in self.providers]
