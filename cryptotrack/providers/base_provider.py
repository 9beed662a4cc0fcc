"""
Base market data provider that all upstream providers inherit from
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from cryptotrack.core.config import settings
from cryptotrack.models.rules import MarketSnapshot


class ProviderResponseError(ValueError):
    """An upstream payload did not contain what the provider needs."""


class BaseMarketDataProvider(ABC):
    """Abstract base class for market data providers"""

    name = "base"

    def __init__(self, timeout_seconds: Optional[int] = None):
        seconds = timeout_seconds if timeout_seconds is not None else settings.MARKET_DATA_TIMEOUT_SECONDS
        self.timeout = aiohttp.ClientTimeout(total=max(int(seconds), 1))
        self._session: Optional[aiohttp.ClientSession] = None

    def is_configured(self) -> bool:
        """Whether the provider has the credentials it needs to be tried."""
        return True

    @abstractmethod
    async def fetch(self, asset: str) -> MarketSnapshot:
        """
        Fetch a normalized snapshot for the given asset

        Args:
            asset: Canonical asset slug

        Returns:
            MarketSnapshot

        Raises:
            Any error on HTTP failure, timeout or unusable payload
        """
        pass

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        session = await self._get_session()
        async with session.request(
            method,
            url,
            params=params,
            headers=headers,
            json=json_body,
            timeout=self.timeout,
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    @staticmethod
    def _required_number(value: Any, field: str) -> float:
        if value is None:
            raise ProviderResponseError(f"missing field '{field}'")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ProviderResponseError(f"non-numeric field '{field}': {value!r}")

    @staticmethod
    def _optional_number(value: Any) -> float:
        """24h change and volume are optional upstream; absent means 0."""
        if value is None:
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
