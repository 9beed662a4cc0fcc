"""
Notification service for sending triggered-alert e-mails
"""
import asyncio
import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from cryptotrack.core.config import settings
from cryptotrack.core.exceptions import NotificationFailed
from cryptotrack.models.rules import (
    AlertRule,
    MarketSnapshot,
    PercentChangeCondition,
    PriceCondition,
    VolumeCondition,
)

logger = logging.getLogger(__name__)


def _format_amount(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    value = float(value)
    if abs(value) >= 1:
        return f"{value:,.2f}"
    return f"{value:.8f}".rstrip("0").rstrip(".") or "0"


def render_alert_message(alert: AlertRule, snapshot: MarketSnapshot) -> Dict[str, str]:
    """
    Build the subject and HTML body for a triggered alert

    Args:
        alert: Triggered alert
        snapshot: Snapshot that satisfied the alert

    Returns:
        Dict with "subject" and "html" keys
    """
    asset = alert.asset.upper()
    condition = alert.condition
    direction = alert.direction.value if alert.direction else "at least"

    if isinstance(condition, PriceCondition):
        detail = (
            f"Current price: ${_format_amount(snapshot.current_price)}<br>"
            f"Target price ({direction}): ${_format_amount(condition.threshold)}"
        )
    elif isinstance(condition, PercentChangeCondition):
        detail = (
            f"24h Price Change: {snapshot.percent_change_24h:.2f}%<br>"
            f"Target Change ({direction}): {condition.threshold}%"
        )
    elif isinstance(condition, VolumeCondition):
        detail = (
            f"24h Volume: ${snapshot.total_volume_24h:,.0f}<br>"
            f"Volume Threshold: ${_format_amount(condition.threshold)}"
        )
    else:
        detail = f"Current price: ${_format_amount(snapshot.current_price)}"

    if alert.creation_snapshot_price is not None:
        detail += f"<br>Price when created: ${_format_amount(alert.creation_snapshot_price)}"

    timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
    body = f"""
<h2>Crypto Alert Triggered</h2>
<p>Your {html.escape(alert.kind_label)} alert for {html.escape(asset)} has been triggered.</p>
<p>{detail}</p>
<p><em>Checked at {timestamp}</em></p>
"""
    return {
        "subject": f"{asset} Alert Triggered",
        "html": body,
    }


class NotificationService:
    """Service for sending alert notifications through an HTTP mail transport"""

    RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout_seconds: Optional[int] = None,
    ):
        self.email_enabled = settings.EMAIL_ENABLED
        self.api_url = api_url or settings.EMAIL_API_URL
        self.api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.max_attempts = max(1, int(max_attempts if max_attempts is not None else settings.EMAIL_MAX_ATTEMPTS))
        self.backoff_seconds = max(
            0.0, float(backoff_seconds if backoff_seconds is not None else settings.EMAIL_BACKOFF_SECONDS)
        )
        seconds = timeout_seconds if timeout_seconds is not None else settings.EMAIL_TIMEOUT_SECONDS
        self.timeout = aiohttp.ClientTimeout(total=max(int(seconds), 1))
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info("Notification service initialized")

    def is_email_enabled(self) -> bool:
        """Check if email notifications are enabled and configured"""
        return bool(self.email_enabled and self.api_key and self.api_url)

    async def send(self, address: str, alert: AlertRule, snapshot: MarketSnapshot) -> Dict[str, Any]:
        """
        Send a triggered-alert e-mail

        Args:
            address: Recipient e-mail address
            alert: Triggered alert
            snapshot: Snapshot that satisfied the alert

        Returns:
            Transport response body

        Raises:
            NotificationFailed: transport not configured or still failing after retries
        """
        if not self.is_email_enabled():
            raise NotificationFailed("Email transport is not configured")
        if not address:
            raise NotificationFailed("Recipient email address is required")

        message = render_alert_message(alert, snapshot)
        payload = {
            "from": self.sender,
            "to": [address],
            "subject": message["subject"],
            "html": message["html"],
        }

        last_error = "unknown error"
        attempts = 0
        for attempt in range(self.max_attempts):
            attempts += 1
            try:
                body = await self._post_email(payload)
                logger.info("Alert email sent for %s to %s", alert.id, address)
                return body
            except aiohttp.ClientResponseError as error:
                last_error = f"HTTP {error.status}"
                if error.status not in self.RETRYABLE_STATUS_CODES:
                    break
            except (asyncio.TimeoutError, aiohttp.ClientError) as error:
                last_error = str(error) or error.__class__.__name__

            if attempt < self.max_attempts - 1:
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Email attempt %d/%d for alert %s failed (%s); retrying in %.1fs",
                    attempt + 1, self.max_attempts, alert.id, last_error, delay,
                )
                await asyncio.sleep(delay)

        logger.error("Error sending alert email for %s: %s", alert.id, last_error)
        raise NotificationFailed(
            f"Failed to send alert email for {alert.id}: {last_error}",
            attempts=attempts,
        )

    async def _post_email(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        async with session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout) as response:
            response.raise_for_status()
            if response.content_length == 0:
                return {}
            return await response.json(content_type=None)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
