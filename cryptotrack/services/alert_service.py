"""
Service for creating, listing and deleting user alerts
"""
import logging
import math
from typing import Any, Dict, List, Optional

from cryptotrack.core.config import settings
from cryptotrack.core.exceptions import AlertValidationError, DataUnavailable
from cryptotrack.models.rules import AlertKind, AlertRule, Direction
from cryptotrack.services.alert_repository import AlertRepository
from cryptotrack.services.market_data_gateway import MarketDataGateway

logger = logging.getLogger(__name__)

VALID_KINDS = {kind.value for kind in AlertKind}
VALID_DIRECTIONS = {direction.value for direction in Direction}


def _parse_number(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class AlertService:
    """Persisted alert management"""

    def __init__(self, repository: AlertRepository, gateway: Optional[MarketDataGateway] = None):
        self.repository = repository
        self.gateway = gateway

    def validate_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate an alert creation payload

        Args:
            payload: Raw fields (user_id, asset, alert_type, condition, threshold fields)

        Returns:
            Normalized fields ready for persistence

        Raises:
            AlertValidationError: payload is inconsistent with its kind
        """
        user_id = str(payload.get("user_id") or "").strip()
        if not user_id:
            raise AlertValidationError("user_id is required")

        asset = settings.normalize_asset(payload.get("asset") or payload.get("cryptocurrency") or "")
        if not settings.is_supported_asset(asset):
            raise AlertValidationError(f"Unsupported asset: {asset or '<empty>'}")

        alert_type = str(payload.get("alert_type") or AlertKind.PRICE.value).strip().lower()
        if alert_type not in VALID_KINDS:
            raise AlertValidationError(f"alert_type must be one of: {', '.join(sorted(VALID_KINDS))}")

        condition = str(payload.get("condition") or Direction.ABOVE.value).strip().lower()
        if condition not in VALID_DIRECTIONS:
            raise AlertValidationError(f"condition must be one of: {', '.join(sorted(VALID_DIRECTIONS))}")

        fields = {
            "user_id": user_id,
            "asset": asset,
            "alert_type": alert_type,
            "condition": condition,
            "target_price": None,
            "percentage_change": None,
            "volume_threshold": None,
            "email_notification": bool(payload.get("email_notification", True)),
        }

        if alert_type == AlertKind.PRICE.value:
            target_price = _parse_number(payload.get("target_price"))
            if target_price is None or target_price <= 0:
                raise AlertValidationError("Please enter a valid target price greater than 0")
            fields["target_price"] = target_price
        elif alert_type == AlertKind.PERCENT_CHANGE.value:
            percentage = _parse_number(payload.get("percentage_change"))
            if percentage is None:
                raise AlertValidationError("Please enter a valid percentage")
            fields["percentage_change"] = percentage
        else:
            volume = _parse_number(payload.get("volume_threshold"))
            if volume is None or volume <= 0:
                raise AlertValidationError("Please enter a valid volume threshold greater than 0")
            fields["volume_threshold"] = volume
            # volume alerts are "reached or exceeded" only
            fields["condition"] = Direction.ABOVE.value

        return fields

    async def create_alert(self, payload: Dict[str, Any]) -> AlertRule:
        fields = self.validate_payload(payload)
        creation_price = await self._current_price(fields["asset"])
        return self.repository.create_alert(creation_price=creation_price, **fields)

    def list_alerts(self, user_id: str) -> List[AlertRule]:
        return self.repository.list_for_user(user_id)

    def delete_alert(self, alert_id: str) -> bool:
        deleted = self.repository.delete_alert(alert_id)
        if deleted:
            logger.info("Deleted alert %s", alert_id)
        return deleted

    async def _current_price(self, asset: str) -> Optional[float]:
        """Best-effort price at creation time; creation never fails on market data."""
        if self.gateway is None:
            return None
        try:
            snapshot = await self.gateway.fetch(asset)
        except DataUnavailable as error:
            logger.warning("Could not record creation price for %s: %s", asset, error)
            return None
        return snapshot.current_price
