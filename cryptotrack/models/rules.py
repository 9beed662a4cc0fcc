"""
Domain types for alert rules and market snapshots
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class AlertKind(Enum):
    """Which snapshot field an alert compares; values match the stored alert_type"""
    PRICE = "price"
    PERCENT_CHANGE = "percentage"
    VOLUME = "volume"


class Direction(Enum):
    """Comparison direction; values match the stored condition"""
    ABOVE = "above"
    BELOW = "below"


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time read of one asset's market state"""
    current_price: float
    percent_change_24h: float = 0.0
    total_volume_24h: float = 0.0


@dataclass(frozen=True)
class PriceCondition:
    threshold: Optional[float]
    direction: Direction = Direction.ABOVE
    kind = AlertKind.PRICE


@dataclass(frozen=True)
class PercentChangeCondition:
    threshold: Optional[float]
    direction: Direction = Direction.ABOVE
    kind = AlertKind.PERCENT_CHANGE


@dataclass(frozen=True)
class VolumeCondition:
    """Reached-or-exceeded volume; direction is not distinguished."""
    threshold: Optional[float]
    kind = AlertKind.VOLUME


@dataclass(frozen=True)
class UnknownCondition:
    """A stored alert_type this service does not recognise. Never triggers."""
    kind: str


AlertCondition = Union[PriceCondition, PercentChangeCondition, VolumeCondition, UnknownCondition]


@dataclass
class AlertRule:
    """An alert record as seen by the sweep"""
    id: str
    user_id: str
    asset: str
    condition: AlertCondition
    notify_by_email: bool = True
    creation_snapshot_price: Optional[float] = None
    active: bool = True
    triggered_at: Optional[datetime] = None

    @property
    def kind_label(self) -> str:
        kind = self.condition.kind
        return kind.value if isinstance(kind, AlertKind) else str(kind)

    @property
    def threshold(self) -> Optional[float]:
        return getattr(self.condition, "threshold", None)

    @property
    def direction(self) -> Optional[Direction]:
        return getattr(self.condition, "direction", None)


def parse_direction(value: Optional[str]) -> Direction:
    """Stored conditions other than 'below' compare upward."""
    if str(value or "").strip().lower() == Direction.BELOW.value:
        return Direction.BELOW
    return Direction.ABOVE


def _as_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_condition(
    alert_type: Optional[str],
    condition: Optional[str] = None,
    target_price=None,
    percentage_change=None,
    volume_threshold=None,
) -> AlertCondition:
    """Map stored alert columns onto the matching condition variant."""
    kind = str(alert_type or "").strip().lower()
    direction = parse_direction(condition)
    if kind == AlertKind.PRICE.value:
        return PriceCondition(threshold=_as_float(target_price), direction=direction)
    if kind == AlertKind.PERCENT_CHANGE.value:
        return PercentChangeCondition(threshold=_as_float(percentage_change), direction=direction)
    if kind == AlertKind.VOLUME.value:
        return VolumeCondition(threshold=_as_float(volume_threshold))
    return UnknownCondition(kind=kind)
