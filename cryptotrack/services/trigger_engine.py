"""
Trigger predicates: decide whether an alert's condition holds for a snapshot.

Pure functions, no I/O. Comparisons are inclusive and operate on floats.
A condition without a threshold can never be satisfied.
"""
import logging
from typing import Optional

from cryptotrack.models.rules import (
    AlertRule,
    Direction,
    MarketSnapshot,
    PercentChangeCondition,
    PriceCondition,
    UnknownCondition,
    VolumeCondition,
)

logger = logging.getLogger(__name__)


def _compare(observed: float, threshold: Optional[float], direction: Direction) -> bool:
    if threshold is None:
        return False
    if direction == Direction.BELOW:
        return float(observed) <= float(threshold)
    return float(observed) >= float(threshold)


def is_price_triggered(condition: PriceCondition, snapshot: MarketSnapshot) -> bool:
    return _compare(snapshot.current_price, condition.threshold, condition.direction)


def is_percent_change_triggered(condition: PercentChangeCondition, snapshot: MarketSnapshot) -> bool:
    return _compare(snapshot.percent_change_24h, condition.threshold, condition.direction)


def is_volume_triggered(condition: VolumeCondition, snapshot: MarketSnapshot) -> bool:
    if condition.threshold is None:
        return False
    return float(snapshot.total_volume_24h) >= float(condition.threshold)


def is_triggered(alert: AlertRule, snapshot: MarketSnapshot) -> bool:
    """
    Check whether an alert's condition holds for a market snapshot

    Args:
        alert: Alert rule to evaluate
        snapshot: Fresh market snapshot for the alert's asset

    Returns:
        True if the condition is satisfied
    """
    condition = alert.condition
    if isinstance(condition, PriceCondition):
        triggered = is_price_triggered(condition, snapshot)
    elif isinstance(condition, PercentChangeCondition):
        triggered = is_percent_change_triggered(condition, snapshot)
    elif isinstance(condition, VolumeCondition):
        triggered = is_volume_triggered(condition, snapshot)
    elif isinstance(condition, UnknownCondition):
        logger.debug("Alert %s has unrecognized kind %r", alert.id, condition.kind)
        triggered = False
    else:
        triggered = False

    logger.debug(
        "Alert %s (%s %s %s %s): price=%.8f change=%.4f volume=%.2f -> %s",
        alert.id,
        alert.asset,
        alert.kind_label,
        alert.direction.value if alert.direction else "-",
        alert.threshold,
        snapshot.current_price,
        snapshot.percent_change_24h,
        snapshot.total_volume_24h,
        triggered,
    )
    return triggered


def observed_value(alert: AlertRule, snapshot: MarketSnapshot) -> Optional[float]:
    """The snapshot field an alert compares against, or None for unknown kinds."""
    condition = alert.condition
    if isinstance(condition, PriceCondition):
        return snapshot.current_price
    if isinstance(condition, PercentChangeCondition):
        return snapshot.percent_change_24h
    if isinstance(condition, VolumeCondition):
        return snapshot.total_volume_24h
    return None
