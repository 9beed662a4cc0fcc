"""
Pydantic schemas for API request/response contracts.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from cryptotrack.models.rules import AlertRule, MarketSnapshot


class ErrorDetail(BaseModel):
    error_code: str
    message: str


class AlertCreateRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=36)
    asset: str = Field(min_length=1, max_length=64)
    alert_type: str = Field(default="price")
    condition: str = Field(default="above")
    target_price: Optional[float] = None
    percentage_change: Optional[float] = None
    volume_threshold: Optional[float] = None
    email_notification: bool = True

    @field_validator("asset", "alert_type", "condition")
    @classmethod
    def normalize_text(cls, value: str) -> str:
        return str(value or "").strip().lower()


class AlertOut(BaseModel):
    id: str
    user_id: str
    asset: str
    alert_type: str
    condition: Optional[str] = None
    threshold: Optional[float] = None
    creation_price: Optional[float] = None
    email_notification: bool = True
    is_active: bool = True
    triggered_at: Optional[datetime] = None

    @classmethod
    def from_rule(cls, rule: AlertRule) -> "AlertOut":
        return cls(
            id=rule.id,
            user_id=rule.user_id,
            asset=rule.asset,
            alert_type=rule.kind_label,
            condition=rule.direction.value if rule.direction else None,
            threshold=rule.threshold,
            creation_price=rule.creation_snapshot_price,
            email_notification=rule.notify_by_email,
            is_active=rule.active,
            triggered_at=rule.triggered_at,
        )


class AlertListResponse(BaseModel):
    alerts: List[AlertOut] = Field(default_factory=list)
    count: int = 0
    timestamp: str


class MarketSnapshotOut(BaseModel):
    asset: str
    current_price: float
    price_change_percentage_24h: float = 0.0
    total_volume: float = 0.0
    timestamp: str

    @classmethod
    def from_snapshot(cls, asset: str, snapshot: MarketSnapshot, timestamp: str) -> "MarketSnapshotOut":
        return cls(
            asset=asset,
            current_price=snapshot.current_price,
            price_change_percentage_24h=snapshot.percent_change_24h,
            total_volume=snapshot.total_volume_24h,
            timestamp=timestamp,
        )


class SweepErrorOut(BaseModel):
    id: str
    message: str


class SweepResponse(BaseModel):
    status: str = "success"
    message: str = ""
    processed: List[str] = Field(default_factory=list)
    errors: List[SweepErrorOut] = Field(default_factory=list)
    notificationErrors: List[SweepErrorOut] = Field(default_factory=list)
    totalChecked: int = 0
