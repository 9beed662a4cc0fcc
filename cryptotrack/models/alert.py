"""
Price alert and user profile models
"""
from uuid import uuid4

from sqlalchemy import Column, String, Float, DateTime, Boolean
from sqlalchemy.sql import func
from cryptotrack.core.database import Base


def _new_alert_id() -> str:
    return str(uuid4())


class PriceAlert(Base):
    """User-defined standing alert on an asset's market state"""
    __tablename__ = "price_alerts"

    id = Column(String(36), primary_key=True, default=_new_alert_id)
    user_id = Column(String(36), nullable=False, index=True)
    cryptocurrency = Column(String(64), nullable=False, index=True)
    alert_type = Column(String(20), nullable=False, default="price")  # price, percentage, volume
    condition = Column(String(10), nullable=False, default="above")  # above, below
    target_price = Column(Float, nullable=True)
    percentage_change = Column(Float, nullable=True)
    volume_threshold = Column(Float, nullable=True)
    creation_price = Column(Float, nullable=True)
    email_notification = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    triggered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserProfile(Base):
    """Contact details for an alert owner"""
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
