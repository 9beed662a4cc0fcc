"""
Alert repository: the only persistent state owned by the alert sweep
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from cryptotrack.core.exceptions import StoreUnavailable
from cryptotrack.models.alert import PriceAlert, UserProfile
from cryptotrack.models.rules import AlertRule, build_condition

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_alert_rule(row: PriceAlert) -> AlertRule:
    """Map a stored alert row onto the domain rule."""
    return AlertRule(
        id=str(row.id),
        user_id=str(row.user_id),
        asset=str(row.cryptocurrency or "").strip().lower(),
        condition=build_condition(
            row.alert_type,
            row.condition,
            target_price=row.target_price,
            percentage_change=row.percentage_change,
            volume_threshold=row.volume_threshold,
        ),
        notify_by_email=bool(row.email_notification),
        creation_snapshot_price=row.creation_price,
        active=bool(row.is_active),
        triggered_at=row.triggered_at,
    )


class AlertRepository:
    """Reads eligible alerts and records their one-shot trigger transition"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def fetch_active(self) -> List[AlertRule]:
        """Return every alert that is active and has never triggered."""
        db = self.session_factory()
        try:
            rows = (
                db.query(PriceAlert)
                .filter(PriceAlert.is_active.is_(True), PriceAlert.triggered_at.is_(None))
                .all()
            )
            return [to_alert_rule(row) for row in rows]
        except SQLAlchemyError as error:
            logger.error("Error fetching active alerts: %s", error)
            raise StoreUnavailable(f"Could not load active alerts: {error}") from error
        finally:
            db.close()

    def mark_triggered(self, alert_id: str, triggered_at: Optional[datetime] = None) -> None:
        """
        Move an alert to its terminal state in a single UPDATE.

        An already-triggered alert keeps its original triggered_at, so repeated
        calls leave the record unchanged.
        """
        moment = triggered_at or utc_now()
        db = self.session_factory()
        try:
            updated = (
                db.query(PriceAlert)
                .filter(PriceAlert.id == alert_id)
                .update(
                    {
                        PriceAlert.is_active: False,
                        PriceAlert.triggered_at: func.coalesce(PriceAlert.triggered_at, moment),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
        except SQLAlchemyError as error:
            db.rollback()
            logger.error("Error marking alert %s as triggered: %s", alert_id, error)
            raise StoreUnavailable(f"Could not update alert {alert_id}: {error}") from error
        finally:
            db.close()

        if not updated:
            logger.warning("Alert %s not found while marking it triggered", alert_id)

    def claim(self, alert_id: str, triggered_at: Optional[datetime] = None) -> bool:
        """
        Conditionally trigger an alert that is still active and has not triggered yet.

        Returns True only for the caller whose UPDATE changed the row.
        """
        moment = triggered_at or utc_now()
        db = self.session_factory()
        try:
            updated = (
                db.query(PriceAlert)
                .filter(
                    PriceAlert.id == alert_id,
                    PriceAlert.is_active.is_(True),
                    PriceAlert.triggered_at.is_(None),
                )
                .update(
                    {PriceAlert.is_active: False, PriceAlert.triggered_at: moment},
                    synchronize_session=False,
                )
            )
            db.commit()
            return updated == 1
        except SQLAlchemyError as error:
            db.rollback()
            logger.error("Error claiming alert %s: %s", alert_id, error)
            raise StoreUnavailable(f"Could not claim alert {alert_id}: {error}") from error
        finally:
            db.close()

    def resolve_notification_address(self, user_id: str) -> Optional[str]:
        """Contact address on file for a user, or None."""
        db = self.session_factory()
        try:
            profile = db.query(UserProfile).filter(UserProfile.id == user_id).first()
        except SQLAlchemyError as error:
            logger.error("Error fetching profile for user %s: %s", user_id, error)
            raise StoreUnavailable(f"Could not load user {user_id}: {error}") from error
        finally:
            db.close()

        if profile is None:
            return None
        email = str(profile.email or "").strip()
        return email or None

    def create_alert(
        self,
        user_id: str,
        asset: str,
        alert_type: str,
        condition: str = "above",
        target_price: Optional[float] = None,
        percentage_change: Optional[float] = None,
        volume_threshold: Optional[float] = None,
        creation_price: Optional[float] = None,
        email_notification: bool = True,
    ) -> AlertRule:
        """Persist a new active alert."""
        db = self.session_factory()
        try:
            row = PriceAlert(
                user_id=user_id,
                cryptocurrency=asset,
                alert_type=alert_type,
                condition=condition,
                target_price=target_price,
                percentage_change=percentage_change,
                volume_threshold=volume_threshold,
                creation_price=creation_price,
                email_notification=email_notification,
                is_active=True,
                triggered_at=None,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info("Created %s alert %s on %s for user %s", alert_type, row.id, asset, user_id)
            return to_alert_rule(row)
        except SQLAlchemyError as error:
            db.rollback()
            logger.error("Error creating alert for user %s: %s", user_id, error)
            raise StoreUnavailable(f"Could not create alert: {error}") from error
        finally:
            db.close()

    def get_alert(self, alert_id: str) -> Optional[AlertRule]:
        db = self.session_factory()
        try:
            row = db.query(PriceAlert).filter(PriceAlert.id == alert_id).first()
            return to_alert_rule(row) if row else None
        except SQLAlchemyError as error:
            raise StoreUnavailable(f"Could not load alert {alert_id}: {error}") from error
        finally:
            db.close()

    def list_for_user(self, user_id: str) -> List[AlertRule]:
        """All of a user's alerts, newest first."""
        db = self.session_factory()
        try:
            rows = (
                db.query(PriceAlert)
                .filter(PriceAlert.user_id == user_id)
                .order_by(PriceAlert.created_at.desc())
                .all()
            )
            return [to_alert_rule(row) for row in rows]
        except SQLAlchemyError as error:
            raise StoreUnavailable(f"Could not list alerts for user {user_id}: {error}") from error
        finally:
            db.close()

    def delete_alert(self, alert_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = db.query(PriceAlert).filter(PriceAlert.id == alert_id).delete(synchronize_session=False)
            db.commit()
            return deleted > 0
        except SQLAlchemyError as error:
            db.rollback()
            raise StoreUnavailable(f"Could not delete alert {alert_id}: {error}") from error
        finally:
            db.close()
