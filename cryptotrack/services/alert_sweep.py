"""
Alert sweep: evaluates every active alert once and fires the ones that hold
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cryptotrack.core.config import settings
from cryptotrack.models.rules import AlertRule
from cryptotrack.services.alert_repository import AlertRepository
from cryptotrack.services.market_data_gateway import MarketDataGateway
from cryptotrack.services.notification_service import NotificationService
from cryptotrack.services.trigger_engine import is_triggered, observed_value

logger = logging.getLogger(__name__)


@dataclass
class SweepError:
    """A per-alert failure recorded during a sweep"""
    id: str
    message: str
    stage: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "message": self.message}


@dataclass
class SweepSummary:
    """Outcome of one sweep"""
    processed_ids: List[str] = field(default_factory=list)
    errors: List[SweepError] = field(default_factory=list)
    notification_errors: List[SweepError] = field(default_factory=list)
    total_checked: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def to_response(self) -> Dict[str, Any]:
        message = "Alerts checked successfully" if self.total_checked else "No active alerts to check"
        return {
            "status": "success",
            "message": message,
            "processed": list(self.processed_ids),
            "errors": [error.to_dict() for error in self.errors],
            "notificationErrors": [error.to_dict() for error in self.notification_errors],
            "totalChecked": self.total_checked,
        }


class AlertSweepService:
    """Ties the repository, gateway, predicates and notifier into one sweep"""

    def __init__(
        self,
        repository: AlertRepository,
        gateway: MarketDataGateway,
        notifier: NotificationService,
        max_concurrency: Optional[int] = None,
        claim_before_notify: Optional[bool] = None,
    ):
        self.repository = repository
        self.gateway = gateway
        self.notifier = notifier
        concurrency = max_concurrency if max_concurrency is not None else settings.SWEEP_MAX_CONCURRENCY
        self.max_concurrency = max(1, int(concurrency))
        self.claim_before_notify = (
            settings.SWEEP_CLAIM_BEFORE_NOTIFY if claim_before_notify is None else bool(claim_before_notify)
        )
        self.last_summary: Optional[SweepSummary] = None
        logger.info(
            "Alert sweep service initialized (concurrency=%d, claim_before_notify=%s)",
            self.max_concurrency, self.claim_before_notify,
        )

    async def run_sweep(self) -> SweepSummary:
        """
        Run one pass over all active alerts

        Returns:
            SweepSummary with processed ids and per-alert errors

        Raises:
            StoreUnavailable: the active alert list could not be loaded
        """
        summary = SweepSummary()
        logger.info("Starting price alerts check...")

        alerts = self.repository.fetch_active()
        summary.total_checked = len(alerts)
        logger.info("Found %d active alerts to check", len(alerts))

        if alerts:
            email_enabled = self.notifier.is_email_enabled()
            if not email_enabled:
                logger.warning("Email notifications not configured; triggered alerts will not be emailed")

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _bounded(alert: AlertRule):
                async with semaphore:
                    await self._process_alert_isolated(alert, summary, email_enabled)

            await asyncio.gather(*(_bounded(alert) for alert in alerts))

        summary.finished_at = datetime.now(timezone.utc)
        self.last_summary = summary
        logger.info(
            "Price alerts check complete: checked=%d triggered=%d errors=%d notification_errors=%d",
            summary.total_checked,
            len(summary.processed_ids),
            len(summary.errors),
            len(summary.notification_errors),
        )
        return summary

    async def _process_alert_isolated(self, alert: AlertRule, summary: SweepSummary, email_enabled: bool = True):
        try:
            await self._process_alert(alert, summary, email_enabled)
        except Exception as error:
            self._record_error(summary, alert, "unexpected", error)

    async def _process_alert(self, alert: AlertRule, summary: SweepSummary, email_enabled: bool = True):
        logger.debug("Processing alert %s for %s", alert.id, alert.asset)

        try:
            snapshot = await self.gateway.fetch(alert.asset)
        except Exception as error:
            self._record_error(summary, alert, "fetch", error)
            return

        try:
            triggered = is_triggered(alert, snapshot)
        except Exception as error:
            self._record_error(summary, alert, "evaluate", error)
            return

        if not triggered:
            return

        logger.info(
            "Alert %s triggered: %s %s observed=%s threshold=%s",
            alert.id, alert.asset, alert.kind_label, observed_value(alert, snapshot), alert.threshold,
        )

        if self.claim_before_notify:
            try:
                claimed = self.repository.claim(alert.id)
            except Exception as error:
                self._record_error(summary, alert, "claim", error)
                return
            if not claimed:
                logger.info("Alert %s already triggered by another sweep; skipping", alert.id)
                return

        if alert.notify_by_email and email_enabled:
            await self._notify(alert, snapshot, summary)

        if not self.claim_before_notify:
            try:
                self.repository.mark_triggered(alert.id)
            except Exception as error:
                self._record_error(summary, alert, "mark_triggered", error)
                return

        summary.processed_ids.append(alert.id)

    async def _notify(self, alert: AlertRule, snapshot, summary: SweepSummary):
        try:
            address = self.repository.resolve_notification_address(alert.user_id)
            if not address:
                logger.info("No notification address for user %s; skipping email for alert %s",
                            alert.user_id, alert.id)
                return
            await self.notifier.send(address, alert, snapshot)
        except Exception as error:
            logger.error("Notification for alert %s (%s) failed: %s", alert.id, alert.asset, error)
            summary.notification_errors.append(SweepError(id=alert.id, message=str(error), stage="notify"))

    def get_status(self) -> Dict[str, Any]:
        """Timing and counts of the most recent sweep"""
        summary = self.last_summary
        if summary is None:
            return {"last_sweep": None}
        return {
            "last_sweep": {
                "started_at": summary.started_at.isoformat(),
                "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
                "total_checked": summary.total_checked,
                "triggered": len(summary.processed_ids),
                "errors": len(summary.errors),
                "notification_errors": len(summary.notification_errors),
            }
        }

    @staticmethod
    def _record_error(summary: SweepSummary, alert: AlertRule, stage: str, error: Exception):
        message = str(error) or error.__class__.__name__
        logger.error("Error processing alert %s (%s) at %s: %s", alert.id, alert.asset, stage, message)
        summary.errors.append(SweepError(id=alert.id, message=message, stage=stage))

    async def close(self):
        await self.gateway.close()
        await self.notifier.close()
