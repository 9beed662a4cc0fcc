"""
API routes for the alert service
"""
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from cryptotrack.api.schemas import (
    AlertCreateRequest,
    AlertListResponse,
    AlertOut,
    ErrorDetail,
    MarketSnapshotOut,
    SweepResponse,
)
from cryptotrack.core.config import settings
from cryptotrack.core.exceptions import AlertValidationError, DataUnavailable, StoreUnavailable
from cryptotrack.services.alert_service import AlertService
from cryptotrack.services.alert_sweep import AlertSweepService
from cryptotrack.services.market_data_gateway import MarketDataGateway

logger = logging.getLogger(__name__)

# Create router
api_router = APIRouter()

# Services (injected by the application lifespan)
alert_sweep_service: Optional[AlertSweepService] = None
alert_service: Optional[AlertService] = None
market_gateway: Optional[MarketDataGateway] = None

def set_services(sweep: AlertSweepService, alerts: AlertService, gateway: MarketDataGateway):
    """Set route services"""
    global alert_sweep_service, alert_service, market_gateway
    alert_sweep_service = sweep
    alert_service = alerts
    market_gateway = gateway


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, error_code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorDetail(error_code=error_code, message=message).model_dump(exclude_none=True),
    )

# Alert sweep
@api_router.post("/alerts/check")
async def check_price_alerts():
    """Run one sweep over all active alerts"""
    if not alert_sweep_service:
        raise HTTPException(status_code=503, detail="Alert sweep service not available")

    try:
        summary = await alert_sweep_service.run_sweep()
    except StoreUnavailable as e:
        logger.error(f"Error processing price alerts: {e}")
        return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})

    payload = SweepResponse(**summary.to_response())
    return JSONResponse(status_code=200, content=payload.model_dump())

@api_router.get("/alerts/check/status")
async def get_sweep_status():
    """Get the most recent alert sweep"""
    if not alert_sweep_service:
        raise HTTPException(status_code=503, detail="Alert sweep service not available")

    return {
        **alert_sweep_service.get_status(),
        "claim_before_notify": alert_sweep_service.claim_before_notify,
        "timestamp": _now_iso(),
    }

# Alert management
@api_router.post("/alerts", status_code=201)
async def create_alert(request: AlertCreateRequest):
    """Create a price, percentage or volume alert"""
    if not alert_service:
        raise HTTPException(status_code=503, detail="Alert service not available")

    try:
        rule = await alert_service.create_alert(request.model_dump())
    except AlertValidationError as e:
        raise _error(422, "alerts.invalid", str(e))
    except StoreUnavailable as e:
        logger.error(f"Error creating alert: {e}")
        raise _error(503, "alerts.store_unavailable", str(e))

    return AlertOut.from_rule(rule).model_dump(mode="json")

@api_router.get("/alerts")
async def list_alerts(user_id: str):
    """List a user's alerts"""
    if not alert_service:
        raise HTTPException(status_code=503, detail="Alert service not available")

    try:
        rules = alert_service.list_alerts(user_id)
    except StoreUnavailable as e:
        logger.error(f"Error listing alerts: {e}")
        raise _error(503, "alerts.store_unavailable", str(e))

    response = AlertListResponse(
        alerts=[AlertOut.from_rule(rule) for rule in rules],
        count=len(rules),
        timestamp=_now_iso(),
    )
    return response.model_dump(mode="json")

@api_router.delete("/alerts/{alert_id}")
async def delete_alert(alert_id: str):
    """Delete an alert"""
    if not alert_service:
        raise HTTPException(status_code=503, detail="Alert service not available")

    try:
        deleted = alert_service.delete_alert(alert_id)
    except StoreUnavailable as e:
        logger.error(f"Error deleting alert {alert_id}: {e}")
        raise _error(503, "alerts.store_unavailable", str(e))

    if not deleted:
        raise _error(404, "alerts.not_found", f"Alert {alert_id} not found")
    return {"message": "Alert deleted", "id": alert_id}

# Market data
@api_router.get("/market/{asset}")
async def get_market_snapshot(asset: str):
    """Current price, 24h change and 24h volume for an asset"""
    if not market_gateway:
        raise HTTPException(status_code=503, detail="Market data gateway not available")

    slug = settings.normalize_asset(asset)
    if not settings.is_supported_asset(slug):
        raise _error(404, "market.unsupported_asset", f"Unsupported asset: {slug}")

    try:
        snapshot = await market_gateway.fetch(slug)
    except DataUnavailable as e:
        raise _error(502, "market.unavailable", str(e))

    return MarketSnapshotOut.from_snapshot(slug, snapshot, _now_iso()).model_dump()

@api_router.get("/market/health/providers")
async def get_market_health():
    """Provider chain and gateway counters"""
    if not market_gateway:
        raise HTTPException(status_code=503, detail="Market data gateway not available")

    return {
        "providers": market_gateway.provider_names(),
        "telemetry": market_gateway.get_metrics(),
        "timestamp": _now_iso(),
    }
