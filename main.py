"""
Main entry point for the CryptoTrack alert service
"""
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from cryptotrack.core.config import settings
from cryptotrack.core.database import build_engine, build_session_factory, init_db
from cryptotrack.core.exceptions import StoreUnavailable
from cryptotrack.api.routes import api_router, set_services
from cryptotrack.api.security import require_api_key
from cryptotrack.services.alert_repository import AlertRepository
from cryptotrack.services.alert_service import AlertService
from cryptotrack.services.alert_sweep import AlertSweepService
from cryptotrack.services.market_data_gateway import MarketDataGateway
from cryptotrack.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def configure_logging():
    """Configure logging"""
    Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.LOG_FILE),
            logging.StreamHandler()
        ]
    )


@dataclass
class Services:
    """Explicitly constructed service graph owned by the process entry point"""
    engine: object
    repository: AlertRepository
    gateway: MarketDataGateway
    notifier: NotificationService
    sweep: AlertSweepService
    alerts: AlertService

    async def close(self):
        await self.sweep.close()
        self.engine.dispose()


def build_services(database_url: str = None) -> Services:
    engine = build_engine(database_url)
    repository = AlertRepository(build_session_factory(engine))
    gateway = MarketDataGateway.from_settings()
    notifier = NotificationService()
    sweep = AlertSweepService(repository, gateway, notifier)
    alerts = AlertService(repository, gateway)
    return Services(engine, repository, gateway, notifier, sweep, alerts)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting CryptoTrack alert service...")

    services = build_services()
    await init_db(services.engine)
    set_services(services.sweep, services.alerts, services.gateway)
    app.state.services = services

    logger.info("Alert service started successfully!")

    yield

    logger.info("Shutting down alert service...")
    await services.close()
    logger.info("Alert service stopped.")

# Create FastAPI app
app = FastAPI(
    title="CryptoTrack Alerts",
    description="Price, percentage and volume alerts for crypto assets",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1", dependencies=[Depends(require_api_key)])

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "CryptoTrack Alerts API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    services = getattr(app.state, "services", None)
    return {
        "status": "healthy",
        "providers": services.gateway.provider_names() if services else [],
        "email_enabled": services.notifier.is_email_enabled() if services else False,
    }


async def _run_sweep_once() -> int:
    services = build_services()
    try:
        summary = await services.sweep.run_sweep()
    except StoreUnavailable as e:
        logger.error(f"Error processing price alerts: {e}")
        print(json.dumps({"status": "error", "error": str(e)}))
        return 1
    finally:
        await services.close()

    print(json.dumps(summary.to_response()))
    return 0


def sweep():
    """Run a single alert sweep (for cron-style schedulers)"""
    configure_logging()
    sys.exit(asyncio.run(_run_sweep_once()))


def main():
    """Serve the API"""
    configure_logging()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--once":
        sweep()
    else:
        main()
