"""
Main API router for Meetspace.
Combines all API endpoints and provides health checks.
"""

import logging
from datetime import datetime

from fastapi import APIRouter

from ..dependencies import check_service_health
from ...schemas.common import HealthCheckResponse
from .events import router as events_router
from .integrations import router as integrations_router
from .orders import router as orders_router
from .payments import router as payments_router
from .subscriptions import router as subscriptions_router

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"

router = APIRouter(prefix="/api/v1")

router.include_router(events_router)
router.include_router(orders_router)
router.include_router(payments_router)
router.include_router(integrations_router)
router.include_router(subscriptions_router)


@router.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check with database and Redis status.
    """
    try:
        checks = await check_service_health()
        return HealthCheckResponse(
            status=checks["overall"],
            timestamp=datetime.utcnow(),
            service="meetspace",
            version=SERVICE_VERSION,
            checks={"database": checks["database"], "redis": checks["redis"]}
        )

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return HealthCheckResponse(
            status="unhealthy",
            timestamp=datetime.utcnow(),
            service="meetspace",
            version=SERVICE_VERSION,
            checks={"error": str(e)}
        )


@router.get("/info")
async def service_info():
    return {
        "service": "Meetspace",
        "version": SERVICE_VERSION,
        "description": "Event management and ticketing API",
        "capabilities": [
            "Event listing with visibility rules",
            "Free RSVP registration",
            "Chapa payments with ticket issuance",
            "Jitsi meeting tokens",
            "AI-assisted event copy",
            "Image uploads",
        ],
        "endpoints": {
            "events": "/api/v1/events",
            "orders": "/api/v1/orders",
            "payment": "/api/v1/payment",
            "subscriptions": "/api/v1/subscriptions",
            "health": "/api/v1/health",
            "docs": "/docs",
        },
    }
