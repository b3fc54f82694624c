"""Public routes: health checks and service descriptor."""

from fastapi import APIRouter

from pixzen.infra.time import utc_now

router = APIRouter()

SERVICE_NAME = "PixZen WhatsApp AI"
SERVICE_VERSION = "2.1.0"


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "timestamp": utc_now().isoformat()}


@router.get("/api/health")
def api_health() -> dict:
    return {"status": "ok", "timestamp": utc_now().isoformat(), "version": SERVICE_VERSION}


@router.get("/")
def root() -> dict:
    """Service descriptor."""
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "database": "postgresql",
        "endpoints": {
            "webhook": "/api/webhook",
            "health": "/api/health",
            "link": "/api/link",
            "status": "/api/status",
            "clearCache": "/api/admin/clear-template-cache",
            "whatsappStatus": "/api/admin/whatsapp-status",
        },
    }
