"""Internal admin routes, guarded by the `x-internal-key` header."""

from fastapi import APIRouter, Depends

from pixzen.ai.extractor import get_extractor
from pixzen.infra.time import utc_now
from pixzen.observability.logging import get_logger
from pixzen.services import templates
from pixzen.whatsapp import outbound

from ..auth import require_internal_key

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_internal_key)],
)

logger = get_logger(__name__)


@router.post("/clear-template-cache")
def clear_template_cache() -> dict:
    """Drop cached templates and AI config so edits apply immediately."""
    templates.get_template_service().clear_cache()
    get_extractor().clear_config_cache()
    logger.info("template and ai config caches cleared")
    return {"success": True, "message": "Cache de templates limpo"}


@router.get("/whatsapp-status")
def whatsapp_status() -> dict:
    status = outbound.get_instance_status()
    return {
        "uazapi": status,
        "connected": bool(status),
        "cache_entries": templates.get_template_service().cache_size(),
        "timestamp": utc_now().isoformat(),
    }
