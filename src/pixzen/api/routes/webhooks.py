"""Webhook and account-linking routes.

The webhook acknowledges quickly: authentication and filtering happen in the
request, message processing is handed to the work queue and runs detached.
Processing errors never turn into a non-2xx response.

Security:
- Phone numbers and message content exist only in memory
- Logs contain NO PII (phone_hash only)
"""

import uuid
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool

from pixzen.domain import linking
from pixzen.infra.time import utc_now
from pixzen.observability.correlation import get_correlation_id
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.services import templates
from pixzen.services.message_processor import process_message
from pixzen.tasks.client import TasksClient
from pixzen.whatsapp import outbound
from pixzen.whatsapp.messages import welcome_link_message
from pixzen.whatsapp.uazapi_adapter import normalize, should_process

from ..auth import client_ip, is_webhook_ip_allowed, is_webhook_secret_valid

router = APIRouter(prefix="/api", tags=["webhooks"])

logger = get_logger(__name__)

RECEIVED = {"received": True}

# Shared tasks client (same instance across requests)
_tasks_client = TasksClient()


def _get_tasks_client() -> TasksClient:
    """Get tasks client instance (allows test injection)."""
    return _tasks_client


@router.post("/webhook")
async def uazapi_webhook(request: Request) -> JSONResponse:
    """Receive UazAPI webhook events.

    Returns:
        200 {"received": true} for every accepted request, whether or not
        the event is processed.
        403 if the caller IP is not on the allowlist.
        401 if the webhook secret does not match.
    """
    correlation_id = get_correlation_id()

    if not is_webhook_ip_allowed(request):
        logger.warning(
            "webhook rejected: ip not allowed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, ip=client_ip(request)
                )
            },
        )
        return JSONResponse(status_code=403, content={"error": "Forbidden"})

    if not is_webhook_secret_valid(request):
        logger.warning(
            "webhook secret mismatch",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        payload: Any = await request.json()
    except Exception:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(content=RECEIVED)

    if not should_process(payload):
        logger.info(
            "webhook event ignored",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(content=RECEIVED)

    msg = normalize(payload)
    message_id = msg.data.key.id
    task_id = f"whatsapp:{message_id or uuid.uuid4().hex}"

    logger.info(
        "webhook received",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                message_id_prefix=message_id[:8],
                kind=msg.data.message.kind,
                phone_hash=hash_phone(msg.phone) if msg.phone else "",
            )
        },
    )

    # Task payload carries no PII; the message itself is bound to the handler
    task_payload = {
        "task_id": task_id,
        "message_id": message_id,
        "kind": msg.data.message.kind,
        "correlation_id": correlation_id,
    }
    enqueued = _get_tasks_client().enqueue(
        task_id=task_id,
        handler=lambda _payload: process_message(msg),
        payload=task_payload,
    )
    if not enqueued:
        logger.info(
            "duplicate webhook delivery",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )

    return JSONResponse(content=RECEIVED)


def _redeem_and_welcome(code: str, user_id: str) -> linking.LinkResult:
    """Redeem the code and greet the linked phone (welcome_link template)."""
    result = linking.link_whatsapp_account(code, user_id)
    if not result.success or not result.phone:
        return result

    message = (
        templates.get_template_service().get_template(templates.WELCOME_LINK)
        or welcome_link_message()
    )
    sent = outbound.send_text(result.phone, message)
    logger.info(
        "account linked",
        extra={
            "extra_fields": safe_log_context(
                phone_hash=hash_phone(result.phone), welcome_sent=sent
            )
        },
    )
    return result


@router.post("/link")
async def link_account(request: Request) -> JSONResponse:
    """Redeem a link code for an application account.

    Body: {"code": "ABC123", "userId": "<uuid>"}

    Returns:
        200 {"success": true, "phone": ...} on success.
        400 {"success": false, "error": ...} on missing fields or an
        invalid/expired/used code.
        500 {"success": false, "error": ...} on internal error.
    """
    try:
        body = await request.json()
    except Exception:
        body = None
    if not isinstance(body, dict):
        body = {}

    code = body.get("code")
    user_id = body.get("userId")
    if not code or not user_id:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Codigo e userId sao obrigatorios"},
        )

    # DB and provider calls block; keep them off the event loop
    result = await run_in_threadpool(_redeem_and_welcome, str(code), str(user_id))
    if not result.success:
        status_code = 500 if result.error == linking.INTERNAL_ERROR else 400
        return JSONResponse(
            status_code=status_code, content={"success": False, "error": result.error}
        )

    return JSONResponse(content={"success": True, "phone": result.phone})


@router.get("/status")
def service_status() -> dict:
    """Provider connection summary."""
    status = outbound.get_instance_status()
    return {
        "service": "running",
        "database": "postgresql",
        "uazapi": "connected" if status else "disconnected",
        "timestamp": utc_now().isoformat(),
    }
