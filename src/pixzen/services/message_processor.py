"""Message processor - per-message orchestration.

States, in order (each gate may short-circuit):

    RECEIVED -> USER_RESOLVED -> GATE_CHECKED -> ROUTED -> COMPLETED

1. RECEIVED: only canonical upserts not sent by us are processed.
2. USER_RESOLVED: unknown phones are registered and welcomed; unlinked
   contacts get a link code and stop there.
3. GATE_CHECKED: expired trials stop; outside a trial the monthly usage cap
   applies.
4. ROUTED: dispatch by content kind, media kinds gated by plan flags.

Runs detached from the webhook response: every exception is caught and
logged here, nothing is propagated.

Security: NEVER log phone, push name or content. Only phone_hash.
"""

from __future__ import annotations

from enum import Enum

from pixzen.domain import linking, subscriptions, usage, users
from pixzen.domain.plans import PlanLimits, effective_plan
from pixzen.domain.users import WhatsAppUser
from pixzen.handlers.audio import handle_audio_message
from pixzen.handlers.document import handle_document_message
from pixzen.handlers.image import handle_image_message
from pixzen.handlers.text import handle_text_message
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.services import templates
from pixzen.whatsapp import outbound
from pixzen.whatsapp.messages import (
    UNSUPPORTED_TYPE,
    WELCOME_MESSAGE,
    ErrorMessages,
    limit_reached_message,
    link_code_message,
    premium_feature_message,
    trial_expired_message,
)
from pixzen.whatsapp.models import MESSAGES_UPSERT, InboundMessage, MessageContent

logger = get_logger(__name__)

DEFAULT_PUSH_NAME = "Usuario"


class State(str, Enum):
    RECEIVED = "received"
    USER_RESOLVED = "user_resolved"
    GATE_CHECKED = "gate_checked"
    ROUTED = "routed"
    COMPLETED = "completed"


def _transition(state: State, log_ctx: dict[str, str], **fields: object) -> None:
    logger.info(
        f"message {state.value}",
        extra={"extra_fields": safe_log_context(**log_ctx, state=state.value, **fields)},
    )


def _stop(reason: str, log_ctx: dict[str, str]) -> None:
    logger.info(
        "message processing stopped",
        extra={"extra_fields": safe_log_context(**log_ctx, reason=reason)},
    )


def _template_or(key: str, fallback: str, variables: dict[str, str] | None = None) -> str:
    return templates.get_template_service().get_template(key, variables) or fallback


# ── Steps ────────────────────────────────────────────────


def _register_contact(phone: str, push_name: str, log_ctx: dict[str, str]) -> None:
    """First contact from an unseen phone: store it unlinked and welcome it.

    The link code is only issued on the next message.
    """
    user = users.create_whatsapp_user(phone, push_name or DEFAULT_PUSH_NAME)
    if user is None:
        logger.error("could not register new contact", extra={"extra_fields": log_ctx})
        return

    outbound.send_text(phone, _template_or(templates.WELCOME, WELCOME_MESSAGE))


def _handle_unlinked(phone: str, user: WhatsAppUser, log_ctx: dict[str, str]) -> None:
    """Send a fresh link code to a contact without an account."""
    try:
        code = linking.generate_link_code(user.id)
    except linking.LinkCodeError:
        logger.exception("link code issuance failed", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, ErrorMessages.GENERAL)
        return

    message = _template_or(templates.LINK_CODE, link_code_message(code), {"code": code})
    outbound.send_text(phone, message)


def _route(
    phone: str,
    content: MessageContent,
    user_id: str,
    limits: PlanLimits,
    in_trial: bool,
) -> str:
    """Dispatch to the content handler. Returns the routed kind."""
    kind = content.kind

    if kind == "text":
        handle_text_message(phone, content.conversation or "", user_id)
    elif kind == "audio":
        if not limits.audio_enabled and not in_trial:
            outbound.send_text(phone, premium_feature_message("audio"))
            return "audio_blocked"
        audio = content.audio
        handle_audio_message(phone, audio.url, audio.mimetype, audio.media_key, user_id)
    elif kind == "image":
        if not limits.image_enabled and not in_trial:
            outbound.send_text(phone, premium_feature_message("image"))
            return "image_blocked"
        image = content.image
        handle_image_message(phone, image.url, image.caption, image.media_key, user_id)
    elif kind == "document":
        # Documents share the image flag
        if not limits.image_enabled and not in_trial:
            outbound.send_text(phone, premium_feature_message("document"))
            return "document_blocked"
        doc = content.document
        handle_document_message(
            phone, doc.url, doc.mimetype, doc.media_key, doc.title, user_id
        )
    else:
        outbound.send_text(phone, UNSUPPORTED_TYPE)

    return kind


# ── Entry point ──────────────────────────────────────────


def process_message(message: InboundMessage) -> None:
    """Process one normalized inbound message end to end. Never raises."""
    phone = message.phone
    log_ctx = safe_log_context(
        phone_hash=hash_phone(phone) if phone else "",
        message_id=message.data.key.id,
        kind=message.data.message.kind,
    )

    try:
        if message.event != MESSAGES_UPSERT or message.data.key.from_me:
            _stop("not_inbound_upsert", log_ctx)
            return
        if not phone:
            _stop("missing_phone", log_ctx)
            return
        _transition(State.RECEIVED, log_ctx)

        user = users.get_user_by_phone(phone)
        if user is None:
            _register_contact(phone, message.data.push_name, log_ctx)
            _stop("new_contact", log_ctx)
            return
        if not user.linked:
            _handle_unlinked(phone, user, log_ctx)
            _stop("unlinked", log_ctx)
            return
        user_id = user.user_id
        _transition(State.USER_RESOLVED, log_ctx)

        trial = subscriptions.check_trial_status(user_id)
        if trial.is_expired and not trial.is_active:
            outbound.send_text(
                phone, _template_or(templates.TRIAL_EXPIRED, trial_expired_message())
            )
            _stop("trial_expired", log_ctx)
            return

        subscription = subscriptions.get_user_subscription(user_id)
        plan = effective_plan(trial, subscription.plano)

        if not plan.in_trial:
            check = usage.check_usage_limit(user_id)
            if not check.allowed:
                variables = {"used": str(check.used), "limit": str(check.limit)}
                outbound.send_text(
                    phone,
                    _template_or(
                        templates.LIMIT_REACHED,
                        limit_reached_message(check.used, check.limit),
                        variables,
                    ),
                )
                _stop("usage_limit", log_ctx)
                return
        _transition(
            State.GATE_CHECKED, log_ctx, plan=plan.name, in_trial=plan.in_trial
        )

        routed = _route(phone, message.data.message, user_id, plan.limits, plan.in_trial)
        _transition(State.ROUTED, log_ctx, routed=routed)
        _transition(State.COMPLETED, log_ctx)
    except Exception:
        logger.exception("message processing failed", extra={"extra_fields": log_ctx})
