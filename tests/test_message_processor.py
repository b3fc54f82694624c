"""Tests for the message processor: gates, routing and error containment."""

from contextlib import ExitStack
from unittest.mock import MagicMock, patch

import pytest

from pixzen.domain.plans import ACTIVE, EXPIRED, TrialStatus
from pixzen.domain.subscriptions import Subscription
from pixzen.domain.usage import UsageCheck
from pixzen.domain.users import WhatsAppUser
from pixzen.services.message_processor import process_message
from pixzen.whatsapp.messages import (
    UNSUPPORTED_TYPE,
    WELCOME_MESSAGE,
    ErrorMessages,
    limit_reached_message,
    premium_feature_message,
    trial_expired_message,
)
from pixzen.whatsapp.models import (
    MESSAGES_UPSERT,
    AudioContent,
    DocumentContent,
    ImageContent,
    InboundMessage,
    MessageContent,
    MessageData,
    MessageKey,
)

from tests.helpers import MockCursor, MockTxnContext, txn_factory

PHONE = "5511988887777"
USER_ID = "U1"

LINKED = WhatsAppUser(id="wu-1", phone=PHONE, user_id=USER_ID, name="Ana", is_linked=True)
UNLINKED = WhatsAppUser(id="wu-2", phone=PHONE, user_id=None, name="Ana", is_linked=False)
IN_TRIAL = TrialStatus(is_expired=False, is_active=False, days_remaining=3)


def _message(content: MessageContent, *, from_me: bool = False, event: str = MESSAGES_UPSERT,
             phone: str = PHONE, push_name: str = "Ana") -> InboundMessage:
    return InboundMessage(
        event=event,
        instance="pixzen",
        data=MessageData(
            key=MessageKey(remote_jid=f"{phone}@s.whatsapp.net", from_me=from_me, id="MSG1"),
            push_name=push_name,
            message=content,
        ),
    )


TEXT = MessageContent(conversation="gastei 50 no mercado")
AUDIO = MessageContent(audio=AudioContent(url="https://a", media_key="k"))
IMAGE = MessageContent(image=ImageContent(url="https://i", caption="nota", media_key="k"))
DOCUMENT = MessageContent(document=DocumentContent(url="https://d", title="c.pdf", media_key="k"))


class Env:
    """Patches every collaborator of the processor with controllable mocks."""

    def __init__(self, user=LINKED, trial=ACTIVE, plano="premium",
                 usage_check=UsageCheck(True, 0, 999999), template=""):
        self.user = user
        self.trial = trial
        self.plano = plano
        self.usage_check = usage_check
        self.template = template

    def __enter__(self):
        self._stack = ExitStack()
        p = self._stack.enter_context
        self.send_text = p(patch("pixzen.whatsapp.outbound.send_text", return_value=True))
        self.get_user = p(patch("pixzen.domain.users.get_user_by_phone", return_value=self.user))
        self.create_user = p(patch("pixzen.domain.users.create_whatsapp_user", return_value=UNLINKED))
        self.generate_code = p(patch("pixzen.domain.linking.generate_link_code", return_value="ABC123"))
        self.check_trial = p(patch("pixzen.domain.subscriptions.check_trial_status", return_value=self.trial))
        self.get_subscription = p(patch(
            "pixzen.domain.subscriptions.get_user_subscription",
            return_value=Subscription(plano=self.plano, status="ativo"),
        ))
        self.check_usage = p(patch("pixzen.domain.usage.check_usage_limit", return_value=self.usage_check))
        self.template_service = MagicMock()
        self.template_service.get_template.return_value = self.template
        p(patch("pixzen.services.templates.get_template_service", return_value=self.template_service))
        self.text = p(patch("pixzen.services.message_processor.handle_text_message"))
        self.audio = p(patch("pixzen.services.message_processor.handle_audio_message"))
        self.image = p(patch("pixzen.services.message_processor.handle_image_message"))
        self.document = p(patch("pixzen.services.message_processor.handle_document_message"))
        return self

    def __exit__(self, *exc):
        return self._stack.__exit__(*exc)

    def sent(self) -> list[str]:
        return [c.args[1] for c in self.send_text.call_args_list]


class TestDiscard:
    def test_from_me_ignored(self):
        with Env() as env:
            process_message(_message(TEXT, from_me=True))

        env.get_user.assert_not_called()
        env.send_text.assert_not_called()

    def test_non_upsert_event_ignored(self):
        with Env() as env:
            process_message(_message(TEXT, event="connection.update"))

        env.get_user.assert_not_called()

    def test_empty_phone_dropped(self):
        with Env() as env:
            process_message(_message(TEXT, phone=""))

        env.get_user.assert_not_called()
        env.send_text.assert_not_called()


class TestUserResolution:
    def test_unknown_phone_registered_and_welcomed(self):
        with Env(user=None) as env:
            process_message(_message(TEXT))

        env.create_user.assert_called_once_with(PHONE, "Ana")
        assert env.sent() == [WELCOME_MESSAGE]
        env.generate_code.assert_not_called()
        env.text.assert_not_called()

    def test_welcome_uses_template_when_present(self):
        with Env(user=None, template="Olá do admin") as env:
            process_message(_message(TEXT))

        env.template_service.get_template.assert_called_once_with("welcome", None)
        assert env.sent() == ["Olá do admin"]

    def test_missing_push_name_defaults(self):
        with Env(user=None) as env:
            process_message(_message(TEXT, push_name=""))

        env.create_user.assert_called_once_with(PHONE, "Usuario")

    def test_registration_failure_is_silent(self):
        with Env(user=None) as env:
            env.create_user.return_value = None
            process_message(_message(TEXT))

        env.send_text.assert_not_called()

    def test_unlinked_contact_gets_link_code_and_stops(self):
        with Env(user=UNLINKED) as env:
            process_message(_message(TEXT))

        env.generate_code.assert_called_once_with("wu-2")
        assert len(env.sent()) == 1
        assert "ABC123" in env.sent()[0]
        env.check_trial.assert_not_called()
        env.text.assert_not_called()

    def test_link_code_template_receives_code(self):
        with Env(user=UNLINKED, template="Seu código: ABC123") as env:
            process_message(_message(TEXT))

        env.template_service.get_template.assert_called_once_with("link_code", {"code": "ABC123"})
        assert env.sent() == ["Seu código: ABC123"]

    def test_link_code_failure_sends_general_error(self):
        from pixzen.domain.linking import LinkCodeError

        with Env(user=UNLINKED) as env:
            env.generate_code.side_effect = LinkCodeError("db down")
            process_message(_message(TEXT))

        assert env.sent() == [ErrorMessages.GENERAL]


class TestGates:
    def test_expired_trial_stops(self):
        with Env(trial=EXPIRED) as env:
            process_message(_message(TEXT))

        assert env.sent() == [trial_expired_message()]
        env.check_usage.assert_not_called()
        env.text.assert_not_called()

    def test_trial_skips_usage_cap(self):
        with Env(trial=IN_TRIAL, usage_check=UsageCheck(False, 50, 50)) as env:
            process_message(_message(TEXT))

        env.check_usage.assert_not_called()
        env.text.assert_called_once_with(PHONE, "gastei 50 no mercado", USER_ID)

    def test_usage_cap_reached_stops_with_fallback_text(self):
        with Env(usage_check=UsageCheck(False, 30, 30)) as env:
            process_message(_message(TEXT))

        assert env.sent() == [limit_reached_message(30, 30)]
        env.template_service.get_template.assert_called_once_with(
            "error_limit_reached", {"used": "30", "limit": "30"}
        )
        env.text.assert_not_called()

    def test_under_cap_routes(self):
        with Env(usage_check=UsageCheck(True, 10, 30)) as env:
            process_message(_message(TEXT))

        env.text.assert_called_once()


class TestRouting:
    def test_audio_routed_for_premium(self):
        with Env() as env:
            process_message(_message(AUDIO))

        env.audio.assert_called_once_with(PHONE, "https://a", "audio/ogg; codecs=opus", "k", USER_ID)

    def test_image_routed_for_premium(self):
        with Env() as env:
            process_message(_message(IMAGE))

        env.image.assert_called_once_with(PHONE, "https://i", "nota", "k", USER_ID)

    def test_document_routed_for_premium(self):
        with Env() as env:
            process_message(_message(DOCUMENT))

        env.document.assert_called_once_with(PHONE, "https://d", "application/pdf", "k", "c.pdf", USER_ID)

    @pytest.mark.parametrize(
        "content,kind",
        [(AUDIO, "audio"), (IMAGE, "image"), (DOCUMENT, "document")],
    )
    def test_media_blocked_on_starter(self, content, kind):
        with Env(plano="starter") as env:
            process_message(_message(content))

        assert env.sent() == [premium_feature_message(kind)]
        env.audio.assert_not_called()
        env.image.assert_not_called()
        env.document.assert_not_called()

    def test_media_allowed_during_trial(self):
        with Env(trial=IN_TRIAL) as env:
            process_message(_message(AUDIO))

        env.audio.assert_called_once()

    def test_text_allowed_on_starter(self):
        with Env(plano="starter") as env:
            process_message(_message(TEXT))

        env.text.assert_called_once()

    def test_empty_content_gets_unsupported_message(self):
        with Env() as env:
            process_message(_message(MessageContent()))

        assert env.sent() == [UNSUPPORTED_TYPE]


class TestErrorContainment:
    def test_handler_exception_never_propagates(self):
        with Env() as env:
            env.text.side_effect = RuntimeError("boom")
            process_message(_message(TEXT))

    def test_lookup_exception_never_propagates(self):
        with Env() as env:
            env.get_user.side_effect = RuntimeError("DATABASE_URL environment variable not set")
            process_message(_message(TEXT))

        env.send_text.assert_not_called()


class TestUnlinkedNewUserScenario:
    """First message registers the contact; the second issues exactly one code."""

    def test_first_then_second_message(self):
        new_row = {
            "id": "wu-9", "phone": PHONE, "user_id": None, "name": "Ana",
            "is_linked": False, "created_at": None, "updated_at": None,
        }
        users_ctx = MockTxnContext(MockCursor([None, new_row, new_row]))
        links_ctx = MockTxnContext()

        with patch("pixzen.domain.users.txn", side_effect=txn_factory(users_ctx)), patch(
            "pixzen.domain.linking.txn", side_effect=txn_factory(links_ctx)
        ), patch("pixzen.whatsapp.outbound.send_text", return_value=True) as mock_send, patch(
            "pixzen.services.templates.TemplateService.get_template", return_value=""
        ):
            process_message(_message(TEXT))

            queries = users_ctx.cursor.queries()
            assert queries[0].startswith("SELECT id, phone")
            assert queries[1].startswith("INSERT INTO whatsapp_users")
            assert users_ctx.cursor.executed[1][1] == (PHONE, "Ana")
            assert links_ctx.cursor.executed == []
            assert mock_send.call_args.args[1] == WELCOME_MESSAGE

            process_message(_message(TEXT))

        assert len(links_ctx.cursor.executed) == 1
        sql, params = links_ctx.cursor.executed[0]
        assert "INSERT INTO whatsapp_link_codes" in sql
        whatsapp_user_id, code, _expires_at = params
        assert whatsapp_user_id == "wu-9"
        assert len(code) == 6 and code.isalnum() and code.upper() == code
        assert code in mock_send.call_args.args[1]
