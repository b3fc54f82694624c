"""Shared pytest fixtures for PixZen WhatsApp tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_process_singletons():
    """Reset process-wide singletons to avoid cross-test contamination.

    The template service and the AI extractor each own a TTL cache; a
    template or config cached by one test must not leak into the next.
    """
    import pixzen.ai.extractor as extractor_module
    import pixzen.services.templates as templates_module

    extractor_module._extractor = None
    templates_module._template_service = None
    yield
    extractor_module._extractor = None
    templates_module._template_service = None


@pytest.fixture
def uazapi_env(monkeypatch):
    """Set UazAPI environment variables."""
    monkeypatch.setenv("UAZAPI_URL", "https://pixzen.uazapi.test")
    monkeypatch.setenv("UAZAPI_TOKEN", "test-token")


@pytest.fixture
def no_sleep():
    """Make outbound retries instantaneous."""
    from unittest.mock import patch

    with patch("pixzen.whatsapp.outbound.time.sleep") as sleep:
        yield sleep
