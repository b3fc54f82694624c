"""Tests for message templates and the TTL cache."""

from unittest.mock import patch

import psycopg2
import pytest

from pixzen.infra.cache import TTLCache
from pixzen.services.templates import TemplateService, get_template_service, render

from tests.helpers import MockCursor, MockTxnContext, txn_factory


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=300, clock=clock)
        cache.set("k", "v")

        clock.now += 299
        assert cache.get("k") == "v"

        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_get_or_load_caches_value(self):
        cache = TTLCache(clock=FakeClock())
        calls = []

        def loader():
            calls.append(1)
            return "value"

        assert cache.get_or_load("k", loader) == "value"
        assert cache.get_or_load("k", loader) == "value"
        assert len(calls) == 1

    def test_none_not_cached(self):
        cache = TTLCache(clock=FakeClock())
        calls = []

        def loader():
            calls.append(1)
            return None

        cache.get_or_load("k", loader)
        cache.get_or_load("k", loader)

        assert len(calls) == 2

    def test_loader_error_propagates(self):
        cache = TTLCache(clock=FakeClock())

        def loader():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_load("k", loader)

    def test_clear(self):
        cache = TTLCache(clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert len(cache) == 0


class TestRender:
    def test_replaces_every_occurrence(self):
        assert render("{{code}} e {{code}}", {"code": "ABC123"}) == "ABC123 e ABC123"

    def test_unknown_placeholders_kept(self):
        assert render("Oi {{name}}", {"code": "X"}) == "Oi {{name}}"

    def test_no_variables(self):
        assert render("Oi {{name}}") == "Oi {{name}}"


class TestTemplateService:
    def test_renders_active_template(self):
        ctx = MockTxnContext(MockCursor([{"template_content": "Codigo: {{code}}", "variables": ["code"]}]))

        with patch("pixzen.services.templates.txn", side_effect=txn_factory(ctx)):
            text = TemplateService().get_template("link_code", {"code": "ABC123"})

        assert text == "Codigo: ABC123"
        sql, params = ctx.cursor.executed[0]
        assert "is_active = true" in sql
        assert params == ("link_code",)

    def test_cached_between_calls(self):
        ctx = MockTxnContext(MockCursor([{"template_content": "Oi", "variables": []}]))
        service = TemplateService()

        with patch("pixzen.services.templates.txn", side_effect=txn_factory(ctx)):
            assert service.get_template("welcome") == "Oi"
            assert service.get_template("welcome") == "Oi"

        assert len(ctx.cursor.executed) == 1
        assert service.cache_size() == 1

    def test_missing_template_is_empty(self):
        with patch("pixzen.services.templates.txn", side_effect=txn_factory(MockTxnContext())):
            assert TemplateService().get_template("welcome") == ""

    def test_db_error_is_empty(self):
        ctx = MockTxnContext(error=psycopg2.OperationalError("down"))

        with patch("pixzen.services.templates.txn", side_effect=txn_factory(ctx)):
            assert TemplateService().get_template("welcome") == ""

    def test_unconfigured_database_is_empty(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        assert TemplateService().get_template("welcome") == ""

    def test_clear_cache_forces_reload(self):
        ctx = MockTxnContext(
            MockCursor([
                {"template_content": "v1", "variables": []},
                {"template_content": "v2", "variables": []},
            ])
        )
        service = TemplateService()

        with patch("pixzen.services.templates.txn", side_effect=txn_factory(ctx)):
            assert service.get_template("welcome") == "v1"
            service.clear_cache()
            assert service.get_template("welcome") == "v2"

    def test_singleton(self):
        assert get_template_service() is get_template_service()
