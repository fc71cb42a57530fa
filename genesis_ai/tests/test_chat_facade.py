"""测试 ChatFacade 的降级与持久化。"""

import tempfile
from pathlib import Path

import pytest

from genesis_ai.chat.facade import ChatFacade
from genesis_ai.domain.exceptions import StoreError, UnauthenticatedError, UpstreamError, ValidationError
from genesis_ai.infrastructure.auth.session import StaticSession
from genesis_ai.infrastructure.storage.json_table import JsonMessageTable
from genesis_ai.infrastructure.storage.message_store import MessageStore
from genesis_ai.providers.openai_client import OpenAIAdapter
from genesis_ai.routing.router import Router


FALLBACK = "canned reply"


class FakeAdapter:
    def __init__(self, name, available=True, reply=None, error=None, default_model=None):
        self.name = name
        self.default_model = default_model or f"{name}-default"
        self._available = available
        self._reply = reply or f"from {name}"
        self._error = error
        self.calls = []

    def is_available(self):
        return self._available

    def invoke(self, prompt, model):
        self.calls.append((prompt, model))
        if self._error is not None:
            raise self._error
        return self._reply


class FakeStreamingAdapter(FakeAdapter):
    def invoke_stream(self, prompt, model):
        self.calls.append((prompt, model))
        yield "Hel"
        yield "lo"


class BrokenTable:
    def select(self, filters, order_by="created_at"):
        return []

    def insert(self, row):
        raise StoreError(code="STORE_WRITE_ERROR", message="db down")

    def delete(self, filters):
        return 0


def _facade(root, providers, user_id="u1", table=None):
    return ChatFacade(
        router=Router(providers),
        store=MessageStore(table or JsonMessageTable(root=Path(root))),
        session=StaticSession(user_id),
        fallback_text=FALLBACK,
    )


def test_send_message_persists_both_turns():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeAdapter("openai", reply="Hi there")])
        resp = facade.send_message("Hello")

        assert resp.text == "Hi there"
        assert resp.provider_name == "openai"
        assert resp.model_name == "openai-default"
        assert resp.fallback is False
        assert resp.conversation_id

        history = facade.get_history(resp.conversation_id)
        assert [(m.role, m.text) for m in history] == [("user", "Hello"), ("assistant", "Hi there")]
        assert all(m.provider == "openai" and m.model == "openai-default" for m in history)
        assert history[0].created_at <= history[1].created_at


def test_send_message_reuses_conversation_id():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeAdapter("openai")])
        first = facade.send_message("one")
        second = facade.send_message("two", conversation_id=first.conversation_id)
        assert second.conversation_id == first.conversation_id
        convs = facade.get_conversation_list()
        assert len(convs) == 1
        assert convs[0].message_count == 4


def test_all_providers_failing_returns_fallback():
    with tempfile.TemporaryDirectory() as d:
        boom = UpstreamError(code="UPSTREAM_ERROR", message="down", http_status=500)
        facade = _facade(d, [FakeAdapter("openai", error=boom), FakeAdapter("gemini", available=False)])

        resp = facade.send_message("Hello")

        assert resp.provider_name == "fallback"
        assert resp.model_name == "fallback"
        assert resp.text == FALLBACK
        assert resp.fallback is True
        history = facade.get_history(resp.conversation_id)
        assert [m.text for m in history] == ["Hello", FALLBACK]
        assert history[1].provider == "fallback"


def test_forced_provider_without_credentials_falls_through():
    with tempfile.TemporaryDirectory() as d:
        openai = FakeAdapter("openai", available=False)
        gemini = FakeAdapter("gemini", default_model="models/gemini-1.5-flash")
        facade = _facade(d, [openai, gemini])

        resp = facade.send_message("Hello", None, "openai", "gpt-3.5-turbo")

        assert resp.provider_name == "gemini"
        assert resp.model_name == "models/gemini-1.5-flash"
        assert openai.calls == []


def test_unauthenticated_raises():
    with tempfile.TemporaryDirectory() as d:
        adapter = FakeAdapter("openai")
        facade = _facade(d, [adapter], user_id=None)
        with pytest.raises(UnauthenticatedError):
            facade.send_message("Hello")
        with pytest.raises(UnauthenticatedError):
            facade.get_history()
        assert adapter.calls == []


def test_empty_message_rejected():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeAdapter("openai")])
        with pytest.raises(ValidationError):
            facade.send_message("   ")


def test_persistence_failure_does_not_surface():
    facade = _facade(None, [FakeAdapter("openai", reply="still here")], table=BrokenTable())
    resp = facade.send_message("Hello")
    assert resp.text == "still here"
    assert facade.get_history(resp.conversation_id) == []


def test_delete_conversation():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeAdapter("openai")])
        resp = facade.send_message("Hello")
        assert facade.delete_conversation(resp.conversation_id) is True
        assert facade.get_history(resp.conversation_id) == []
        assert facade.delete_conversation("") is False


def test_stream_message_yields_and_persists():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeStreamingAdapter("openai")])
        conversation_id, pieces = facade.stream_message("Hi")
        assert list(pieces) == ["Hel", "lo"]

        history = facade.get_history(conversation_id)
        assert [(m.role, m.text) for m in history] == [("user", "Hi"), ("assistant", "Hello")]


def test_stream_message_fallback():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeAdapter("openai", available=False)])
        conversation_id, pieces = facade.stream_message("Hi")
        assert list(pieces) == [FALLBACK]
        assert facade.get_history(conversation_id)[1].provider == "fallback"


def test_available_models_include_auto():
    models = ChatFacade.get_available_models()
    assert models[0].id == "auto"


def test_stream_malformed_openai_event_falls_back(monkeypatch):
    class FakeResponse:
        status_code = 200

        def iter_lines(self):
            yield 'data: {"choices": [null]}'
            yield "data: [DONE]"

    class StreamContext:
        def __enter__(self):
            return FakeResponse()

        def __exit__(self, *args):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, *a, **kw):
            return StreamContext()

    class Cfg:
        openai_api_key = "sk-test"
        openai_base_url = "https://api.openai.com/v1"
        http_timeout = 1.0

    monkeypatch.setattr("httpx.Client", Client)
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [OpenAIAdapter(Cfg()), FakeAdapter("gemini", reply="from gemini")])
        conversation_id, pieces = facade.stream_message("Hi")
        assert list(pieces) == ["from gemini"]
        assert facade.get_history(conversation_id)[1].provider == "gemini"


def test_stream_closed_early_still_persists():
    with tempfile.TemporaryDirectory() as d:
        facade = _facade(d, [FakeStreamingAdapter("openai")])
        conversation_id, pieces = facade.stream_message("Hi")
        assert next(pieces) == "Hel"
        pieces.close()

        history = facade.get_history(conversation_id)
        assert [(m.role, m.text) for m in history] == [("user", "Hi"), ("assistant", "Hel")]
        assert history[1].provider == "openai"
