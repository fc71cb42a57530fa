"""测试 Router 的候选顺序与降级。"""

import pytest

from genesis_ai.routing.router import Router
from genesis_ai.domain.exceptions import MalformedResponseError, NoProviderAvailableError, UpstreamError


class FakeAdapter:
    """模拟的 Provider 适配器。"""

    def __init__(self, name, available=True, reply=None, error=None, default_model=None):
        self.name = name
        self.default_model = default_model or f"{name}-default"
        self._available = available
        self._reply = reply if reply is not None else f"from {name}"
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
    def __init__(self, name, pieces, fail_after=None, **kw):
        super().__init__(name, **kw)
        self._pieces = pieces
        self._fail_after = fail_after

    def invoke_stream(self, prompt, model):
        self.calls.append((prompt, model))
        if self._error is not None and self._fail_after is None:
            raise self._error
        for i, piece in enumerate(self._pieces):
            if self._fail_after is not None and i == self._fail_after:
                raise self._error
            yield piece


def _boom(name):
    return UpstreamError(code="UPSTREAM_ERROR", message=f"{name} down", http_status=500)


def test_first_success_wins_and_stops():
    a = FakeAdapter("openai")
    b = FakeAdapter("gemini")
    result = Router([a, b]).call("hello")
    assert result.text == "from openai"
    assert result.provider_name == "openai"
    assert result.model_name == "openai-default"
    assert len(a.calls) == 1
    assert b.calls == []


def test_unavailable_provider_is_skipped_without_invoking():
    a = FakeAdapter("openai", available=False)
    b = FakeAdapter("gemini")
    outcome = Router([a, b]).route("hello")
    assert outcome.ok
    assert outcome.result.provider_name == "gemini"
    assert a.calls == []
    assert [(x.provider, x.status) for x in outcome.attempts] == [("openai", "skipped"), ("gemini", "ok")]


def test_failure_falls_through_to_next_provider():
    a = FakeAdapter("openai", error=_boom("openai"))
    b = FakeAdapter("gemini")
    c = FakeAdapter("anthropic")
    outcome = Router([a, b, c]).route("hello")
    assert outcome.result.provider_name == "gemini"
    assert outcome.attempts[0].status == "failed"
    assert outcome.attempts[0].error_code == "UPSTREAM_ERROR"
    assert c.calls == []


def test_all_fail_raises_no_provider_available():
    a = FakeAdapter("openai", error=_boom("openai"))
    b = FakeAdapter("gemini", available=False)
    router = Router([a, b])

    outcome = router.route("hello")
    assert not outcome.ok
    assert [x.status for x in outcome.attempts] == ["failed", "skipped"]

    with pytest.raises(NoProviderAvailableError) as exc:
        router.call("hello")
    assert len(exc.value.extra["attempts"]) == 2


def test_preferred_provider_honored():
    a = FakeAdapter("openai")
    b = FakeAdapter("gemini")
    result = Router([a, b]).call("hello", preferred_provider="gemini")
    assert result.provider_name == "gemini"
    assert a.calls == []


def test_preferred_provider_failure_falls_back_once_each():
    a = FakeAdapter("openai")
    b = FakeAdapter("gemini", error=_boom("gemini"))
    result = Router([a, b]).call("hello", preferred_provider="gemini")
    assert result.provider_name == "openai"
    assert len(b.calls) == 1
    assert len(a.calls) == 1


def test_auto_and_unknown_preferences_use_declaration_order():
    a = FakeAdapter("openai")
    b = FakeAdapter("gemini")
    router = Router([a, b])
    assert [p.name for p in router.candidates("auto")] == ["openai", "gemini"]
    assert [p.name for p in router.candidates("cohere")] == ["openai", "gemini"]
    assert [p.name for p in router.candidates("Gemini")] == ["gemini", "openai"]


def test_model_hint_only_applies_to_owner():
    a = FakeAdapter("openai", available=False)
    b = FakeAdapter("gemini", default_model="models/gemini-1.5-flash")
    result = Router([a, b]).call("Hello", preferred_provider="openai", preferred_model="gpt-3.5-turbo")
    assert result.provider_name == "gemini"
    assert result.model_name == "models/gemini-1.5-flash"
    assert b.calls == [("Hello", "models/gemini-1.5-flash")]


def test_model_hint_without_provider_uses_registry_owner():
    a = FakeAdapter("openai")
    b = FakeAdapter("gemini")
    router = Router([a, b])
    assert router.model_for(b, None, "models/gemini-1.5-pro") == "models/gemini-1.5-pro"
    assert router.model_for(a, None, "models/gemini-1.5-pro") == "openai-default"
    assert router.model_for(a, "auto", "auto") == "openai-default"


def test_availability_checked_on_every_call():
    a = FakeAdapter("openai", available=False)
    b = FakeAdapter("gemini")
    router = Router([a, b])
    assert router.call("one").provider_name == "gemini"
    a._available = True
    assert router.call("two").provider_name == "openai"


def test_stream_uses_streaming_adapter():
    a = FakeStreamingAdapter("openai", pieces=["he", "llo"])
    chunks = list(Router([a]).stream("hi"))
    assert [c.text for c in chunks] == ["he", "llo"]
    assert chunks[0].provider_name == "openai"


def test_stream_falls_back_before_first_chunk():
    a = FakeStreamingAdapter("openai", pieces=["x"], error=_boom("openai"))
    b = FakeAdapter("gemini", reply="whole answer")
    chunks = list(Router([a, b]).stream("hi"))
    assert [(c.text, c.provider_name) for c in chunks] == [("whole answer", "gemini")]


def test_stream_failure_after_first_chunk_propagates():
    a = FakeStreamingAdapter("openai", pieces=["part", "rest"], fail_after=1, error=_boom("openai"))
    b = FakeAdapter("gemini")
    received = []
    with pytest.raises(UpstreamError):
        for chunk in Router([a, b]).stream("hi"):
            received.append(chunk.text)
    assert received == ["part"]
    assert b.calls == []


def test_stream_exhaustion_raises():
    a = FakeStreamingAdapter("openai", pieces=[])
    with pytest.raises(NoProviderAvailableError):
        list(Router([a]).stream("hi"))


def test_router_requires_providers():
    with pytest.raises(ValueError):
        Router([])


def test_stream_malformed_event_falls_back_to_next_provider():
    bad = MalformedResponseError(code="MALFORMED_RESPONSE", message="bad event", provider="openai")
    a = FakeStreamingAdapter("openai", pieces=["never"], error=bad)
    b = FakeAdapter("gemini", reply="from gemini")
    chunks = list(Router([a, b]).stream("hi"))
    assert [(c.text, c.provider_name) for c in chunks] == [("from gemini", "gemini")]
    assert len(a.calls) == 1


def test_route_records_malformed_response_and_continues():
    bad = MalformedResponseError(code="MALFORMED_RESPONSE", message="missing choices", provider="openai")
    outcome = Router([FakeAdapter("openai", error=bad), FakeAdapter("gemini")]).route("hi")
    assert outcome.result.provider_name == "gemini"
    assert [(a.provider, a.status, a.error_code) for a in outcome.attempts] == [
        ("openai", "failed", "MALFORMED_RESPONSE"),
        ("gemini", "ok", None),
    ]
