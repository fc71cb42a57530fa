import pytest

from genesis_ai.providers.anthropic_client import AnthropicAdapter
from genesis_ai.domain.exceptions import MalformedResponseError, UpstreamError


class SettingsStub:
    anthropic_api_key = "a-key"
    anthropic_base_url = "https://api.anthropic.com/v1"
    anthropic_version = "2023-06-01"
    http_timeout = 1.0
    max_tokens = 1000
    temperature = 0.7


class Resp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        return self._data


def _patch_client(monkeypatch, resp, captured):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return resp

    monkeypatch.setattr("httpx.Client", Client)


def test_anthropic_invoke_basic(monkeypatch):
    captured = {}
    data = {"content": [{"type": "text", "text": "bonjour"}], "stop_reason": "end_turn"}
    _patch_client(monkeypatch, Resp(data=data), captured)

    text = AnthropicAdapter(SettingsStub()).invoke("hi", "claude-3-haiku-20240307")

    assert text == "bonjour"
    assert captured["url"] == "https://api.anthropic.com/v1/messages"
    assert captured["headers"]["x-api-key"] == "a-key"
    assert captured["headers"]["anthropic-version"] == "2023-06-01"
    assert captured["payload"]["model"] == "claude-3-haiku-20240307"
    assert captured["payload"]["messages"] == [{"role": "user", "content": "hi"}]


def test_anthropic_upstream_error(monkeypatch):
    _patch_client(monkeypatch, Resp(status_code=401, text="invalid x-api-key"), {})
    with pytest.raises(UpstreamError) as exc:
        AnthropicAdapter(SettingsStub()).invoke("hi", "claude-3-haiku-20240307")
    assert exc.value.http_status == 401


def test_anthropic_malformed(monkeypatch):
    _patch_client(monkeypatch, Resp(data={"content": []}), {})
    with pytest.raises(MalformedResponseError):
        AnthropicAdapter(SettingsStub()).invoke("hi", "claude-3-haiku-20240307")
