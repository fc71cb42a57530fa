"""Anthropic Provider 适配器。

- URL: {base_url}/messages
- 认证: x-api-key 请求头 + anthropic-version
- 响应: content[0].text
"""

from typing import Any, Dict

import httpx

from genesis_ai.config.settings import settings
from genesis_ai.domain.exceptions import (
    CredentialMissingError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from genesis_ai.providers.registry import ANTHROPIC_CONFIG


class AnthropicAdapter:
    """Anthropic Provider 适配器实现。"""

    name = "anthropic"
    default_model = ANTHROPIC_CONFIG.default_model

    def __init__(self, cfg=settings):
        self._settings = cfg

    def is_available(self) -> bool:
        return bool(getattr(self._settings, "anthropic_api_key", None))

    def invoke(self, prompt: str, model: str) -> str:
        if not self.is_available():
            raise CredentialMissingError(
                code="CREDENTIAL_MISSING", message="ANTHROPIC_API_KEY not set", provider=self.name
            )
        if not prompt or not prompt.strip():
            raise ValidationError(code="EMPTY_PROMPT", message="prompt must not be empty")
        payload = {
            "model": model or self.default_model,
            "max_tokens": getattr(self._settings, "max_tokens", 1000),
            "temperature": getattr(self._settings, "temperature", 0.7),
            "messages": [{"role": "user", "content": prompt}],
        }
        base = getattr(self._settings, "anthropic_base_url", None) or ANTHROPIC_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/messages",
                    json=payload,
                    headers={
                        "x-api-key": self._settings.anthropic_api_key,
                        "anthropic-version": getattr(self._settings, "anthropic_version", "2023-06-01"),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT", message="Anthropic rate limit", http_status=429, provider=self.name
            )
        if resp.status_code >= 400:
            raise UpstreamError(
                code="UPSTREAM_ERROR",
                message=f"Anthropic API error: {resp.status_code} {resp.text[:200]}",
                http_status=resp.status_code,
                provider=self.name,
            )
        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Anthropic response is not JSON", provider=self.name
            )
        return self._parse_response(data)

    def _parse_response(self, data: Dict[str, Any]) -> str:
        try:
            blocks = data["content"]
            # content 里可能混有非 text 块，取第一段文本
            text = next(b["text"] for b in blocks if b.get("type", "text") == "text")
        except (KeyError, TypeError, StopIteration, AttributeError):
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Anthropic response missing content", provider=self.name
            )
        if not isinstance(text, str) or not text:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Anthropic returned empty response", provider=self.name
            )
        return text
