"""Gemini Provider 适配器。

接口与 OpenAI 不同：
- URL: {base_url}/{model}:generateContent?key=<api_key>（密钥走 query 参数）
- 请求体: {contents: [{parts: [{text}]}], generationConfig: {maxOutputTokens, temperature}}
- 响应: candidates[0].content.parts[0].text
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
from genesis_ai.providers.registry import GEMINI_CONFIG


class GeminiAdapter:
    """Gemini Provider 适配器实现。"""

    name = "gemini"
    default_model = GEMINI_CONFIG.default_model

    def __init__(self, cfg=settings):
        self._settings = cfg

    def is_available(self) -> bool:
        return bool(getattr(self._settings, "gemini_api_key", None))

    def invoke(self, prompt: str, model: str) -> str:
        if not self.is_available():
            raise CredentialMissingError(
                code="CREDENTIAL_MISSING", message="GEMINI_API_KEY not set", provider=self.name
            )
        if not prompt or not prompt.strip():
            raise ValidationError(code="EMPTY_PROMPT", message="prompt must not be empty")
        payload = self._build_payload(prompt)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self._url(model),
                    params={"key": self._settings.gemini_api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT", message="Gemini rate limit", http_status=429, provider=self.name
            )
        if resp.status_code >= 400:
            raise UpstreamError(
                code="UPSTREAM_ERROR",
                message=f"Gemini API error: {resp.status_code} {resp.text[:200]}",
                http_status=resp.status_code,
                provider=self.name,
            )
        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Gemini response is not JSON", provider=self.name
            )
        return self._parse_response(data)

    # ---- 辅助方法 ----

    def _url(self, model: str) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        return f"{base.rstrip('/')}/{self.normalize_model(model or self.default_model)}:generateContent"

    @staticmethod
    def normalize_model(model: str) -> str:
        """Gemini 的模型路径必须带 models/ 前缀。"""

        return model if model.startswith("models/") else f"models/{model}"

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": getattr(self._settings, "max_tokens", 1000),
                "temperature": getattr(self._settings, "temperature", 0.7),
            },
        }

    def _parse_response(self, data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Gemini response missing candidates", provider=self.name
            )
        if not isinstance(text, str) or not text:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="Gemini returned empty response", provider=self.name
            )
        return text
