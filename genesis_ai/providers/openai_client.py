"""OpenAI Provider 适配器。

本模块负责：

1. 接收统一的 (prompt, model) 请求。
2. 将其转换为 OpenAI chat/completions 的 HTTP 请求格式。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 解析为纯文本；流式模式下逐段产出增量文本。

换句话说，这里就是“厂商 JSON ⇄ 纯文本”的转换层，
Gemini / Anthropic 适配器与此文件结构一致。
"""

import json
from typing import Any, Dict, Iterable

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
from genesis_ai.providers.registry import OPENAI_CONFIG


class OpenAIAdapter:
    """OpenAI 提供方适配器实现。

    - name: Provider 名称（供日志/路由结果使用）。
    - invoke: 非流式调用入口，返回回复文本。
    - invoke_stream: 流式调用入口，逐段 yield 文本。
    """

    name = "openai"
    default_model = OPENAI_CONFIG.default_model

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg

    def is_available(self) -> bool:
        return bool(getattr(self._settings, "openai_api_key", None))

    def invoke(self, prompt: str, model: str) -> str:
        """执行一次非流式对话调用。

        步骤：
        1. 检查密钥与 prompt。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并捕获网络错误/限流/服务端错误。
        4. 取出 choices[0].message.content。
        """

        self._check(prompt)
        payload = self._build_payload(prompt, model, stream=False)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(self._url(), json=payload, headers=self._headers())
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        self._raise_for_status(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="OpenAI response is not JSON", provider=self.name
            )
        return self._parse_response(data)

    def invoke_stream(self, prompt: str, model: str) -> Iterable[str]:
        """执行一次流式对话调用，逐步 yield 增量文本。"""

        self._check(prompt)
        payload = self._build_payload(prompt, model, stream=True)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream("POST", self._url(), json=payload, headers=self._headers()) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text)
                    for line in resp.iter_lines():
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        text = self._parse_stream_chunk(chunk)
                        if text:
                            yield text
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)

    # ---- 辅助方法 ----

    def _check(self, prompt: str) -> None:
        if not self.is_available():
            # 配置缺失走 CredentialMissingError，Router 据此跳过
            raise CredentialMissingError(
                code="CREDENTIAL_MISSING", message="OPENAI_API_KEY not set", provider=self.name
            )
        if not prompt or not prompt.strip():
            raise ValidationError(code="EMPTY_PROMPT", message="prompt must not be empty")

    def _url(self) -> str:
        base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        return f"{base.rstrip('/')}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str, model: str, stream: bool) -> Dict[str, Any]:
        """将 prompt 转成 OpenAI 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model or self.default_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": getattr(self._settings, "max_tokens", 1000),
            "temperature": getattr(self._settings, "temperature", 0.7),
        }
        if stream:
            payload["stream"] = True
        return payload

    def _raise_for_status(self, status_code: int, body: str) -> None:
        if status_code == 429:
            # 限流错误，Router 会直接换下一个 Provider
            raise RateLimitError(
                code="RATE_LIMIT", message="OpenAI rate limit", http_status=429, provider=self.name
            )
        if status_code >= 400:
            raise UpstreamError(
                code="UPSTREAM_ERROR",
                message=f"OpenAI API error: {status_code} {body[:200]}",
                http_status=status_code,
                provider=self.name,
            )

    def _parse_response(self, data: Any) -> str:
        """取出 choices[0].message.content，结构不符时抛 MalformedResponseError。"""

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="OpenAI response missing choices", provider=self.name
            )
        if not isinstance(content, str) or not content:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE", message="OpenAI returned empty response", provider=self.name
            )
        return content

    def _parse_stream_chunk(self, data: Any) -> str:
        """取出 choices[0].delta.content，事件结构不符时抛 MalformedResponseError。"""

        if not isinstance(data, dict):
            raise self._malformed_chunk()
        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise self._malformed_chunk()
        if not choices:
            return ""
        choice = choices[0]
        if not isinstance(choice, dict):
            raise self._malformed_chunk()
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise self._malformed_chunk()
        content = delta.get("content")
        return content if isinstance(content, str) else ""

    def _malformed_chunk(self) -> MalformedResponseError:
        return MalformedResponseError(
            code="MALFORMED_RESPONSE", message="OpenAI stream event has unexpected shape", provider=self.name
        )
