"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 适配器协议 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (openai_client、gemini_client、anthropic_client)。
"""

from typing import List

from genesis_ai.config.settings import settings
from genesis_ai.providers.base import ProviderAdapter
from genesis_ai.providers.openai_client import OpenAIAdapter
from genesis_ai.providers.gemini_client import GeminiAdapter
from genesis_ai.providers.anthropic_client import AnthropicAdapter


_ADAPTERS = {
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
    "anthropic": AnthropicAdapter,
}


def create_provider(name: str, cfg=None) -> ProviderAdapter:
    """根据名称创建 Provider 适配器实例，名称不区分大小写。"""

    adapter_cls = _ADAPTERS.get(name.lower())
    if adapter_cls is None:
        raise KeyError(f"Unknown provider: {name!r}")
    return adapter_cls(cfg or settings)


def build_providers(cfg=None) -> List[ProviderAdapter]:
    """按 provider_order 声明顺序构造全部适配器。"""

    cfg = cfg or settings
    order = getattr(cfg, "provider_order", None) or list(_ADAPTERS)
    return [create_provider(name, cfg) for name in order]

