"""Provider 与模型配置。

本模块集中维护各厂商的基础 URL、默认模型与可选模型目录：

- PROVIDER_REGISTRY 的顺序即 Router 的默认声明顺序（openai → gemini → anthropic）。
- 每个 ProviderConfig.models 是 UI 可选的模型目录，也用于根据模型名反查所属 Provider。
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from genesis_ai.domain.models import ModelInfo


@dataclass
class ModelConfig:
    """单个模型的配置。"""

    model_id: str
    display_name: str
    description: str
    max_tokens: int = 1000
    default_temperature: float = 0.7


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    default_model: str
    models: Dict[str, ModelConfig]


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    default_model="gpt-3.5-turbo",
    models={
        "gpt-4": ModelConfig("gpt-4", "GPT-4", "Advanced reasoning and analysis"),
        "gpt-3.5-turbo": ModelConfig("gpt-3.5-turbo", "GPT-3.5 Turbo", "Fast and efficient"),
    },
)

# Gemini 模型 ID 带 "models/" 前缀，直接拼进 URL 路径
GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    default_model="models/gemini-1.5-flash",
    models={
        "models/gemini-1.5-flash": ModelConfig(
            "models/gemini-1.5-flash", "Gemini 1.5 Flash", "Fast and versatile"
        ),
        "models/gemini-1.5-pro": ModelConfig(
            "models/gemini-1.5-pro", "Gemini 1.5 Pro", "Advanced capabilities"
        ),
    },
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    base_url="https://api.anthropic.com/v1",
    default_model="claude-3-opus-20240229",
    models={
        "claude-3-opus-20240229": ModelConfig(
            "claude-3-opus-20240229", "Claude 3 Opus", "Nuanced understanding"
        ),
        "claude-3-sonnet-20240229": ModelConfig(
            "claude-3-sonnet-20240229", "Claude 3 Sonnet", "Balanced performance"
        ),
        "claude-3-haiku-20240307": ModelConfig(
            "claude-3-haiku-20240307", "Claude 3 Haiku", "Fast responses"
        ),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "gemini": GEMINI_CONFIG,
    "anthropic": ANTHROPIC_CONFIG,
}

AUTO_MODEL = ModelInfo(
    id="auto",
    name="Auto-Select (Best Available)",
    description="Automatically chooses the best AI provider",
    provider="auto",
)


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def provider_for_model(model_id: str) -> Optional[str]:
    """根据模型 ID 反查所属 Provider，目录中不存在时返回 None。"""

    for name, cfg in PROVIDER_REGISTRY.items():
        if model_id in cfg.models:
            return name
    return None


def list_models() -> List[ModelInfo]:
    """返回 UI 可选的模型目录，第一项为自动选择。"""

    items = [AUTO_MODEL]
    for name, cfg in PROVIDER_REGISTRY.items():
        for model in cfg.models.values():
            items.append(
                ModelInfo(
                    id=model.model_id,
                    name=model.display_name,
                    description=model.description,
                    provider=name,
                )
            )
    return items
