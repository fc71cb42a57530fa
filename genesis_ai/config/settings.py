"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

进程启动时构造一次 `settings`，之后以参数形式注入 Provider 适配器、
存储与会话组件，各组件不再自行读取环境变量。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


KNOWN_PROVIDERS = ("openai", "gemini", "anthropic")

DEFAULT_FALLBACK_RESPONSE = (
    "I'm here to help! I'm your Genesis AI assistant. How can I assist you with your "
    "genealogy research, business automation, or cultural heritage preservation today?"
)


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("GENESIS_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    provider_order: List[str] = Field(
        default_factory=lambda: list(KNOWN_PROVIDERS),
        description="Router 依次尝试的 Provider 声明顺序",
    )
    default_provider: Optional[str] = Field(
        default=None,
        description="未指定 provider 时优先尝试的 Provider，None/auto 表示不偏好",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "vite_openai_api_key"),
        description="OpenAI API 密钥",
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")
    # Gemini
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "vite_gemini_api_key"),
        description="Gemini API 密钥",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    # Anthropic
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("anthropic_api_key", "vite_anthropic_api_key"),
        description="Anthropic API 密钥",
    )
    anthropic_base_url: str = Field(default="https://api.anthropic.com/v1", description="Anthropic API 基础URL")
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")

    max_tokens: int = Field(default=1000, ge=1, description="单次回复最大 token 数")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    fallback_response: str = Field(
        default=DEFAULT_FALLBACK_RESPONSE,
        description="所有 Provider 都不可用时返回的固定回复",
    )

    # ---- 存储 / 会话 ----
    storage_backend: str = Field(default="json", description="消息存储后端：json 或 supabase")
    storage_root: str = Field(default=".storage", description="本地存储根目录")
    conversation_table: str = Field(default="ai_conversation_history", description="消息表名")
    supabase_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("supabase_url", "vite_supabase_url"),
        description="Supabase 项目 URL",
    )
    supabase_anon_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("supabase_anon_key", "vite_supabase_anon_key"),
        description="Supabase anon key",
    )
    supabase_access_token: Optional[str] = Field(default=None, description="当前登录用户的 access token")
    user_id: Optional[str] = Field(default=None, description="本地单用户模式下的用户ID")

    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("provider_order")
    @classmethod
    def validate_provider_order(cls, v: List[str]) -> List[str]:
        order: List[str] = []
        for name in v:
            key = name.strip().lower()
            if key not in KNOWN_PROVIDERS:
                raise ValueError(f"Unknown provider in provider_order: {name!r}")
            if key not in order:
                order.append(key)
        return order

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        key = v.strip().lower()
        if key not in {"json", "supabase"}:
            raise ValueError(f"Unknown storage backend: {v!r}")
        return key

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
