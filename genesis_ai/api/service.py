"""对外 API 服务模块。

提供简化的函数接口供 UI 层调用，返回值均为可直接序列化的 dict/list。
"""

from typing import Any, Dict, Optional

from genesis_ai.chat.facade import ChatFacade
from genesis_ai.config.settings import Settings, settings
from genesis_ai.infrastructure.auth.session import create_session
from genesis_ai.infrastructure.logging.logger import logger
from genesis_ai.infrastructure.storage.message_store import MessageStore, create_message_table
from genesis_ai.providers import build_providers
from genesis_ai.routing.router import Router


_facade: Optional[ChatFacade] = None


def build_facade(cfg: Settings) -> ChatFacade:
    """用一份配置装配 Router、存储与会话。"""
    return ChatFacade(
        router=Router(build_providers(cfg)),
        store=MessageStore(create_message_table(cfg)),
        session=create_session(cfg),
        fallback_text=cfg.fallback_response,
        default_provider=cfg.default_provider,
    )


def get_default_facade() -> ChatFacade:
    """获取默认的 ChatFacade 实例（单例）。"""
    global _facade
    if _facade is None:
        _facade = build_facade(settings)
    return _facade


def send_message(
    message: str,
    conversation_id: Optional[str] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """发送消息并返回助手回复。

    Args:
        message: 用户输入内容
        conversation_id: 会话ID（可选，不提供则创建新会话）
        provider: openai / gemini / anthropic / auto（可选）
        model: 模型ID（可选）

    Returns:
        包含 response、conversation_id、provider、model、timestamp 的字典

    Raises:
        UnauthenticatedError: 当前没有登录用户
        ValidationError: 消息为空
    """
    try:
        return get_default_facade().send_message(message, conversation_id, provider, model).to_dict()
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "conversation_id": conversation_id,
            "error": str(e),
        }})
        raise


def get_history(conversation_id: Optional[str] = None) -> list[Dict[str, Any]]:
    """获取消息历史，按创建时间升序。

    Args:
        conversation_id: 会话ID（可选，不提供则返回全部会话的消息）
    """
    msgs = get_default_facade().get_history(conversation_id)
    return [
        {
            "id": m.id,
            "conversation_id": m.conversation_id,
            "message": m.text,
            "role": m.role,
            "provider": m.provider,
            "model": m.model,
            "created_at": m.created_at.isoformat(),
        }
        for m in msgs
    ]


def get_conversation_list() -> list[Dict[str, Any]]:
    """列出当前用户的所有会话，最近更新的在前。"""
    return [c.to_dict() for c in get_default_facade().get_conversation_list()]


def delete_conversation(conversation_id: str) -> bool:
    return get_default_facade().delete_conversation(conversation_id)


def create_conversation() -> str:
    return get_default_facade().create_conversation()


def get_available_models() -> list[Dict[str, str]]:
    return [m.to_dict() for m in get_default_facade().get_available_models()]
