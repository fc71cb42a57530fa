"""Genesis AI 顶层包。

该包提供 Genesis 助手的 AI Provider 路由核心，
包括配置加载、领域模型、Provider 适配、路由降级、
消息持久化与对外的聊天接口。
"""

from genesis_ai.chat.facade import ChatFacade
from genesis_ai.routing.router import Router

__all__ = ["ChatFacade", "Router"]
