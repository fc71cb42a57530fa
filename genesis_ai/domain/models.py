"""统一的消息、路由与对话数据模型。

本模块定义了 Router、ChatFacade 与存储层之间共享的标准数据结构：

- Message: 一条已持久化（或待持久化）的对话消息，创建后不可变。
- RouteResult / RouteAttempt / RouteOutcome: Router 的单次调用结果。
- ChatResponse: ChatFacade 返回给 UI 的归一化响应。
- ConversationInfo: 会话列表中的一行摘要。

会话本身不单独存储，而是由共享同一 conversation_id 的消息推导出来。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional


# 消息角色，固定三种取值
Role = Literal["user", "assistant", "system"]
ROLES = ("user", "assistant", "system")

# 所有 Provider 都失败时使用的 provider/model 名
FALLBACK_PROVIDER = "fallback"

AttemptStatus = Literal["ok", "skipped", "failed"]


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - id: 消息ID（uuid）。
    - conversation_id: 所属会话ID。
    - role: user/assistant/system。
    - text: 消息正文。
    - provider / model: 产生（或回答）这轮对话的 Provider 与模型名。
    - created_at: 由 ChatFacade 在创建时赋值。
    """

    id: str
    conversation_id: str
    role: Role
    text: str
    provider: Optional[str]
    model: Optional[str]
    created_at: datetime


@dataclass
class ConversationInfo:
    conversation_id: str
    title: str
    last_message: str
    message_count: int
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "title": self.title,
            "last_message": self.last_message,
            "message_count": self.message_count,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class RouteResult:
    """一次成功路由的结果，只在内存中存在，写库时折叠进 Message。"""

    text: str
    provider_name: str
    model_name: str


@dataclass
class RouteAttempt:
    """Router 对单个候选 Provider 的处理记录。"""

    provider: str
    model: Optional[str]
    status: AttemptStatus
    error_code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class RouteOutcome:
    """Router 的结构化结果：要么带 result，要么只有失败的 attempts。"""

    result: Optional[RouteResult]
    attempts: List[RouteAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class RouteChunk:
    """流式路由产生的一段增量文本。"""

    text: str
    provider_name: str
    model_name: str


@dataclass
class ChatResponse:
    """ChatFacade.send_message 的返回值。

    fallback 为 True 时 text 是固定回复，provider_name/model_name 均为 "fallback"。
    """

    text: str
    conversation_id: str
    provider_name: str
    model_name: str
    timestamp: datetime
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.text,
            "conversation_id": self.conversation_id,
            "provider": self.provider_name,
            "model": self.model_name,
            "timestamp": self.timestamp.isoformat(),
            "fallback": self.fallback,
        }


@dataclass
class SessionUser:
    id: str
    email: Optional[str] = None


@dataclass
class ModelInfo:
    """可选模型目录中的一项，供 UI 下拉框展示。"""

    id: str
    name: str
    description: str
    provider: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "provider": self.provider,
        }
