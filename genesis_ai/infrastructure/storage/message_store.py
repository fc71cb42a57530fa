"""消息存储客户端。

MessageStore 是对消息表的薄封装：写入单条消息、按用户（可选按会话）读取历史、
在内存中按 conversation_id 分组生成会话列表、按会话批量删除。

读操作失败时记录日志并返回空列表，删除失败返回 False；只有 add_message
会抛出 StoreError，由 ChatFacade 决定是否吸收。
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

from genesis_ai.config.settings import settings
from genesis_ai.domain.exceptions import BusinessError, StoreError
from genesis_ai.domain.models import ROLES, ConversationInfo, Message
from genesis_ai.infrastructure.logging.logger import logger
from genesis_ai.infrastructure.storage.json_table import JsonMessageTable
from genesis_ai.infrastructure.storage.supabase_table import SupabaseMessageTable


TITLE_MAX_CHARS = 50


class MessageTable(Protocol):
    """类 Supabase 的单表 CRUD 协议，过滤条件均为等值匹配。"""

    def select(self, filters: Mapping[str, str], order_by: str = "created_at") -> List[Dict[str, Any]]:
        ...

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, filters: Mapping[str, str]) -> int:
        ...


def format_ts(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_ts(raw: Any) -> datetime:
    ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def message_to_row(user_id: str, message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "user_id": user_id,
        "conversation_id": message.conversation_id,
        "message": message.text,
        "role": message.role,
        "provider": message.provider,
        "model": message.model,
        "created_at": format_ts(message.created_at),
    }


def row_to_message(row: Mapping[str, Any]) -> Message:
    role = row["role"]
    if role not in ROLES:
        raise ValueError(f"unexpected role {role!r}")
    return Message(
        id=str(row["id"]),
        conversation_id=str(row["conversation_id"]),
        role=role,
        text=row.get("message") or "",
        provider=row.get("provider"),
        model=row.get("model"),
        created_at=parse_ts(row["created_at"]),
    )


def _title_from(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= TITLE_MAX_CHARS:
        return text
    return text[:TITLE_MAX_CHARS].rstrip() + "…"


class MessageStore:
    def __init__(self, table: MessageTable):
        self._table = table

    def add_message(self, user_id: str, message: Message) -> None:
        try:
            self._table.insert(message_to_row(user_id, message))
        except StoreError:
            raise
        except BusinessError as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=e.message)

    def get_history(self, user_id: str, conversation_id: Optional[str] = None) -> List[Message]:
        """按创建时间升序返回用户的消息，可选限定到某个会话。"""

        filters = {"user_id": user_id}
        if conversation_id:
            filters["conversation_id"] = conversation_id
        try:
            rows = self._table.select(filters, order_by="created_at")
        except BusinessError as e:
            logger.warning(
                "Chat history read failed",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code, "error": e.message}},
            )
            return []
        return self._to_messages(rows)

    def get_conversation_list(self, user_id: str) -> List[ConversationInfo]:
        """在内存中按 conversation_id 分组，每组返回一行摘要，最近更新的排在前面。"""

        messages = self.get_history(user_id)
        groups: Dict[str, List[Message]] = {}
        for m in messages:
            groups.setdefault(m.conversation_id, []).append(m)

        items: List[ConversationInfo] = []
        for conversation_id, msgs in groups.items():
            last = msgs[-1]
            first_user = next((m for m in msgs if m.role == "user"), None)
            items.append(
                ConversationInfo(
                    conversation_id=conversation_id,
                    title=_title_from(first_user.text) if first_user else "",
                    last_message=last.text,
                    message_count=len(msgs),
                    last_updated=last.created_at,
                )
            )
        items.sort(key=lambda c: c.last_updated, reverse=True)
        return items

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        try:
            deleted = self._table.delete({"user_id": user_id, "conversation_id": conversation_id})
        except BusinessError as e:
            logger.warning(
                "Delete conversation failed",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code, "error": e.message}},
            )
            return False
        logger.info(
            "Conversation deleted",
            extra={"extra": {"conversation_id": conversation_id, "deleted": deleted}},
        )
        return True

    @staticmethod
    def _to_messages(rows: List[Dict[str, Any]]) -> List[Message]:
        items: List[Message] = []
        for row in rows:
            try:
                items.append(row_to_message(row))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping malformed message row", extra={"extra": {"error": str(e)}})
        items.sort(key=lambda m: m.created_at)
        return items


def create_message_table(cfg=None) -> MessageTable:
    """根据 storage_backend 创建消息表实现。"""

    cfg = cfg or settings
    backend = getattr(cfg, "storage_backend", "json")
    if backend == "supabase":
        return SupabaseMessageTable(cfg)
    return JsonMessageTable(
        root=getattr(cfg, "storage_root", ".storage"),
        table=getattr(cfg, "conversation_table", "ai_conversation_history"),
    )
