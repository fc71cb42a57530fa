"""Chat Facade：UI 发送消息的唯一入口。

一次 send_message 的流程：

1. 校验消息非空，解析当前用户（没有用户则抛 UnauthenticatedError）。
2. 未提供 conversation_id 时生成新的 UUID。
3. 调用 Router.route()；全部 Provider 失败时替换为固定回复（provider/model 为 "fallback"）。
4. 分两次写入用户消息与助手消息，写入失败只记录日志。
5. 返回归一化的 ChatResponse。

只有 UnauthenticatedError 与 ValidationError 会抛给调用方，
Provider 失败与存储失败都在这里被吸收并记录。
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple
from uuid import uuid4

from genesis_ai.domain.exceptions import (
    NoProviderAvailableError,
    ProviderError,
    StoreError,
    UnauthenticatedError,
    ValidationError,
)
from genesis_ai.domain.models import (
    FALLBACK_PROVIDER,
    ChatResponse,
    ConversationInfo,
    Message,
    ModelInfo,
    RouteAttempt,
    RouteResult,
    SessionUser,
)
from genesis_ai.infrastructure.auth.session import SessionProvider
from genesis_ai.infrastructure.logging.logger import logger
from genesis_ai.infrastructure.storage.message_store import MessageStore
from genesis_ai.providers.registry import list_models
from genesis_ai.routing.router import Router


class ChatFacade:
    def __init__(
        self,
        router: Router,
        store: MessageStore,
        session: SessionProvider,
        fallback_text: str,
        default_provider: Optional[str] = None,
    ):
        self._router = router
        self._store = store
        self._session = session
        self._fallback_text = fallback_text
        self._default_provider = default_provider

    def send_message(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ChatResponse:
        """发送一条用户消息并返回助手回复。

        Args:
            message: 用户输入（必填，非空）
            conversation_id: 会话ID（可选，不提供则新建）
            provider: 优先尝试的 Provider（可选，"auto" 等同于不指定）
            model: 模型提示（可选）

        Raises:
            ValidationError: 消息为空
            UnauthenticatedError: 当前没有登录用户
        """
        user, conversation_id = self._begin(message, conversation_id)
        user_msg = self._new_message(conversation_id, "user", message)

        outcome = self._router.route(message, provider or self._default_provider, model)
        if outcome.result is not None:
            result = outcome.result
        else:
            result = self._fallback(outcome.attempts)

        assistant_msg = self._new_message(conversation_id, "assistant", result.text)
        self._persist(user, user_msg, assistant_msg, result)
        return ChatResponse(
            text=result.text,
            conversation_id=conversation_id,
            provider_name=result.provider_name,
            model_name=result.model_name,
            timestamp=assistant_msg.created_at,
            fallback=outcome.result is None,
        )

    def stream_message(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, Iterator[str]]:
        """流式版本的 send_message。

        参数校验与用户解析立即执行；返回 (conversation_id, 文本增量迭代器)，
        迭代结束或调用方关闭迭代器时写入两条消息。
        """
        user, conversation_id = self._begin(message, conversation_id)
        user_msg = self._new_message(conversation_id, "user", message)
        return conversation_id, self._stream(user, user_msg, provider or self._default_provider, model)

    def get_history(self, conversation_id: Optional[str] = None) -> List[Message]:
        user = self._require_user()
        return self._store.get_history(user.id, conversation_id)

    def get_conversation_list(self) -> List[ConversationInfo]:
        user = self._require_user()
        return self._store.get_conversation_list(user.id)

    def delete_conversation(self, conversation_id: str) -> bool:
        user = self._require_user()
        if not conversation_id:
            return False
        return self._store.delete_conversation(user.id, conversation_id)

    @staticmethod
    def create_conversation() -> str:
        """会话不单独存储，第一条消息写入时隐式创建。"""

        return str(uuid4())

    @staticmethod
    def get_available_models() -> List[ModelInfo]:
        return list_models()

    # ---- 内部方法 ----

    def _begin(self, message: str, conversation_id: Optional[str]) -> Tuple[SessionUser, str]:
        if not message or not message.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message must not be empty")
        user = self._require_user()
        return user, conversation_id or self.create_conversation()

    def _require_user(self) -> SessionUser:
        user = self._session.get_user()
        if user is None:
            raise UnauthenticatedError(code="UNAUTHENTICATED", message="User not authenticated", http_status=401)
        return user

    def _stream(
        self,
        user: SessionUser,
        user_msg: Message,
        provider: Optional[str],
        model: Optional[str],
    ) -> Iterator[str]:
        parts: List[str] = []
        result = RouteResult(text="", provider_name=FALLBACK_PROVIDER, model_name=FALLBACK_PROVIDER)
        try:
            try:
                for chunk in self._router.stream(user_msg.text, provider, model):
                    result.provider_name = chunk.provider_name
                    result.model_name = chunk.model_name
                    parts.append(chunk.text)
                    yield chunk.text
            except NoProviderAvailableError as e:
                fallback = self._fallback(e.extra.get("attempts") or [])
                result.provider_name = fallback.provider_name
                result.model_name = fallback.model_name
                parts.append(fallback.text)
                yield fallback.text
            except ProviderError as e:
                # 已经输出过文本，只能截断并保留已收到的部分
                logger.warning(
                    "Stream interrupted",
                    extra={"extra": {"provider": result.provider_name, "code": e.code, "error": e.message}},
                )
        finally:
            # 调用方提前停止迭代时也写入已收到的部分
            result.text = "".join(parts)
            assistant_msg = self._new_message(user_msg.conversation_id, "assistant", result.text)
            self._persist(user, user_msg, assistant_msg, result)

    def _fallback(self, attempts: List[RouteAttempt]) -> RouteResult:
        logger.warning(
            "AI call failed, using fallback response",
            extra={"extra": {
                "attempts": [
                    {"provider": a.provider, "status": a.status, "code": a.error_code} for a in attempts
                ],
            }},
        )
        return RouteResult(
            text=self._fallback_text,
            provider_name=FALLBACK_PROVIDER,
            model_name=FALLBACK_PROVIDER,
        )

    def _new_message(self, conversation_id: str, role: str, text: str) -> Message:
        return Message(
            id=str(uuid4()),
            conversation_id=conversation_id,
            role=role,
            text=text,
            provider=None,
            model=None,
            created_at=datetime.now(timezone.utc),
        )

    def _persist(
        self,
        user: SessionUser,
        user_msg: Message,
        assistant_msg: Message,
        result: RouteResult,
    ) -> None:
        # 两条消息都记录回答本轮的 provider/model
        for msg in (user_msg, assistant_msg):
            record = replace(msg, provider=result.provider_name, model=result.model_name)
            try:
                self._store.add_message(user.id, record)
            except StoreError as e:
                logger.warning(
                    "Database storage failed, but continuing",
                    extra={"extra": {
                        "conversation_id": msg.conversation_id,
                        "role": msg.role,
                        "code": e.code,
                        "error": e.message,
                    }},
                )
