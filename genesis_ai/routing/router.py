"""Provider 路由与降级。

Router 在多个 Provider 适配器之间选择一个可用的并返回其结果：

1. 候选顺序：调用方指定的 preferred_provider（若已知）排第一，
   其余 Provider 按声明顺序跟在后面，每个 Provider 最多尝试一次。
2. 未配置密钥的 Provider 直接跳过（记一条 skipped）。
3. 第一个成功的结果立即返回，后面的候选不再调用。
4. 单个 Provider 的失败被记录并吸收，继续下一个候选。
5. 全部候选耗尽时，route() 返回失败的 RouteOutcome，call()/stream()
   抛出 NoProviderAvailableError。

Router 不保存跨调用状态：每次调用都重新检查密钥，不做重试、退避或熔断。
"""

from typing import Iterator, List, Optional, Sequence

from genesis_ai.domain.exceptions import NoProviderAvailableError, ProviderError
from genesis_ai.domain.models import RouteAttempt, RouteChunk, RouteOutcome, RouteResult
from genesis_ai.infrastructure.logging.logger import logger
from genesis_ai.providers.base import ProviderAdapter
from genesis_ai.providers.registry import provider_for_model


NO_PREFERENCE = {"", "auto"}


class Router:
    def __init__(self, providers: Sequence[ProviderAdapter]):
        if not providers:
            raise ValueError("Router needs at least one provider")
        self._providers = list(providers)

    def candidates(self, preferred_provider: Optional[str] = None) -> List[ProviderAdapter]:
        """返回本次调用的候选顺序。"""

        preferred = self._normalize(preferred_provider)
        if preferred is None:
            return list(self._providers)
        head = [p for p in self._providers if p.name == preferred]
        if not head:
            logger.warning(
                "Unknown preferred provider, ignored",
                extra={"extra": {"preferred_provider": preferred_provider}},
            )
            return list(self._providers)
        return head + [p for p in self._providers if p.name != preferred]

    def route(
        self,
        prompt: str,
        preferred_provider: Optional[str] = None,
        preferred_model: Optional[str] = None,
    ) -> RouteOutcome:
        """依次尝试候选 Provider，返回结构化结果（不抛 ProviderError）。"""

        attempts: List[RouteAttempt] = []
        for adapter in self.candidates(preferred_provider):
            model = self.model_for(adapter, preferred_provider, preferred_model)
            if not adapter.is_available():
                attempts.append(self._skip(adapter, model))
                continue
            try:
                text = adapter.invoke(prompt, model)
            except ProviderError as e:
                attempts.append(self._fail(adapter, model, e))
                continue
            attempts.append(RouteAttempt(provider=adapter.name, model=model, status="ok"))
            logger.info(
                "Provider succeeded",
                extra={"extra": {"provider": adapter.name, "model": model, "attempts": len(attempts)}},
            )
            return RouteOutcome(
                result=RouteResult(text=text, provider_name=adapter.name, model_name=model),
                attempts=attempts,
            )
        logger.warning(
            "No AI provider available",
            extra={"extra": {"attempts": [a.provider + ":" + a.status for a in attempts]}},
        )
        return RouteOutcome(result=None, attempts=attempts)

    def call(
        self,
        prompt: str,
        preferred_provider: Optional[str] = None,
        preferred_model: Optional[str] = None,
    ) -> RouteResult:
        """与 route() 相同，但在全部失败时抛出 NoProviderAvailableError。"""

        outcome = self.route(prompt, preferred_provider, preferred_model)
        if outcome.result is None:
            raise self._exhausted(outcome.attempts)
        return outcome.result

    def stream(
        self,
        prompt: str,
        preferred_provider: Optional[str] = None,
        preferred_model: Optional[str] = None,
    ) -> Iterator[RouteChunk]:
        """流式路由。

        支持 invoke_stream 的适配器逐段输出，其余适配器一次性输出完整回复。
        第一段文本产出之前的失败会切换到下一个候选；之后的失败直接抛出，
        因为已经发给调用方的文本无法撤回。
        """

        attempts: List[RouteAttempt] = []
        for adapter in self.candidates(preferred_provider):
            model = self.model_for(adapter, preferred_provider, preferred_model)
            if not adapter.is_available():
                attempts.append(self._skip(adapter, model))
                continue
            invoke_stream = getattr(adapter, "invoke_stream", None)
            started = False
            try:
                if callable(invoke_stream):
                    for piece in invoke_stream(prompt, model):
                        started = True
                        yield RouteChunk(text=piece, provider_name=adapter.name, model_name=model)
                else:
                    text = adapter.invoke(prompt, model)
                    started = True
                    yield RouteChunk(text=text, provider_name=adapter.name, model_name=model)
            except ProviderError as e:
                if started:
                    raise
                attempts.append(self._fail(adapter, model, e))
                continue
            if not started:
                # 流正常结束但没有任何文本，视为该 Provider 失败
                attempts.append(
                    RouteAttempt(
                        provider=adapter.name,
                        model=model,
                        status="failed",
                        error_code="EMPTY_STREAM",
                        message="stream produced no text",
                    )
                )
                continue
            return
        raise self._exhausted(attempts)

    @staticmethod
    def model_for(
        adapter: ProviderAdapter,
        preferred_provider: Optional[str],
        preferred_model: Optional[str],
    ) -> str:
        """决定某个候选使用的模型。

        模型提示只交给它所属的 Provider：显式指定的 Provider，
        或（未指定 Provider 时）目录中拥有该模型的 Provider。
        """

        if not preferred_model or preferred_model in NO_PREFERENCE:
            return adapter.default_model
        preferred = Router._normalize(preferred_provider)
        if preferred is not None:
            return preferred_model if adapter.name == preferred else adapter.default_model
        owner = provider_for_model(preferred_model)
        if owner == adapter.name:
            return preferred_model
        return adapter.default_model

    @staticmethod
    def _normalize(preferred_provider: Optional[str]) -> Optional[str]:
        if preferred_provider is None:
            return None
        key = preferred_provider.strip().lower()
        return None if key in NO_PREFERENCE else key

    @staticmethod
    def _skip(adapter: ProviderAdapter, model: str) -> RouteAttempt:
        logger.info(
            "Provider skipped, no credential",
            extra={"extra": {"provider": adapter.name}},
        )
        return RouteAttempt(
            provider=adapter.name,
            model=model,
            status="skipped",
            error_code="CREDENTIAL_MISSING",
            message=f"{adapter.name} API key not configured",
        )

    @staticmethod
    def _fail(adapter: ProviderAdapter, model: str, error: ProviderError) -> RouteAttempt:
        logger.warning(
            f"{adapter.name} failed, trying next provider",
            extra={"extra": {
                "provider": adapter.name,
                "model": model,
                "code": error.code,
                "http_status": error.http_status,
                "error": error.message,
            }},
        )
        return RouteAttempt(
            provider=adapter.name,
            model=model,
            status="failed",
            error_code=error.code,
            message=error.message,
        )

    @staticmethod
    def _exhausted(attempts: List[RouteAttempt]) -> NoProviderAvailableError:
        return NoProviderAvailableError(
            code="NO_PROVIDER_AVAILABLE",
            message="No AI providers available",
            http_status=503,
            attempts=attempts,
        )
