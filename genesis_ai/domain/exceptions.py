"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。

传播约定：
- ProviderError 及其子类只在 Router 内部被吸收，不会越过 Router。
- NoProviderAvailableError 由 ChatFacade 吸收并替换为固定回复。
- StoreError 由 ChatFacade 记录日志后吸收。
- UnauthenticatedError / ValidationError 直接抛给调用方。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、attempts 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ProviderError(BusinessError):
    """单个 Provider 调用失败的基类，Router 捕获后继续尝试下一个。"""


class CredentialMissingError(ProviderError):
    """Provider 未配置 API 密钥。"""


class UpstreamError(ProviderError):
    """厂商返回非 2xx 状态码，http_status 为上游实际状态码。"""


class RateLimitError(UpstreamError):
    """Provider 限流（HTTP 429）。"""


class MalformedResponseError(ProviderError):
    """响应 JSON 缺少预期字段。"""


class NetworkError(ProviderError):
    """网络层错误，例如连接失败、超时等。"""


class NoProviderAvailableError(BusinessError):
    """所有候选 Provider 都被跳过或失败。

    extra["attempts"] 保存每个候选的 RouteAttempt 记录。
    """


class UnauthenticatedError(BusinessError):
    """当前没有登录用户。"""


class StoreError(BusinessError):
    """消息存储读写失败。"""
