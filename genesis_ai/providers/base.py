"""Provider 抽象接口。

Router 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个适配器（如 OpenAIAdapter）。
- 负责：把统一的 (prompt, model) 请求转成具体 API 请求，并把响应 JSON 解析为纯文本。

这样可以在不改 Router 代码的前提下接入更多厂商。
"""

from typing import Protocol


class ProviderAdapter(Protocol):
    """LLM Provider 适配器协议。

    实现者需要提供：
    - name: Provider 名称，用于日志与 RouteResult。
    - default_model: 未指定模型时使用的模型 ID。
    - is_available(): 是否配置了 API 密钥（Router 唯一的可用性依据）。
    - invoke(prompt, model): 执行一次非流式调用，返回回复文本。

    可选实现 invoke_stream(prompt, model) -> Iterable[str]，Router 检测到后走流式输出。
    """

    name: str
    default_model: str

    def is_available(self) -> bool:
        ...

    def invoke(self, prompt: str, model: str) -> str:
        ...

