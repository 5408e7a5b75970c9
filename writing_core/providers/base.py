"""Provider 抽象接口。

上层会话逻辑不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个厂商实现一个 Provider（OpenAICompatibleProvider / GeminiProvider / OllamaProvider）。
- 负责：把消息历史转成具体 API 请求，并把流式响应逐行解码为文本块。

stream_completion 永远不向调用方抛出业务异常：配置缺失、网络错误、
非 2xx 状态都会变成最后一条可见文本块，然后正常结束迭代。
"""

import threading
from typing import Iterator, List, Optional, Protocol

from writing_core.domain.models import ChatMessage


class CancellationToken:
    """协作式取消信号。

    可以在 UI 线程调用 cancel()，消费流的线程在下一次读取网络数据之前
    检查 cancelled，已经产出的文本块不会被撤回。
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class AIProvider(Protocol):
    """流式补全 Provider 协议。

    实现者需要提供：
    - name: Provider 显示名称，用于界面和日志。
    - is_configured(): 纯判断，不产生网络请求。
    - stream_completion(...): 惰性、单消费者、不可重启的文本块迭代器。
    - close(): 释放实例持有的 HTTP 连接池。
    """

    name: str

    def is_configured(self) -> bool:
        ...

    def stream_completion(
        self,
        messages: List[ChatMessage],
        system_prompt: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        ...

    def close(self) -> None:
        ...
