"""OpenAI 兼容 Provider 适配器。

适用于 OpenAI 以及所有兼容 chat/completions 端点的服务：
- URL: {api_base}/chat/completions
- 认证: Authorization: Bearer <api_key>，可选 OpenAI-Organization / OpenAI-Project 头
- 响应: SSE，每行 ``data: {...}``，以 ``data: [DONE]`` 结束

文本增量位于 choices[0].delta.content。
"""

from typing import Any, Dict, Iterator, List, Optional

import httpx

from writing_core.domain.exceptions import BusinessError, ConfigurationError
from writing_core.domain.models import ChatMessage
from writing_core.infrastructure.logging.logger import logger
from writing_core.providers.base import CancellationToken
from writing_core.providers.registry import OPENAI_DEFAULTS
from writing_core.providers.streaming import Framing, dig, stream_lines

DONE_SENTINEL = "[DONE]"


def extract_delta(payload: Any) -> Optional[str]:
    return dig(payload, "choices", 0, "delta", "content")


def is_done(data: str) -> bool:
    return data == DONE_SENTINEL


class OpenAICompatibleProvider:
    """OpenAI 兼容 Provider 客户端实现。

    - name: Provider 名称（供界面/日志使用）。
    - stream_completion: 对外统一调用入口，逐个产出文本块。
    """

    name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str],
        api_base: Optional[str] = None,
        model_name: Optional[str] = None,
        organisation: Optional[str] = None,
        project: Optional[str] = None,
        *,
        temperature: float = OPENAI_DEFAULTS.temperature,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self._api_key = (api_key or "").strip()
        self._api_base = (api_base or "").strip().rstrip("/") or OPENAI_DEFAULTS.api_base
        self._model_name = (model_name or "").strip() or OPENAI_DEFAULTS.model_name
        self._organisation = (organisation or "").strip() or None
        self._project = (project or "").strip() or None
        self._temperature = temperature
        self._timeout = timeout
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def api_base(self) -> str:
        return self._api_base

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def stream_completion(
        self,
        messages: List[ChatMessage],
        system_prompt: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        """执行一次流式补全，逐步 yield 文本块。

        配置缺失、网络错误、非 2xx 状态都会转成最后一条文本块，不会抛出。
        """

        try:
            yield from self._stream(messages, system_prompt, cancel)
        except BusinessError as e:
            logger.info("stream.error_chunk", extra={"extra": {"provider": self.name, "code": e.code}})
            yield e.message

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "OpenAICompatibleProvider":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 辅助方法 ----

    def _stream(
        self,
        messages: List[ChatMessage],
        system_prompt: str,
        cancel: Optional[CancellationToken],
    ) -> Iterator[str]:
        if not self.is_configured():
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="Error: OpenAI API key not configured. Please set it in Settings.",
            )
        # HTTP 头只允许 ASCII
        if not all(v.isascii() for v in (self._api_key, self._organisation or "", self._project or "")):
            raise ConfigurationError(
                code="INVALID_API_KEY",
                message="Error: OpenAI API key contains invalid characters. Please check it in Settings.",
            )
        yield from stream_lines(
            self._get_client(),
            f"{self._api_base}/chat/completions",
            provider=self.name,
            model=self._model_name,
            framing=Framing.SSE,
            extract=extract_delta,
            is_terminal=is_done,
            json_body=self._build_payload(messages, system_prompt),
            headers=self._build_headers(),
            cancel=cancel,
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, trust_env=False)
        return self._client

    def _build_payload(self, messages: List[ChatMessage], system_prompt: str) -> Dict[str, Any]:
        """将消息历史转成 chat/completions 请求 JSON。"""

        msgs = []
        if system_prompt and system_prompt.strip():
            msgs.append(ChatMessage.system(system_prompt).to_payload())
        msgs.extend(m.to_payload() for m in messages)
        return {
            "model": self._model_name,
            "messages": msgs,
            "stream": True,
            "temperature": self._temperature,
        }

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._organisation:
            headers["OpenAI-Organization"] = self._organisation
        if self._project:
            headers["OpenAI-Project"] = self._project
        return headers
