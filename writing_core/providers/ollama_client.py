"""Ollama 本地 Provider 适配器。

- URL: {api_base}/api/chat
- 认证: 无
- 响应: NDJSON，每个非空行都是独立的 JSON 对象，没有结束哨兵

首次加载模型可能需要数分钟，因此超时时间远长于云端 Provider。
"""

from typing import Any, Dict, Iterator, List, Optional

import httpx

from writing_core.domain.exceptions import BusinessError, ConfigurationError
from writing_core.domain.models import ChatMessage
from writing_core.infrastructure.logging.logger import logger
from writing_core.providers.base import CancellationToken
from writing_core.providers.registry import OLLAMA_DEFAULTS
from writing_core.providers.streaming import Framing, dig, never_terminal, stream_lines

DEFAULT_TIMEOUT = 600.0


def extract_message_content(payload: Any) -> Optional[str]:
    return dig(payload, "message", "content")


def normalize_keep_alive(value: Optional[str]) -> str:
    """把设置里的分钟数转成 Ollama 的 keep_alive 字符串，例如 "15" -> "15m"。"""

    text = (value or "").strip()
    if not text:
        text = OLLAMA_DEFAULTS.keep_alive or "15"
    if text[-1] in "smh":
        return text
    return f"{text}m"


class OllamaProvider:
    """Ollama Provider 客户端实现。只要配置了模型名即可使用。"""

    name = "Ollama"

    def __init__(
        self,
        api_base: Optional[str] = None,
        model_name: Optional[str] = None,
        keep_alive: Optional[str] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self._api_base = (api_base or "").strip().rstrip("/") or OLLAMA_DEFAULTS.api_base
        self._model_name = (model_name or "").strip()
        self._keep_alive = normalize_keep_alive(keep_alive)
        self._timeout = timeout
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def keep_alive(self) -> str:
        return self._keep_alive

    @property
    def timeout(self) -> float:
        return self._timeout

    def is_configured(self) -> bool:
        return bool(self._model_name)

    def stream_completion(
        self,
        messages: List[ChatMessage],
        system_prompt: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        try:
            yield from self._stream(messages, system_prompt, cancel)
        except BusinessError as e:
            logger.info("stream.error_chunk", extra={"extra": {"provider": self.name, "code": e.code}})
            yield e.message

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "OllamaProvider":
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
                code="MISSING_MODEL",
                message="Error: Ollama model not configured. Please set it in Settings.",
            )
        yield from stream_lines(
            self._get_client(),
            f"{self._api_base}/api/chat",
            provider=self.name,
            model=self._model_name,
            framing=Framing.NDJSON,
            extract=extract_message_content,
            is_terminal=never_terminal,
            json_body=self._build_payload(messages, system_prompt),
            headers={"Content-Type": "application/json"},
            cancel=cancel,
            where=f" at {self._api_base}",
            hint=". Is Ollama running?",
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, trust_env=False)
        return self._client

    def _build_payload(self, messages: List[ChatMessage], system_prompt: str) -> Dict[str, Any]:
        msgs = []
        if system_prompt and system_prompt.strip():
            msgs.append(ChatMessage.system(system_prompt).to_payload())
        msgs.extend(m.to_payload() for m in messages)
        return {
            "model": self._model_name,
            "messages": msgs,
            "stream": True,
            "keep_alive": self._keep_alive,
        }
