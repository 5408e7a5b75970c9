"""Google Gemini Provider 适配器。

- URL: https://generativelanguage.googleapis.com/v1beta/models/{model}:streamGenerateContent?key={key}&alt=sse
- 认证: API Key 作为 query 参数 ``key``
- 响应: SSE，每行 ``data: {...}``，没有结束哨兵，响应体关闭即结束

请求结构与 OpenAI 不同：
- 历史放在 contents 中，assistant 映射为 "model"，其余角色映射为 "user"；
- system prompt 放在 systemInstruction；
- 采样参数放在 generationConfig。
"""

from typing import Any, Dict, Iterator, List, Optional

import httpx

from writing_core.domain.exceptions import BusinessError, ConfigurationError
from writing_core.domain.models import ChatMessage, Role
from writing_core.infrastructure.logging.logger import logger
from writing_core.providers.base import CancellationToken
from writing_core.providers.registry import GEMINI_DEFAULTS
from writing_core.providers.streaming import Framing, dig, never_terminal, stream_lines


def extract_candidate_text(payload: Any) -> Optional[str]:
    return dig(payload, "candidates", 0, "content", "parts", 0, "text")


class GeminiProvider:
    """Gemini Provider 客户端实现。"""

    name = "Gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model_name: Optional[str] = None,
        *,
        api_base: Optional[str] = None,
        temperature: float = GEMINI_DEFAULTS.temperature,
        max_output_tokens: int = GEMINI_DEFAULTS.max_output_tokens or 8192,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self._api_key = (api_key or "").strip()
        self._model_name = (model_name or "").strip() or GEMINI_DEFAULTS.model_name
        self._api_base = (api_base or "").strip().rstrip("/") or GEMINI_DEFAULTS.api_base
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
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
        try:
            yield from self._stream(messages, system_prompt, cancel)
        except BusinessError as e:
            logger.info("stream.error_chunk", extra={"extra": {"provider": self.name, "code": e.code}})
            yield e.message

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GeminiProvider":
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
                message="Error: Gemini API key not configured. Please set it in Settings.",
            )
        yield from stream_lines(
            self._get_client(),
            f"{self._api_base}/models/{self._model_name}:streamGenerateContent",
            provider=self.name,
            model=self._model_name,
            framing=Framing.SSE,
            extract=extract_candidate_text,
            is_terminal=never_terminal,
            json_body=self._build_payload(messages, system_prompt),
            headers={"Content-Type": "application/json"},
            params={"key": self._api_key, "alt": "sse"},
            cancel=cancel,
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, trust_env=False)
        return self._client

    def _build_payload(self, messages: List[ChatMessage], system_prompt: str) -> Dict[str, Any]:
        contents = [
            {
                "role": "model" if m.role is Role.ASSISTANT else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
        ]
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_output_tokens,
            },
        }
        # Gemini 拒绝空的 systemInstruction.parts[].text
        if system_prompt and system_prompt.strip():
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return payload
