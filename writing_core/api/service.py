"""对外 API 服务模块。

提供简化的接口供界面层调用：

- ChatSession: 一个聊天窗口对应的会话，负责累积流式文本块、
  在正常结束时把完整回答写回历史、在取消时追加取消标记。
- run_action: 一次性的写作动作（如校对），收集完整回答用于替换选中文本。
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from writing_core.config.settings import Settings, settings as default_settings
from writing_core.domain.conversation import ConversationManager
from writing_core.domain.models import ChatMessage
from writing_core.infrastructure.logging.logger import logger
from writing_core.prompts import DEFAULT_CHAT_SYSTEM_PROMPT, INCOMPATIBLE_TEXT_MARKER, WritingAction, load_actions
from writing_core.providers import AIProvider, CancellationToken, create_provider_from_settings

CANCELLED_MARKER = "\n\n[Cancelled]"

ProviderFactory = Callable[[Settings], AIProvider]


@dataclass
class ChatTurn:
    """一轮问答的结果。

    - text: 展示给用户的完整文本（取消时带有取消标记）。
    - cancelled: 本轮是否被用户取消；取消的回答不会写入历史。
    """

    text: str
    cancelled: bool = False


def collect(chunks: Iterable[str]) -> str:
    """按产出顺序拼接全部文本块。"""

    return "".join(chunks)


class ChatSession:
    """单个聊天窗口的会话。

    同一时间只允许一轮 ask 在进行，由调用方保证。
    Provider 在每轮开始时由当前 Settings 值创建，结束后关闭。
    """

    def __init__(
        self,
        provider_factory: Optional[ProviderFactory] = None,
        settings: Optional[Settings] = None,
        max_messages: Optional[int] = None,
    ):
        self._settings = settings or default_settings
        self._provider_factory = provider_factory or create_provider_from_settings
        self._conversation = ConversationManager(
            max_messages=max_messages if max_messages is not None else self._settings.max_conversation_messages
        )
        self._current_cancel: Optional[CancellationToken] = None

    @property
    def conversation(self) -> ConversationManager:
        return self._conversation

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def actions(self) -> List[WritingAction]:
        """当前配置中的写作动作，未配置时为默认动作。"""

        return load_actions(self._settings.actions)

    def update_settings(self, settings: Settings) -> None:
        """替换配置，下一轮 ask 生效。"""

        self._settings = settings

    def new_conversation(self) -> None:
        self.cancel()
        self._conversation.clear()

    def cancel(self) -> None:
        """取消正在进行的一轮（若有）。可从其他线程调用。"""

        if self._current_cancel is not None:
            self._current_cancel.cancel()

    def ask(
        self,
        text: str,
        system_prompt: str = DEFAULT_CHAT_SYSTEM_PROMPT,
        cancel: Optional[CancellationToken] = None,
        on_chunk: Optional[Callable[[str], Any]] = None,
    ) -> Optional[ChatTurn]:
        """发送一条用户消息并流式接收回答。

        Args:
            text: 用户输入，去掉首尾空白后为空则直接返回 None。
            system_prompt: 本轮使用的 system prompt，不写入历史。
            cancel: 取消信号，不传则内部创建，可通过 cancel() 触发。
            on_chunk: 每收到一个文本块后回调，参数为目前为止的累计文本。

        Returns:
            ChatTurn，或输入为空时返回 None。
        """

        text = (text or "").strip()
        if not text:
            return None
        self._conversation.add_user_message(text)
        token = cancel or CancellationToken()
        self._current_cancel = token

        provider = self._provider_factory(self._settings)
        parts = []
        try:
            for chunk in provider.stream_completion(
                self._conversation.get_messages_for_api(),
                system_prompt,
                token,
            ):
                parts.append(chunk)
                if on_chunk is not None:
                    on_chunk("".join(parts))
        finally:
            provider.close()
            self._current_cancel = None

        reply = "".join(parts)
        log_ctx = {"provider": provider.name, "chunks": len(parts), "history": len(self._conversation)}
        if token.cancelled:
            self._log(logging.INFO, "session.turn_cancelled", log_ctx)
            return ChatTurn(text=reply + CANCELLED_MARKER, cancelled=True)

        self._conversation.add_assistant_message(reply)
        self._log(logging.INFO, "session.turn_finished", log_ctx)
        return ChatTurn(text=reply)

    def ask_action(
        self,
        action: WritingAction,
        text: str,
        cancel: Optional[CancellationToken] = None,
        on_chunk: Optional[Callable[[str], Any]] = None,
    ) -> Optional[ChatTurn]:
        """在聊天窗口中执行写作动作：前缀 + 文本作为用户消息，指令作为 system prompt。"""

        if not (text or "").strip():
            return None
        return self.ask(
            action.build_user_message(text),
            system_prompt=action.instruction,
            cancel=cancel,
            on_chunk=on_chunk,
        )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def run_action(
    action: WritingAction,
    text: str,
    *,
    settings: Optional[Settings] = None,
    provider: Optional[AIProvider] = None,
    cancel: Optional[CancellationToken] = None,
) -> Optional[str]:
    """一次性执行写作动作，返回用于替换选中文本的结果。

    只发送一条用户消息，不使用会话历史。
    选中文本为空、被取消、回答为空或回答中含有 INCOMPATIBLE_TEXT_MARKER 时返回 None。
    传入 provider 时由调用方负责关闭。
    """

    if not (text or "").strip():
        return None
    owned = provider is None
    if provider is None:
        provider = create_provider_from_settings(settings or default_settings)
    messages = [ChatMessage.user(action.build_user_message(text))]
    try:
        response = collect(provider.stream_completion(messages, action.instruction, cancel)).strip()
    finally:
        if owned:
            provider.close()

    if cancel is not None and cancel.cancelled:
        logger.info("action.cancelled", extra={"extra": {"action": action.name}})
        return None
    if not response or INCOMPATIBLE_TEXT_MARKER in response:
        logger.info("action.skipped", extra={"extra": {"action": action.name, "empty": not response}})
        return None
    logger.info("action.finished", extra={"extra": {"action": action.name, "chars": len(response)}})
    return response
