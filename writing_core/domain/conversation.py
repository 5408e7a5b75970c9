"""单个聊天会话的有界消息历史。"""

from typing import List, Tuple

from .models import ChatMessage


class ConversationManager:
    """按时间顺序保存一次聊天会话的消息，长度不超过 max_messages。

    - 每个聊天窗口/会话创建一个实例，不跨会话共享，也不落盘。
    - 超出上限时从最早的消息开始逐条淘汰（FIFO）。
    - system prompt 不存放在这里，每次调用时由调用方单独传给 Provider。
    """

    def __init__(self, max_messages: int = 50):
        self._messages: List[ChatMessage] = []
        self._max_messages = self._check_limit(max_messages)

    @staticmethod
    def _check_limit(value: int) -> int:
        if value < 1:
            raise ValueError(f"max_messages must be >= 1, got {value}")
        return value

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @max_messages.setter
    def max_messages(self, value: int) -> None:
        self._max_messages = self._check_limit(value)
        self._trim()

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        """当前历史的只读视图。"""

        return tuple(self._messages)

    @property
    def has_messages(self) -> bool:
        return bool(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add_user_message(self, content: str) -> None:
        self.add_message(ChatMessage.user(content))

    def add_assistant_message(self, content: str) -> None:
        self.add_message(ChatMessage.assistant(content))

    def add_message(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._trim()

    def clear(self) -> None:
        self._messages.clear()

    def get_messages_for_api(self) -> List[ChatMessage]:
        """返回历史的快照副本，调用期间的新增/清空不会影响已发出的请求。"""

        return list(self._messages)

    def _trim(self) -> None:
        # 上限可能一次比当前长度小很多，逐条淘汰直到满足约束
        while len(self._messages) > self._max_messages:
            self._messages.pop(0)
