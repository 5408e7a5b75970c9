"""系统提示词与写作动作。

- DEFAULT_CHAT_SYSTEM_PROMPT: 自由对话窗口使用的默认 system prompt。
- WritingAction: 一个写作动作按钮（如“Proofread”），由前缀和指令组成：
  前缀拼在用户选中的文本前面作为 user 消息，指令作为本次调用的 system prompt。
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional


DEFAULT_CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Be concise and helpful. "
    "Use markdown formatting when appropriate."
)

# 模型判断选中文本无法处理时约定返回的标记，此时不替换原文
INCOMPATIBLE_TEXT_MARKER = "ERROR_TEXT_INCOMPATIBLE_WITH_REQUEST"


@dataclass(frozen=True)
class WritingAction:
    name: str
    prefix: str = ""
    instruction: str = ""
    open_in_window: bool = False

    def build_user_message(self, text: str) -> str:
        return self.prefix + text

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WritingAction":
        # 兼容桌面端 options.json 的 openInWindow 写法
        open_in_window = data.get("open_in_window", data.get("openInWindow", False))
        return cls(
            name=str(data.get("name") or ""),
            prefix=str(data.get("prefix") or ""),
            instruction=str(data.get("instruction") or ""),
            open_in_window=bool(open_in_window),
        )


DEFAULT_ACTIONS: List[WritingAction] = [
    WritingAction(
        name="Proofread",
        prefix="Proofread this:\n\n",
        instruction="You are a grammar proofreading assistant.",
    ),
]


def load_actions(raw: Optional[Iterable[Mapping[str, Any]]]) -> List[WritingAction]:
    """从设置中的 dict 列表构造写作动作，未配置或全部无名时使用默认动作。"""

    actions = [WritingAction.from_mapping(item) for item in (raw or [])]
    actions = [a for a in actions if a.name]
    return actions or list(DEFAULT_ACTIONS)


def find_action(actions: Iterable[WritingAction], name: str) -> Optional[WritingAction]:
    key = name.strip().lower()
    for action in actions:
        if action.name.lower() == key:
            return action
    return None
