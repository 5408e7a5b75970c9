"""统一的对话数据模型。

本模块定义了写作助手内部在不同 Provider 之间共享的标准数据结构：

- Role: 消息角色（封闭枚举，只允许 user/assistant/system）。
- ChatMessage: 一条不可变的对话消息。
- ProviderConfig: 单个 Provider 的连接参数（由外部设置提供，只读）。

所有 Provider 适配器（如 OpenAICompatibleProvider）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Role(str, Enum):
    """LLM 消息角色（与 OpenAI / Ollama 的 role 字段取值一致）。"""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，创建后不可修改。

    - role: 消息角色，传入字符串时会转换为 Role，未知取值直接抛 ValueError。
    - content: 纯文本内容。
    """

    role: Role
    content: str

    def __post_init__(self):
        # frozen dataclass 只能通过 object.__setattr__ 归一化字段
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "content", self.content or "")

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(Role.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(Role.SYSTEM, content)

    def to_payload(self) -> Dict[str, str]:
        """转成 OpenAI / Ollama 请求体中的 message 结构。"""

        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的连接参数。

    字段全部可选，缺失值由 providers.registry 中的默认值补齐。
    字段名与设置文件（settings.json / config.yaml）中的 key 保持一致。
    """

    api_key: Optional[str] = None
    api_base: Optional[str] = None
    model_name: Optional[str] = None
    api_organisation: Optional[str] = None
    api_project: Optional[str] = None
    keep_alive: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProviderConfig":
        """从设置文件里的 dict 构造配置。

        未知 key 被忽略；数字（如 keep_alive: 15）转成字符串；
        空白字符串视为缺失。
        """

        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values: Dict[str, Optional[str]] = {}
        for key, raw in data.items():
            if key not in known or raw is None:
                continue
            text = str(raw).strip()
            values[key] = text or None
        return cls(**values)
