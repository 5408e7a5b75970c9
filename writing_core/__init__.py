"""Writing Core 顶层包。

该包提供桌面写作助手的核心实现：多 Provider 流式补全客户端
（OpenAI 兼容 / Gemini / Ollama）、有界会话历史、配置加载与会话编排。
"""

from writing_core.api.service import ChatSession, ChatTurn, run_action
from writing_core.domain.conversation import ConversationManager
from writing_core.domain.models import ChatMessage, ProviderConfig, Role
from writing_core.providers import CancellationToken, create_provider, create_provider_from_settings

__all__ = [
    "CancellationToken",
    "ChatMessage",
    "ChatSession",
    "ChatTurn",
    "ConversationManager",
    "ProviderConfig",
    "Role",
    "create_provider",
    "create_provider_from_settings",
    "run_action",
]
