"""领域层模型与协议。

包含：
- models: 统一的 Role / ChatMessage / ProviderConfig 模型。
- conversation: 单个会话的有界消息历史 ConversationManager。
- exceptions: 业务异常类型定义。
"""
