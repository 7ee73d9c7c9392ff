"""领域层模型与协议。

包含：
- models: Turn / CompletionRequest / CompletionChunk 消息信封模型。
- platform: 聊天平台会话协议及消息记录类型。
- exceptions: 业务异常类型定义。
"""
