"""补全 API 集成层。

该包下的模块负责：
- 定义补全客户端抽象接口 (base)。
- 提供基于 httpx 的流式实现 (chat_stream_client)。
"""

from relay_core.providers.base import CompletionClient
from relay_core.providers.chat_stream_client import ChatStreamClient


def create_completion_client(settings) -> CompletionClient:
    """根据运行配置创建默认的补全客户端。"""

    return ChatStreamClient(settings)
