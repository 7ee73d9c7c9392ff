"""补全客户端抽象接口。

回复引擎不直接依赖 httpx，而是依赖此协议：

- open_stream(profile, req) 是一个异步上下文管理器，
  进入时完成连接（失败抛 RequestDispatchError），
  产出按行的异步迭代器（读取失败抛 StreamReadError）。

测试中可以用脚本化的假客户端替换，精确控制每行到达的时间。
"""

from typing import AsyncContextManager, AsyncIterator, Protocol

from relay_core.config.settings import ChannelProfile
from relay_core.domain.models import CompletionRequest


class CompletionClient(Protocol):
    name: str

    def open_stream(
        self, profile: ChannelProfile, req: CompletionRequest
    ) -> AsyncContextManager[AsyncIterator[str]]:
        ...
