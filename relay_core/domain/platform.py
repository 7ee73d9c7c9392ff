from dataclasses import dataclass
from typing import List, Optional, Protocol


# 平台的普通文本消息类型；置顶通知、加入提示、线程创建提示等都不是该类型
MESSAGE_TYPE_DEFAULT = "default"


@dataclass(frozen=True)
class ChannelInfo:
    id: str
    is_thread: bool
    parent_id: Optional[str] = None
    last_message_id: Optional[str] = None


@dataclass(frozen=True)
class PlatformMessage:
    """频道历史中的一条消息。thread_id 为由该消息创建出的线程（若有）。"""

    id: str
    author_id: str
    type: str
    content: str
    thread_id: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    """平台推送的新消息事件。"""

    id: str
    author_id: str
    type: str
    channel_id: str
    content: str


@dataclass(frozen=True)
class ReplyTarget:
    """被逐步编辑的占位消息，由单个回复任务独占。"""

    channel_id: str
    message_id: str


class ChatPlatform(Protocol):
    """聊天平台会话协议。

    核心逻辑只依赖此协议，具体平台（如 Discord）在 platforms 包中实现。
    所有方法失败时抛出 PlatformError。会话句柄在并发回复任务之间共享。
    """

    @property
    def bot_user_id(self) -> str:
        ...

    async def send_message(self, channel_id: str, text: str) -> str:
        ...

    async def edit_message(self, channel_id: str, message_id: str, text: str) -> None:
        ...

    async def start_thread(
        self,
        channel_id: str,
        anchor_message_id: str,
        title: str,
        auto_archive_minutes: int,
    ) -> str:
        ...

    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        ...

    async def fetch_history(
        self,
        channel_id: str,
        limit: int,
        before: Optional[str] = None,
    ) -> List[PlatformMessage]:
        """返回最多 limit 条消息，按从新到旧排列。"""

        ...
