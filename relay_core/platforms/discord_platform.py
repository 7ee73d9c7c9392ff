"""Discord 平台适配器。

- DiscordPlatform: 基于 discord.Client 实现 ChatPlatform 协议，
  所有 discord.DiscordException 都包装为 PlatformError。
- DiscordGateway: 持有客户端，维护“事件类型 -> 处理函数”的分发表，
  把 discord.Message 转成 InboundMessage 后交给核心逻辑。

discord.py 会为每个事件单独创建任务，多条消息的处理互不阻塞。
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import discord

from relay_core.domain.exceptions import PlatformConnectionError, PlatformError
from relay_core.domain.platform import MESSAGE_TYPE_DEFAULT, ChannelInfo, InboundMessage, PlatformMessage
from relay_core.infrastructure.logging.logger import LOGGER_NAME


def _message_type(message: discord.Message) -> str:
    if message.type == discord.MessageType.default:
        return MESSAGE_TYPE_DEFAULT
    return message.type.name


class DiscordPlatform:
    """ChatPlatform 的 Discord 实现。"""

    def __init__(self, client: discord.Client):
        self._client = client

    @property
    def bot_user_id(self) -> str:
        user = self._client.user
        return str(user.id) if user is not None else ""

    async def send_message(self, channel_id: str, text: str) -> str:
        try:
            channel = await self._resolve_channel(channel_id)
            message = await channel.send(text)
        except discord.DiscordException as e:
            raise PlatformError(code="SEND_ERROR", message=str(e), channel_id=channel_id)
        return str(message.id)

    async def edit_message(self, channel_id: str, message_id: str, text: str) -> None:
        try:
            channel = await self._resolve_channel(channel_id)
            await channel.get_partial_message(int(message_id)).edit(content=text)
        except discord.DiscordException as e:
            raise PlatformError(code="EDIT_ERROR", message=str(e), channel_id=channel_id, message_id=message_id)

    async def start_thread(
        self,
        channel_id: str,
        anchor_message_id: str,
        title: str,
        auto_archive_minutes: int,
    ) -> str:
        try:
            channel = await self._resolve_channel(channel_id)
            thread = await channel.get_partial_message(int(anchor_message_id)).create_thread(
                name=title,
                auto_archive_duration=auto_archive_minutes,
            )
        except discord.DiscordException as e:
            raise PlatformError(code="THREAD_ERROR", message=str(e), channel_id=channel_id)
        return str(thread.id)

    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        try:
            channel = await self._resolve_channel(channel_id)
        except discord.DiscordException as e:
            raise PlatformError(code="CHANNEL_ERROR", message=str(e), channel_id=channel_id)
        if isinstance(channel, discord.Thread):
            return ChannelInfo(
                id=str(channel.id),
                is_thread=True,
                parent_id=str(channel.parent_id),
                last_message_id=_optional_id(channel.last_message_id),
            )
        return ChannelInfo(
            id=str(channel.id),
            is_thread=False,
            last_message_id=_optional_id(getattr(channel, "last_message_id", None)),
        )

    async def fetch_history(
        self,
        channel_id: str,
        limit: int,
        before: Optional[str] = None,
    ) -> List[PlatformMessage]:
        cursor = discord.Object(id=int(before)) if before else None
        try:
            channel = await self._resolve_channel(channel_id)
            return [
                _to_platform_message(m)
                async for m in channel.history(limit=limit, before=cursor)
            ]
        except discord.DiscordException as e:
            raise PlatformError(code="HISTORY_ERROR", message=str(e), channel_id=channel_id)

    async def _resolve_channel(self, channel_id: str):
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._client.fetch_channel(int(channel_id))
        return channel


def _optional_id(value: Optional[int]) -> Optional[str]:
    return str(value) if value else None


def _to_platform_message(message: discord.Message) -> PlatformMessage:
    thread = message.thread
    return PlatformMessage(
        id=str(message.id),
        author_id=str(message.author.id),
        type=_message_type(message),
        content=message.content,
        thread_id=str(thread.id) if thread is not None else None,
    )


def to_inbound_message(message: discord.Message) -> InboundMessage:
    return InboundMessage(
        id=str(message.id),
        author_id=str(message.author.id),
        type=_message_type(message),
        channel_id=str(message.channel.id),
        content=message.content,
    )


class EventKind(str, Enum):
    READY = "ready"
    MESSAGE_CREATE = "message"


ReadyHandler = Callable[[], Awaitable[None]]
MessageHandler = Callable[[InboundMessage], Awaitable[None]]


class DiscordGateway:
    """Discord 会话的边界层：只负责事件接入与分发，不包含业务逻辑。"""

    def __init__(self, token: str, presence_status: str = "", logger: Optional[logging.Logger] = None):
        intents = discord.Intents.default()
        intents.message_content = True
        self.client = discord.Client(intents=intents)
        self.platform = DiscordPlatform(self.client)
        self._token = token
        self._presence_status = presence_status
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._handlers: Dict[EventKind, Callable[..., Awaitable[None]]] = {
            EventKind.READY: self._update_presence,
        }
        self._install()

    def register(self, kind: EventKind, handler: Callable[..., Awaitable[None]]) -> None:
        self._handlers[kind] = handler

    def _install(self) -> None:
        client = self.client

        @client.event
        async def on_ready() -> None:
            self._logger.info("Connected to Discord", extra={"extra": {"user_id": self.platform.bot_user_id}})
            handler = self._handlers.get(EventKind.READY)
            if handler is not None:
                await handler()

        @client.event
        async def on_message(message: discord.Message) -> None:
            handler = self._handlers.get(EventKind.MESSAGE_CREATE)
            if handler is not None:
                await handler(to_inbound_message(message))

    async def _update_presence(self) -> None:
        if self._presence_status:
            await self.client.change_presence(activity=discord.Game(name=self._presence_status))

    def run(self) -> None:
        """阻塞运行直到收到中断信号；登录或网关连接失败时抛出 PlatformConnectionError。"""

        try:
            self.client.run(self._token, log_handler=None)
        except discord.DiscordException as e:
            raise PlatformConnectionError(code="CONNECTION_ERROR", message=str(e))
