"""入站消息路由。

一条新消息有两条处理路径：

- 新线程：消息所在频道有配置，以消息前 50 个字符为标题创建线程，
  在线程中回复这条消息。
- 续聊：消息所在频道是线程且父频道有配置，重建线程上下文后在线程中回复。

其他消息（机器人自己的消息、非普通消息、无关频道）直接忽略。
每次回复尝试的错误都在这里收口并写日志，不会影响其他并发任务。
"""

import logging
from typing import Any, Dict, Optional

from relay_core.agents.context_assembler import ContextAssembler
from relay_core.agents.reply_engine import StreamingReplyEngine
from relay_core.config.settings import BotConfig, ChannelProfile
from relay_core.domain.exceptions import BusinessError, PlatformError, ThreadCreationError
from relay_core.domain.platform import MESSAGE_TYPE_DEFAULT, ChatPlatform, InboundMessage
from relay_core.infrastructure.logging.logger import LOGGER_NAME

THREAD_TITLE_LENGTH = 50
THREAD_AUTO_ARCHIVE_MINUTES = 60


def thread_title(content: str) -> str:
    return content[:THREAD_TITLE_LENGTH]


class ThreadRouter:
    def __init__(
        self,
        platform: ChatPlatform,
        bot_config: BotConfig,
        assembler: ContextAssembler,
        engine: StreamingReplyEngine,
        auto_archive_minutes: int = THREAD_AUTO_ARCHIVE_MINUTES,
        logger: Optional[logging.Logger] = None,
    ):
        self._platform = platform
        self._bot_config = bot_config
        self._assembler = assembler
        self._engine = engine
        self._auto_archive_minutes = auto_archive_minutes
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    async def handle_message(self, message: InboundMessage) -> None:
        """处理一条入站消息，所有单次回复错误都在此记录后吞掉。"""

        if message.author_id == self._platform.bot_user_id or message.type != MESSAGE_TYPE_DEFAULT:
            return

        log_ctx: Dict[str, Any] = {"channel_id": message.channel_id, "message_id": message.id}
        try:
            profile = self._bot_config.find_channel_profile(message.channel_id)
            if profile is not None:
                await self._reply_in_new_thread(message, profile, log_ctx)
            else:
                await self._reply_in_thread(message, log_ctx)
        except BusinessError as e:
            self._log(
                logging.ERROR,
                "Reply attempt abandoned",
                log_ctx,
                code=e.code,
                error=e.message,
                content=message.content,
            )

    async def _reply_in_new_thread(
        self, message: InboundMessage, profile: ChannelProfile, log_ctx: Dict[str, Any]
    ) -> None:
        title = thread_title(message.content)
        try:
            thread_id = await self._platform.start_thread(
                message.channel_id, message.id, title, self._auto_archive_minutes
            )
        except PlatformError as e:
            raise ThreadCreationError(code="THREAD_CREATE_ERROR", message=e.message, title=title)
        log_ctx["thread_id"] = thread_id
        self._log(logging.INFO, "Started reply thread", log_ctx, title=title)
        await self._engine.reply(thread_id, profile, ContextAssembler.from_message(message.content))

    async def _reply_in_thread(self, message: InboundMessage, log_ctx: Dict[str, Any]) -> None:
        try:
            channel = await self._platform.fetch_channel(message.channel_id)
        except PlatformError as e:
            self._log(logging.WARNING, "Failed to fetch channel", log_ctx, error=e.message)
            return
        if not channel.is_thread or not channel.parent_id:
            return
        profile = self._bot_config.find_channel_profile(channel.parent_id)
        if profile is None:
            return

        turns = await self._assembler.from_thread(channel)
        if not turns:
            return
        await self._engine.reply(channel.id, profile, turns)

    def _log(self, level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        self._logger.log(level, message, extra={"extra": payload})
