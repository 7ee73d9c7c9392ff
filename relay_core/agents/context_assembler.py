"""会话上下文组装。

两种入口：

- from_message: 频道里的一条新消息，直接生成一个 user Turn。
- from_thread: 已有回复线程，从平台拉取线程历史并补上父频道中的起始消息，
  按时间顺序重建整段对话。

系统提示统一由 with_system_preamble 放在最前面。
"""

import logging
from typing import Any, Dict, List, Optional

from relay_core.config.settings import ChannelProfile
from relay_core.domain.exceptions import ContextRetrievalError, PlatformError
from relay_core.domain.models import Turn
from relay_core.domain.platform import MESSAGE_TYPE_DEFAULT, ChannelInfo, ChatPlatform, PlatformMessage
from relay_core.infrastructure.logging.logger import LOGGER_NAME

THREAD_HISTORY_LIMIT = 100
ANCHOR_SEARCH_LIMIT = 15


class ContextAssembler:
    def __init__(
        self,
        platform: ChatPlatform,
        thread_history_limit: int = THREAD_HISTORY_LIMIT,
        anchor_search_limit: int = ANCHOR_SEARCH_LIMIT,
        logger: Optional[logging.Logger] = None,
    ):
        self._platform = platform
        self._thread_history_limit = min(thread_history_limit, THREAD_HISTORY_LIMIT)
        self._anchor_search_limit = min(anchor_search_limit, ANCHOR_SEARCH_LIMIT)
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    @staticmethod
    def from_message(content: str) -> List[Turn]:
        return [Turn(role="user", content=content)]

    async def from_thread(self, thread: ChannelInfo) -> List[Turn]:
        """重建线程对话。

        步骤：
        1. 拉取线程内最近的消息（平台返回从新到旧），只保留普通文本消息，
           机器人自己发的记为 assistant，其余记为 user，再翻转为从旧到新。
        2. 在父频道最近的若干条消息中找到创建该线程的起始消息，
           作为 user Turn 放在最前面。

        任一步拉取失败都抛出 ContextRetrievalError，不使用部分上下文。
        """

        log_ctx: Dict[str, Any] = {"thread_id": thread.id, "parent_id": thread.parent_id}
        try:
            history = await self._platform.fetch_history(thread.id, self._thread_history_limit)
        except PlatformError as e:
            self._log(logging.ERROR, "Failed to fetch thread history", log_ctx, error=str(e))
            raise ContextRetrievalError(code="THREAD_HISTORY_ERROR", message=str(e), **log_ctx)

        bot_id = self._platform.bot_user_id
        turns = [
            Turn(role="assistant" if m.author_id == bot_id else "user", content=m.content)
            for m in reversed(history)
            if m.type == MESSAGE_TYPE_DEFAULT
        ]

        if thread.parent_id:
            anchor = await self._find_anchor(thread, log_ctx)
            if anchor is not None:
                turns.insert(0, Turn(role="user", content=anchor.content))
            else:
                self._log(logging.INFO, "Thread anchor message not found", log_ctx)
        return turns

    async def _find_anchor(self, thread: ChannelInfo, log_ctx: Dict[str, Any]) -> Optional[PlatformMessage]:
        try:
            recent = await self._platform.fetch_history(thread.parent_id, self._anchor_search_limit)
        except PlatformError as e:
            self._log(logging.ERROR, "Failed to fetch parent channel messages", log_ctx, error=str(e))
            raise ContextRetrievalError(code="PARENT_HISTORY_ERROR", message=str(e), **log_ctx)
        for message in recent:
            if message.thread_id == thread.id:
                return message
        return None

    @staticmethod
    def with_system_preamble(profile: ChannelProfile, turns: List[Turn]) -> List[Turn]:
        """按配置顺序把系统提示放在所有对话之前。"""

        system_turns = [Turn(role="system", content=text) for text in profile.system_preamble]
        return system_turns + list(turns)

    def _log(self, level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        self._logger.log(level, message, extra={"extra": payload})
