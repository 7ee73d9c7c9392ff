"""流式回复引擎。

把组装好的 Turn 序列变成一条逐步更新的聊天消息：

1. 先在目标频道发送占位消息，它就是之后被反复编辑的 ReplyTarget。
2. 拼上系统提示构造 CompletionRequest，通过补全客户端打开流。
3. 进入“累积 + 定时刷新”循环：
   - 刷新时刻已到时，先把缓冲区全文覆盖写入占位消息，再读下一行；
   - 否则等待“下一行到达”与“刷新时刻到达”中先发生的一个；
     等待中的读取不会因为刷新而丢弃，循环结束时才取消。
   - 每行解码为 CompletionChunk，解码失败只跳过该行；
   - 收到结束块后最后编辑一次并停止读取；回答为空时写入固定的空回答提示。

任何中止本次回复的错误都会尽力把占位消息改成固定的错误提示，且只改一次；
错误本身继续向上抛出，由路由层写入日志。上游调用不做重试。
"""

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4

from relay_core.agents.context_assembler import ContextAssembler
from relay_core.config.settings import ChannelProfile
from relay_core.domain.exceptions import (
    BusinessError,
    DecodeError,
    EditError,
    PlatformError,
    RequestDispatchError,
    StreamReadError,
)
from relay_core.domain.models import CompletionChunk, CompletionRequest, Turn
from relay_core.domain.platform import ChatPlatform, ReplyTarget
from relay_core.infrastructure.logging.logger import LOGGER_NAME
from relay_core.providers.base import CompletionClient

PLACEHOLDER_TEXT = "Processing your request..."
ERROR_TEXT = "😵 An error occurred in the bot"
EMPTY_TEXT = "(empty response)"
UPDATE_INTERVAL = 5.0


@dataclass
class ReplyEngineConfig:
    update_interval: float = UPDATE_INTERVAL
    placeholder_text: str = PLACEHOLDER_TEXT
    error_text: str = ERROR_TEXT
    empty_text: str = EMPTY_TEXT


class StreamingReplyEngine:
    def __init__(
        self,
        platform: ChatPlatform,
        client: CompletionClient,
        config: Optional[ReplyEngineConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._platform = platform
        self._client = client
        self._config = config or ReplyEngineConfig()
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    async def reply(self, channel_id: str, profile: ChannelProfile, turns: List[Turn]) -> str:
        """在 channel_id 中生成一条流式回复，返回最终写入的完整文本。

        Raises:
            PlatformError: 占位消息发送失败（此时没有可编辑的消息）。
            RequestDispatchError / StreamReadError / EditError: 占位消息已被改为错误提示。
        """

        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "channel_id": channel_id,
            "model": profile.model_name,
        }
        try:
            message_id = await self._platform.send_message(channel_id, self._config.placeholder_text)
        except PlatformError as e:
            self._log(logging.ERROR, "Failed to send placeholder message", log_ctx, error=str(e))
            raise
        target = ReplyTarget(channel_id=channel_id, message_id=message_id)
        log_ctx["message_id"] = message_id

        req = CompletionRequest(
            model=profile.model_name,
            turns=tuple(ContextAssembler.with_system_preamble(profile, turns)),
        )
        self._log(logging.INFO, "Dispatching completion request", log_ctx, turns=len(req.turns))

        try:
            async with self._client.open_stream(profile, req) as lines:
                text = await self._consume(target, lines, log_ctx)
        except (RequestDispatchError, StreamReadError, EditError) as e:
            self._log(logging.ERROR, "Reply attempt failed", log_ctx, code=e.code, error=e.message)
            await self._mark_failed(target, log_ctx)
            raise
        self._log(logging.INFO, "Reply completed", log_ctx, length=len(text))
        return text

    async def _consume(self, target: ReplyTarget, lines: AsyncIterator[str], log_ctx: Dict[str, Any]) -> str:
        loop = asyncio.get_running_loop()
        interval = self._config.update_interval
        parts: List[str] = []
        written = ""
        next_tick = loop.time() + interval
        pending: Optional[asyncio.Task] = None
        try:
            while True:
                now = loop.time()
                if now >= next_tick:
                    next_tick += interval
                    if next_tick <= now:
                        # 错过的刷新合并为一次
                        next_tick = now + interval
                    text = "".join(parts)
                    if text != written:
                        await self._edit(target, text)
                        written = text
                    continue

                if pending is None:
                    pending = asyncio.create_task(_next_line(lines))
                done, _ = await asyncio.wait({pending}, timeout=next_tick - now)
                if not done:
                    continue

                line = pending.result()
                pending = None
                if line is None:
                    raise StreamReadError(code="STREAM_CLOSED", message="stream closed before final chunk")

                try:
                    chunk = CompletionChunk.from_json(line)
                except DecodeError as e:
                    self._log(logging.WARNING, "Skipping malformed stream line", log_ctx, error=e.message, line=line[:200])
                    continue

                parts.append(chunk.delta_text)
                if chunk.is_final:
                    text = "".join(parts)
                    # 平台不接受空消息，空回答写入固定提示
                    await self._edit(target, text or self._config.empty_text)
                    return text
        finally:
            if pending is not None:
                pending.cancel()
                with suppress(asyncio.CancelledError, BusinessError):
                    await pending

    async def _edit(self, target: ReplyTarget, text: str) -> None:
        try:
            await self._platform.edit_message(target.channel_id, target.message_id, text)
        except PlatformError as e:
            raise EditError(code="EDIT_ERROR", message=e.message, message_id=target.message_id)

    async def _mark_failed(self, target: ReplyTarget, log_ctx: Dict[str, Any]) -> None:
        try:
            await self._platform.edit_message(target.channel_id, target.message_id, self._config.error_text)
        except PlatformError as e:
            self._log(logging.ERROR, "Failed to write error marker", log_ctx, error=e.message)

    def _log(self, level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        self._logger.log(level, message, extra={"extra": payload})


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    """读取下一行；流正常结束时返回 None。"""

    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None
