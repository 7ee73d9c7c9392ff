import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

from relay_core.config.settings import ChannelProfile
from relay_core.domain.exceptions import PlatformError
from relay_core.domain.platform import ChannelInfo, PlatformMessage

BOT_ID = "bot-1"


class FakePlatform:
    """内存中的 ChatPlatform，记录所有调用。"""

    def __init__(self):
        self.bot_user_id = BOT_ID
        self.sent: List[tuple] = []
        self.edits: List[tuple] = []
        self.threads: List[tuple] = []
        self.history: Dict[str, List[PlatformMessage]] = {}
        self.channels: Dict[str, ChannelInfo] = {}
        self.history_calls: List[tuple] = []
        self.fail_send = False
        self.fail_thread = False
        self.fail_history_for: set = set()
        self.fail_edit_at: Optional[int] = None
        self._next_id = 1000

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def send_message(self, channel_id, text):
        if self.fail_send:
            raise PlatformError(code="SEND_ERROR", message="send rejected")
        message_id = self._new_id()
        self.sent.append((channel_id, message_id, text))
        return message_id

    async def edit_message(self, channel_id, message_id, text):
        if self.fail_edit_at is not None and len(self.edits) >= self.fail_edit_at:
            raise PlatformError(code="EDIT_ERROR", message="edit rejected")
        self.edits.append((channel_id, message_id, text))

    async def start_thread(self, channel_id, anchor_message_id, title, auto_archive_minutes):
        if self.fail_thread:
            raise PlatformError(code="THREAD_ERROR", message="thread rejected")
        thread_id = self._new_id()
        self.threads.append((channel_id, anchor_message_id, title, auto_archive_minutes))
        return thread_id

    async def fetch_channel(self, channel_id):
        if channel_id not in self.channels:
            raise PlatformError(code="CHANNEL_ERROR", message="unknown channel")
        return self.channels[channel_id]

    async def fetch_history(self, channel_id, limit, before=None):
        self.history_calls.append((channel_id, limit))
        if channel_id in self.fail_history_for:
            raise PlatformError(code="HISTORY_ERROR", message="history unavailable")
        return list(self.history.get(channel_id, []))[:limit]

    @property
    def edit_texts(self) -> List[str]:
        return [text for _, _, text in self.edits]


class ScriptedClient:
    """按脚本产出流式行的补全客户端。

    script 中每一项为 (延迟秒数, 行内容)；行内容为异常实例时在该位置抛出。
    """

    name = "scripted"

    def __init__(self, script=None, dispatch_error: Optional[Exception] = None):
        self.script = list(script or [])
        self.dispatch_error = dispatch_error
        self.requests = []
        self.closed = False

    @asynccontextmanager
    async def open_stream(self, profile, req):
        self.requests.append((profile, req))
        if self.dispatch_error is not None:
            raise self.dispatch_error

        async def lines():
            for delay, line in self.script:
                if delay:
                    await asyncio.sleep(delay)
                if isinstance(line, Exception):
                    raise line
                yield line

        try:
            yield lines()
        finally:
            self.closed = True


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def scripted_client():
    return ScriptedClient


@pytest.fixture
def profile() -> ChannelProfile:
    return ChannelProfile(
        endpoint="http://localhost:11434/api/chat",
        model_name="m",
        system_preamble=("You are helpful.", "Answer briefly."),
        channel_id="chan-1",
    )
