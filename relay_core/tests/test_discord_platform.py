import asyncio

import discord
import pytest

from relay_core.domain.exceptions import PlatformError
from relay_core.domain.platform import MESSAGE_TYPE_DEFAULT
from relay_core.platforms.discord_platform import DiscordGateway, DiscordPlatform, EventKind, to_inbound_message


class Obj:
    def __init__(self, **kw):
        self.__dict__.update(kw)


class PartialMessageStub:
    def __init__(self, channel, message_id):
        self._channel = channel
        self._id = message_id

    async def edit(self, content=None):
        if self._channel.fail:
            raise discord.ClientException("edit rejected")
        self._channel.edits.append((self._id, content))

    async def create_thread(self, name, auto_archive_duration):
        self._channel.threads.append((self._id, name, auto_archive_duration))
        return Obj(id=777)


class ChannelStub:
    def __init__(self, channel_id, messages=()):
        self.id = channel_id
        self.last_message_id = None
        self.fail = False
        self.sent = []
        self.edits = []
        self.threads = []
        self._messages = list(messages)

    async def send(self, text):
        if self.fail:
            raise discord.ClientException("send rejected")
        self.sent.append(text)
        return Obj(id=555)

    def get_partial_message(self, message_id):
        return PartialMessageStub(self, message_id)

    async def history(self, limit=100, before=None):
        for message in self._messages[:limit]:
            yield message


class ClientStub:
    def __init__(self, channels):
        self.user = Obj(id=1)
        self._channels = channels

    def get_channel(self, channel_id):
        return self._channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        raise discord.ClientException("unknown channel")


def _message(mid, type_=discord.MessageType.default, thread=None):
    return Obj(
        id=mid,
        author=Obj(id=9),
        type=type_,
        content=f"text-{mid}",
        channel=Obj(id=10),
        thread=thread,
    )


def test_send_edit_and_thread():
    channel = ChannelStub(10)
    platform = DiscordPlatform(ClientStub({10: channel}))

    async def run():
        message_id = await platform.send_message("10", "Processing your request...")
        await platform.edit_message("10", message_id, "done")
        return message_id, await platform.start_thread("10", "42", "Hello", 60)

    message_id, thread_id = asyncio.run(run())
    assert (message_id, thread_id) == ("555", "777")
    assert channel.sent == ["Processing your request..."]
    assert channel.edits == [(555, "done")]
    assert channel.threads == [(42, "Hello", 60)]
    assert platform.bot_user_id == "1"


def test_discord_errors_become_platform_errors():
    channel = ChannelStub(10)
    channel.fail = True
    platform = DiscordPlatform(ClientStub({10: channel}))
    with pytest.raises(PlatformError):
        asyncio.run(platform.send_message("10", "x"))
    with pytest.raises(PlatformError):
        asyncio.run(platform.edit_message("10", "1", "x"))
    with pytest.raises(PlatformError):
        asyncio.run(platform.fetch_channel("99"))


def test_history_conversion():
    messages = [
        _message(3),
        _message(2, type_=discord.MessageType.pins_add),
        _message(1, thread=Obj(id=50)),
    ]
    platform = DiscordPlatform(ClientStub({10: ChannelStub(10, messages)}))
    history = asyncio.run(platform.fetch_history("10", 15))
    assert [m.id for m in history] == ["3", "2", "1"]
    assert history[0].type == MESSAGE_TYPE_DEFAULT
    assert history[1].type == "pins_add"
    assert history[2].thread_id == "50"
    assert history[0].thread_id is None


def test_inbound_conversion():
    inbound = to_inbound_message(_message(7))
    assert inbound.id == "7"
    assert inbound.channel_id == "10"
    assert inbound.author_id == "9"
    assert inbound.type == MESSAGE_TYPE_DEFAULT


def test_gateway_dispatches_message_events():
    received = []

    async def handler(message):
        received.append(message)

    gateway = DiscordGateway("token")
    gateway.register(EventKind.MESSAGE_CREATE, handler)
    asyncio.run(gateway.client.on_message(_message(8)))
    assert [m.id for m in received] == ["8"]
