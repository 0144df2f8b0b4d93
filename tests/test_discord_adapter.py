"""Tests for Discord message normalisation and outbound calls."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from crossrelay.adapters.discord import DiscordAdapter
from crossrelay.errors import MetadataLookupError, TransportSendError
from crossrelay.relay.engine import RelayEngine, Side


@pytest.fixture
def adapter():
    return DiscordAdapter(token="test-token")


def _message(channel, *, bot=False, reference=None, content="hi"):
    message = MagicMock()
    message.id = 10
    message.content = content
    message.channel = channel
    message.reference = reference
    message.author.id = 1
    message.author.bot = bot
    message.author.name = "bob"
    message.author.nick = "Bobby"
    message.author.global_name = "Bob B"
    return message


def _text_channel(channel_id=100):
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.name = "general"
    channel.type = discord.ChannelType.text
    return channel


def _thread(channel_id=300, parent_id=100, name="release-notes"):
    thread = MagicMock(spec=discord.Thread)
    thread.id = channel_id
    thread.parent_id = parent_id
    thread.name = name
    return thread


def test_channel_message_to_event(adapter):
    event = adapter.to_event(_message(_text_channel()))
    assert event.platform == "Discord"
    assert event.channel_id == "100"
    assert event.message_id == "10"
    assert event.thread_id is None
    assert event.author_username == "bob"
    assert event.author_nickname == "Bobby"
    assert event.author_global_name == "Bob B"
    assert event.display_name == "Bobby"
    assert event.reply_to_message_id is None
    assert event.is_self is False


def test_thread_message_reports_thread_id(adapter):
    event = adapter.to_event(_message(_thread()))
    assert event.channel_id == "300"
    assert event.thread_id == "300"


def test_reply_reference_is_extracted(adapter):
    reference = MagicMock(message_id=77)
    event = adapter.to_event(_message(_text_channel(), reference=reference))
    assert event.reply_to_message_id == "77"


def test_bot_authors_are_marked_self(adapter):
    assert adapter.to_event(_message(_text_channel(), bot=True)).is_self is True


@pytest.mark.asyncio
async def test_handle_message_emits_to_sink(adapter):
    received = []

    async def sink(event):
        received.append(event)

    adapter.set_event_sink(sink)
    await adapter.handle_message(_message(_text_channel(), content="hello"))
    assert [e.text for e in received] == ["hello"]


@pytest.mark.asyncio
async def test_send_replies_with_reference(adapter):
    channel = _text_channel()
    channel.send = AsyncMock(return_value=MagicMock(id=555))
    adapter.client.get_channel = MagicMock(return_value=channel)

    sent_id = await adapter.send("100", "**Bob**: hi", reply_to="77")

    assert sent_id == "555"
    adapter.client.get_channel.assert_called_once_with(100)
    args, kwargs = channel.send.call_args
    assert args == ("**Bob**: hi",)
    assert kwargs["reference"].message_id == 77
    assert kwargs["reference"].fail_if_not_exists is False


@pytest.mark.asyncio
async def test_send_without_reply_has_no_reference(adapter):
    channel = _text_channel()
    channel.send = AsyncMock(return_value=MagicMock(id=556))
    adapter.client.get_channel = MagicMock(return_value=channel)

    await adapter.send("100", "hi")
    assert channel.send.call_args.kwargs["reference"] is None


@pytest.mark.asyncio
async def test_send_falls_back_to_fetch(adapter):
    channel = _text_channel()
    channel.send = AsyncMock(return_value=MagicMock(id=1))
    adapter.client.get_channel = MagicMock(return_value=None)
    adapter.client.fetch_channel = AsyncMock(return_value=channel)

    assert await adapter.send("100", "hi") == "1"
    adapter.client.fetch_channel.assert_awaited_once_with(100)


@pytest.mark.asyncio
async def test_send_failure_is_wrapped(adapter):
    channel = _text_channel()
    channel.send = AsyncMock(side_effect=discord.DiscordException("boom"))
    adapter.client.get_channel = MagicMock(return_value=channel)

    with pytest.raises(TransportSendError, match="boom"):
        await adapter.send("100", "hi")


@pytest.mark.asyncio
async def test_send_to_unknown_channel_is_wrapped(adapter):
    adapter.client.get_channel = MagicMock(return_value=None)
    adapter.client.fetch_channel = AsyncMock(side_effect=discord.DiscordException("missing"))

    with pytest.raises(TransportSendError):
        await adapter.send("100", "hi")


@pytest.mark.asyncio
async def test_lookup_thread_metadata(adapter):
    adapter.client.get_channel = MagicMock(return_value=_thread())
    info = await adapter.lookup_metadata("300")
    assert info.kind == "thread"
    assert info.name == "release-notes"
    assert info.parent_id == "100"
    assert info.is_child


@pytest.mark.asyncio
async def test_lookup_channel_metadata_has_no_parent(adapter):
    adapter.client.get_channel = MagicMock(return_value=_text_channel())
    info = await adapter.lookup_metadata("100")
    assert info.parent_id is None
    assert info.name == "general"


@pytest.mark.asyncio
async def test_lookup_invalid_id_raises(adapter):
    with pytest.raises(MetadataLookupError):
        await adapter.lookup_metadata("not-a-snowflake")


def test_client_does_not_subscribe_to_direct_messages(adapter):
    intents = adapter.client.intents
    assert intents.message_content is True
    assert intents.guild_messages is True
    assert intents.dm_messages is False


@pytest.mark.asyncio
async def test_direct_message_bind_command_leaves_binding_alone(adapter, bound_store, table, telegram_side):
    engine = RelayEngine(
        bindings=bound_store,
        correlations=table,
        inbound=adapter,
        outbound=telegram_side,
        side=Side.SOURCE,
        bind_command="/syn",
    )
    adapter.set_event_sink(engine.handle)

    dm = MagicMock(spec=discord.DMChannel)
    dm.id = 777
    message = _message(dm, content="/syn")
    message.guild = None
    await adapter.handle_message(message)

    assert bound_store.snapshot().source_channel_id == "100"
    assert telegram_side.sent == []


@pytest.mark.asyncio
async def test_gateway_failure_is_reported(adapter):
    adapter.client.login = AsyncMock()
    adapter.client.connect = AsyncMock(side_effect=discord.PrivilegedIntentsRequired(None))
    adapter.client.is_closed = MagicMock(return_value=True)

    await adapter.start()
    exc = await asyncio.wait_for(adapter.wait_failed(), timeout=1)
    assert isinstance(exc, discord.PrivilegedIntentsRequired)

    # The stored gateway error must not escape shutdown.
    await adapter.stop()
