"""Shared fixtures for the Cross-Relay test suite."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from crossrelay.adapters.base import PlatformAdapter
from crossrelay.binding.store import BindingStore
from crossrelay.errors import MetadataLookupError, TransportSendError
from crossrelay.relay.correlation import CorrelationTable
from crossrelay.relay.engine import RelayEngine, Side
from crossrelay.relay.events import ChannelInfo, MessageEvent


@dataclass
class SentMessage:
    target: str
    text: str
    reply_to: str | None


class FakeAdapter(PlatformAdapter):
    """In-memory adapter that records sends and serves canned metadata."""

    def __init__(
        self,
        name: str,
        *,
        markdown: bool = False,
        max_length: int = 2000,
        first_id: int = 1,
    ) -> None:
        super().__init__()
        self.name = name
        self.supports_markdown = markdown
        self.max_message_length = max_length
        self.sent: list[SentMessage] = []
        self.channels: dict[str, ChannelInfo] = {}
        self.lookups: list[str] = []
        self.fail_send = False
        self.fail_lookup = False
        self.started = False
        self._next_id = first_id

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send(self, target_id: str, text: str, reply_to: str | None = None) -> str:
        if self.fail_send:
            raise TransportSendError("simulated outage")
        message_id = str(self._next_id)
        self._next_id += 1
        self.sent.append(SentMessage(target_id, text, reply_to))
        return message_id

    async def lookup_metadata(self, channel_id: str) -> ChannelInfo:
        self.lookups.append(channel_id)
        if self.fail_lookup or channel_id not in self.channels:
            raise MetadataLookupError(f"unknown channel {channel_id}")
        return self.channels[channel_id]


@pytest.fixture
def make_event():
    """Factory for :class:`MessageEvent` with sensible Discord defaults."""
    counter = iter(range(1000, 100000))

    def _make(**overrides) -> MessageEvent:
        fields = {
            "platform": "Discord",
            "channel_id": "100",
            "message_id": str(next(counter)),
            "author_username": "Bob",
            "text": "hi",
        }
        fields.update(overrides)
        return MessageEvent(**fields)

    return _make


@pytest.fixture
def store(tmp_path):
    return BindingStore(tmp_path / "config.json")


@pytest.fixture
def bound_store(store):
    store.register_source("100")
    store.register_dest(555)
    return store


@pytest.fixture
def table():
    return CorrelationTable()


@pytest.fixture
def discord_side():
    return FakeAdapter("Discord", markdown=True, max_length=2000, first_id=9000)


@pytest.fixture
def telegram_side():
    return FakeAdapter("Telegram", max_length=4096, first_id=42)


@pytest.fixture
def outgoing(store, table, discord_side, telegram_side):
    """Discord -> Telegram direction."""
    return RelayEngine(
        bindings=store,
        correlations=table,
        inbound=discord_side,
        outbound=telegram_side,
        side=Side.SOURCE,
        bind_command="/syn",
    )


@pytest.fixture
def incoming(store, table, discord_side, telegram_side):
    """Telegram -> Discord direction."""
    return RelayEngine(
        bindings=store,
        correlations=table,
        inbound=telegram_side,
        outbound=discord_side,
        side=Side.DEST,
        bind_command="/ack",
    )
