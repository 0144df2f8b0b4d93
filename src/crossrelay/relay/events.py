"""Platform-neutral value types passed between adapters and the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


class MessageKey(NamedTuple):
    """Where a message lives: the channel/chat it was posted in plus its id."""

    channel_id: str
    message_id: str


@dataclass(frozen=True)
class MessageEvent:
    """An inbound chat message, normalised by an adapter.

    All ids are strings regardless of the platform's native type.
    """

    platform: str
    channel_id: str
    message_id: str
    author_username: str
    text: str
    thread_id: str | None = None
    author_nickname: str | None = None
    author_global_name: str | None = None
    reply_to_message_id: str | None = None
    is_self: bool = False

    @property
    def key(self) -> MessageKey:
        return MessageKey(self.channel_id, self.message_id)

    @property
    def display_name(self) -> str:
        """Nickname, else global name, else username."""
        for candidate in (self.author_nickname, self.author_global_name, self.author_username):
            if candidate and candidate.strip():
                return candidate.strip()
        return ""


@dataclass(frozen=True)
class ChannelInfo:
    """Result of an adapter metadata lookup."""

    channel_id: str
    kind: str
    name: str
    parent_id: str | None = None

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None
