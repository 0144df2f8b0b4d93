"""Discord side of the bridge, built on ``discord.py``.

The adapter runs a plain :class:`discord.Client` with the message-content
intent and without direct messages.  Every guild message is normalised into a
:class:`~crossrelay.relay.events.MessageEvent`; threads are reported with
their own id as ``thread_id`` so the relay engine can scope them against the
parent channel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import discord

from crossrelay.adapters.base import PlatformAdapter
from crossrelay.errors import BridgeError, MetadataLookupError, TransportSendError
from crossrelay.relay.events import ChannelInfo, MessageEvent

log = logging.getLogger(__name__)


class _RelayClient(discord.Client):
    """Thin client that forwards gateway events to the adapter."""

    def __init__(self, adapter: "DiscordAdapter") -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.guild_messages = True
        # Only guild channels can be bound.
        intents.dm_messages = False
        super().__init__(intents=intents)
        self._adapter = adapter

    async def on_ready(self) -> None:
        log.info("Logged in to Discord as %s (ID: %s)", self.user, self.user.id)

    async def on_message(self, message: discord.Message) -> None:
        await self._adapter.handle_message(message)


class DiscordAdapter(PlatformAdapter):
    """Discord transport: inbound gateway events, outbound channel sends.

    Args:
        token: Bot token from the Discord Developer Portal.
    """

    name = "Discord"
    max_message_length = 2000
    supports_markdown = True

    def __init__(self, token: str) -> None:
        super().__init__()
        self._token = token
        self.client = _RelayClient(self)
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Log in and keep the gateway connection running in the background."""
        await self.client.login(self._token)
        self._task = asyncio.create_task(self.client.connect(), name="discord-gateway")
        self._task.add_done_callback(self._on_gateway_done)
        log.info("Discord adapter connecting...")

    async def stop(self) -> None:
        if not self.client.is_closed():
            await self.client.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                log.debug("Discord gateway task ended with %r", exc)
            self._task = None
        log.info("Discord adapter stopped")

    def _on_gateway_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Discord gateway connection failed: %s", exc, exc_info=exc)
            self.fail(exc)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_message(self, message: discord.Message) -> None:
        if message.guild is None:
            log.debug("Ignoring direct message %s", message.id)
            return
        await self.emit(self.to_event(message))

    def to_event(self, message: discord.Message) -> MessageEvent:
        """Normalise a :class:`discord.Message`."""
        author = message.author
        own = self.client.user
        # The bridge's own posts, and other bots' posts, are never relayed.
        is_self = bool(author.bot) or (own is not None and author.id == own.id)

        channel = message.channel
        thread_id = str(channel.id) if isinstance(channel, discord.Thread) else None

        reply_to = None
        reference = message.reference
        if reference is not None and reference.message_id is not None:
            reply_to = str(reference.message_id)

        return MessageEvent(
            platform=self.name,
            channel_id=str(channel.id),
            message_id=str(message.id),
            author_username=author.name,
            author_nickname=getattr(author, "nick", None),
            author_global_name=getattr(author, "global_name", None),
            text=message.content or "",
            thread_id=thread_id,
            reply_to_message_id=reply_to,
            is_self=is_self,
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, target_id: str, text: str, reply_to: str | None = None) -> str:
        channel = await self._resolve_channel(target_id, TransportSendError)
        if not hasattr(channel, "send"):
            raise TransportSendError(f"Discord channel {target_id} does not accept messages")

        reference = None
        if reply_to is not None:
            reference = discord.MessageReference(
                message_id=int(reply_to),
                channel_id=channel.id,
                fail_if_not_exists=False,
            )
        try:
            sent = await channel.send(
                text,
                reference=reference,
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except discord.DiscordException as exc:
            raise TransportSendError(f"Discord send to {target_id} failed: {exc}") from exc
        return str(sent.id)

    async def lookup_metadata(self, channel_id: str) -> ChannelInfo:
        channel = await self._resolve_channel(channel_id, MetadataLookupError)
        if isinstance(channel, discord.Thread):
            parent = str(channel.parent_id) if channel.parent_id is not None else None
            return ChannelInfo(
                channel_id=str(channel.id), kind="thread", name=channel.name, parent_id=parent,
            )
        return ChannelInfo(
            channel_id=str(channel.id),
            kind=str(getattr(channel, "type", "text")),
            name=getattr(channel, "name", None) or str(channel.id),
        )

    async def _resolve_channel(self, channel_id: str, error: type[BridgeError]) -> Any:
        """Return the channel from cache, falling back to the REST API."""
        try:
            snowflake = int(channel_id)
        except ValueError as exc:
            raise error(f"invalid Discord channel id {channel_id!r}") from exc

        channel = self.client.get_channel(snowflake)
        if channel is not None:
            return channel
        try:
            return await self.client.fetch_channel(snowflake)
        except discord.DiscordException as exc:
            raise error(f"Discord channel {channel_id} unavailable: {exc}") from exc
