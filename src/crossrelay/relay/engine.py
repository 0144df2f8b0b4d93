"""Relay engine: one instance per direction.

The same class handles Discord -> Telegram and Telegram -> Discord; the
direction is decided by which adapter feeds it, which adapter it sends to,
and which half of the binding (:class:`Side`) it treats as its own.

Per inbound event the engine runs, in order:

1. loop guard (drop our own / bot messages),
2. bind command (register this side, acknowledge, stop),
3. readiness guard (both sides bound?),
4. scope guard (bound channel, or a thread under it),
5. display-name and alias resolution,
6. reply resolution through the shared :class:`CorrelationTable`,
7. send through the outbound adapter,
8. record the new correlation.

Events are queued and consumed by a single worker task so one direction
never processes two events at once.

Usage::

    engine = RelayEngine(
        bindings=store, correlations=table,
        inbound=discord_adapter, outbound=telegram_adapter,
        side=Side.SOURCE, bind_command="/syn",
    )
    discord_adapter.set_event_sink(engine.submit)
    await engine.start()
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING

from crossrelay.binding.store import BindingConfig, BindingStore
from crossrelay.errors import (
    BindingNotReady,
    ConfigIOError,
    MetadataLookupError,
    TransportSendError,
)
from crossrelay.relay.correlation import CorrelationTable
from crossrelay.relay.events import MessageEvent, MessageKey
from crossrelay.relay.formatter import MessageFormatter

if TYPE_CHECKING:
    from crossrelay.adapters.base import PlatformAdapter

log = logging.getLogger(__name__)


class Side(str, enum.Enum):
    """Which half of the binding a direction reads as its own channel."""

    SOURCE = "source"
    DEST = "dest"


class RelayOutcome(str, enum.Enum):
    """What :meth:`RelayEngine.handle` did with an event."""

    IGNORED_SELF = "ignored_self"
    BOUND = "bound"
    BIND_FAILED = "bind_failed"
    NOT_READY = "not_ready"
    OUT_OF_SCOPE = "out_of_scope"
    LOOKUP_FAILED = "lookup_failed"
    EMPTY = "empty"
    FORWARDED = "forwarded"
    SEND_FAILED = "send_failed"


class RelayEngine:
    """Forward messages from *inbound* to *outbound* for one direction.

    Args:
        bindings: Shared binding store.
        correlations: Shared correlation table (both directions write to it).
        inbound: Adapter the events come from; bind acknowledgements are
            sent back through it.
        outbound: Adapter forwarded messages are sent through.
        side: The half of the binding that *inbound* owns.
        bind_command: Case-insensitive prefix that registers this side.
    """

    def __init__(
        self,
        *,
        bindings: BindingStore,
        correlations: CorrelationTable,
        inbound: PlatformAdapter,
        outbound: PlatformAdapter,
        side: Side,
        bind_command: str,
    ) -> None:
        self.bindings = bindings
        self.correlations = correlations
        self.inbound = inbound
        self.outbound = outbound
        self.side = side
        self.bind_command = bind_command.strip()
        self.name = f"{inbound.name}->{outbound.name}"

        self._queue: asyncio.Queue[MessageEvent] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._handled: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the worker that drains the event queue."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._worker(), name=f"relay:{self.name}")
        log.info("Relay %s started (side=%s, bind=%r)", self.name, self.side.value, self.bind_command)

    async def stop(self) -> None:
        """Stop the worker.  Queued events that were not handled are dropped."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("Relay %s stopped after %d event(s).", self.name, self._handled)

    async def submit(self, event: MessageEvent) -> None:
        """Queue *event* for in-order processing."""
        await self._queue.put(event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Relay %s failed on message %s", self.name, event.message_id)
            finally:
                self._handled += 1
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def handle(self, event: MessageEvent) -> RelayOutcome:
        """Run one event through the full guard/resolve/send/record chain."""
        if event.is_self:
            return RelayOutcome.IGNORED_SELF

        if self.is_bind_command(event.text):
            return await self._bind(event)

        config = self.bindings.snapshot()
        try:
            own_id, target_id = self._ids(config)
        except BindingNotReady:
            log.debug(
                "Relay %s: binding not ready (%s), dropping %s",
                self.name, config.state.value, event.message_id,
            )
            return RelayOutcome.NOT_READY

        scope: str | None = None
        if event.channel_id != own_id:
            if event.thread_id is None:
                return RelayOutcome.OUT_OF_SCOPE
            try:
                info = await self.inbound.lookup_metadata(event.channel_id)
            except MetadataLookupError as exc:
                log.warning("Relay %s: metadata lookup for %s failed: %s", self.name, event.channel_id, exc)
                return RelayOutcome.LOOKUP_FAILED
            if info.parent_id != own_id:
                return RelayOutcome.OUT_OF_SCOPE
            scope = info.name

        if not event.text.strip():
            log.debug("Relay %s: message %s has no text, skipping", self.name, event.message_id)
            return RelayOutcome.EMPTY

        author = event.display_name
        text = MessageFormatter.compose(
            author,
            event.text,
            handle=config.alias_map.get(author),
            scope=scope,
            markdown=self.outbound.supports_markdown,
            limit=self.outbound.max_message_length,
        )

        target_channel, reply_to = self._resolve_reply(event, target_id)

        try:
            sent_id = await self.outbound.send(target_channel, text, reply_to=reply_to)
        except TransportSendError as exc:
            log.error("Relay %s: send of %s failed: %s", self.name, event.message_id, exc)
            return RelayOutcome.SEND_FAILED

        self.correlations.record(event.key, MessageKey(target_channel, sent_id))
        log.info(
            "Relayed %s %s/%s -> %s/%s%s",
            self.name, event.channel_id, event.message_id, target_channel, sent_id,
            f" (reply to {reply_to})" if reply_to else "",
        )
        return RelayOutcome.FORWARDED

    def is_bind_command(self, text: str) -> bool:
        return text.strip().lower().startswith(self.bind_command.lower())

    async def _bind(self, event: MessageEvent) -> RelayOutcome:
        register = (
            self.bindings.register_source if self.side is Side.SOURCE
            else self.bindings.register_dest
        )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, register, event.channel_id)
        except ConfigIOError as exc:
            log.error("Relay %s: could not save binding: %s", self.name, exc)
            await self._reply(event, MessageFormatter.error_text())
            return RelayOutcome.BIND_FAILED

        await self._reply(event, MessageFormatter.ack_text(self.inbound.name, event.channel_id))
        return RelayOutcome.BOUND

    async def _reply(self, event: MessageEvent, text: str) -> None:
        try:
            await self.inbound.send(event.channel_id, text)
        except TransportSendError as exc:
            log.warning("Relay %s: could not answer bind command: %s", self.name, exc)

    def _ids(self, config: BindingConfig) -> tuple[str, str]:
        """Return ``(own channel, target channel)`` for this direction.

        Raises:
            BindingNotReady: One side of the binding is still unregistered.
        """
        if not config.is_ready:
            raise BindingNotReady(config.state.value)
        source = config.source_channel_id
        dest = str(config.dest_chat_id)
        if self.side is Side.SOURCE:
            return source, dest
        return dest, source

    def _resolve_reply(self, event: MessageEvent, target_id: str) -> tuple[str, str | None]:
        """Pick the channel and message to reply to on the outbound side.

        A reply to an original that was forwarded threads against its copy;
        a reply to a copy the bridge posted threads against the original.
        Anything else is sent as a plain message to *target_id*.
        """
        if event.reply_to_message_id is None:
            return target_id, None

        key = MessageKey(event.channel_id, event.reply_to_message_id)
        linked = self.correlations.resolve_forward(key) or self.correlations.resolve_backward(key)
        if linked is None:
            log.debug("Relay %s: no correlation for reply target %s", self.name, key)
            return target_id, None
        return linked.channel_id, linked.message_id
