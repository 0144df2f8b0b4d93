"""Abstract platform adapter.

An adapter owns one chat platform's SDK session.  It pushes inbound messages
to an event sink (normally :meth:`RelayEngine.submit`) as
:class:`~crossrelay.relay.events.MessageEvent` records and exposes the two
outbound operations the relay engine needs: sending text and looking up
channel metadata.

Subclasses translate their SDK's exceptions into
:class:`~crossrelay.errors.TransportSendError` and
:class:`~crossrelay.errors.MetadataLookupError`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from crossrelay.relay.events import ChannelInfo, MessageEvent

log = logging.getLogger(__name__)

EventSink = Callable[[MessageEvent], Awaitable[None]]


class PlatformAdapter(ABC):
    """Capability set shared by the Discord and Telegram adapters."""

    #: Human-readable platform name used in logs and acknowledgements.
    name: str = "platform"
    #: Longest message the platform accepts.
    max_message_length: int = 2000
    #: Whether ``**bold**`` renders on this platform.
    supports_markdown: bool = False

    def __init__(self) -> None:
        self._sink: EventSink | None = None
        self._failure: BaseException | None = None
        self._failed = asyncio.Event()

    def set_event_sink(self, sink: EventSink) -> None:
        """Register the coroutine that receives inbound events."""
        self._sink = sink

    async def emit(self, event: MessageEvent) -> None:
        """Hand an inbound event to the sink, in arrival order."""
        if self._sink is None:
            log.debug("%s: no event sink yet, dropping message %s", self.name, event.message_id)
            return
        await self._sink(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def fail(self, exc: BaseException) -> None:
        """Record that the connection died and wake :meth:`wait_failed`."""
        if self._failure is None:
            self._failure = exc
        self._failed.set()

    async def wait_failed(self) -> BaseException:
        """Block until the adapter reports a fatal connection error."""
        await self._failed.wait()
        assert self._failure is not None
        return self._failure

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin delivering events."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect from the platform."""

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    @abstractmethod
    async def send(self, target_id: str, text: str, reply_to: str | None = None) -> str:
        """Post *text* to *target_id*, optionally as a reply.

        Returns the id of the new message.

        Raises:
            TransportSendError: The platform rejected or failed the send.
        """

    @abstractmethod
    async def lookup_metadata(self, channel_id: str) -> ChannelInfo:
        """Describe *channel_id* (kind, name, parent).

        Raises:
            MetadataLookupError: The channel is unknown or unreachable.
        """
