"""Bridge: owns the stores, both adapters and both relay directions."""

from __future__ import annotations

import asyncio
import logging

from crossrelay.adapters.base import PlatformAdapter
from crossrelay.adapters.discord import DiscordAdapter
from crossrelay.adapters.telegram import TelegramAdapter
from crossrelay.binding.store import BindingStore
from crossrelay.config import BridgeSettings
from crossrelay.errors import TransportClosed
from crossrelay.relay.correlation import CorrelationTable
from crossrelay.relay.engine import RelayEngine, Side

log = logging.getLogger(__name__)


class Bridge:
    """Discord <-> Telegram relay.

    Wires together:
    - the persisted channel binding
    - the shared reply-correlation table
    - Discord and Telegram adapters
    - one relay engine per direction

    Adapters can be injected (tests, alternative transports); by default they
    are built from the settings' tokens.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        *,
        source: PlatformAdapter | None = None,
        dest: PlatformAdapter | None = None,
    ) -> None:
        self.settings = settings

        # --- Shared state ---
        self.bindings = BindingStore(settings.BINDING_PATH)
        self.correlations = CorrelationTable(max_entries=settings.CORRELATION_MAX_ENTRIES)

        # --- Transports ---
        self.source = source or DiscordAdapter(settings.DISCORD_TOKEN)
        self.dest = dest or TelegramAdapter(settings.TELEGRAM_TOKEN)

        # --- Directions ---
        self.outgoing = RelayEngine(
            bindings=self.bindings,
            correlations=self.correlations,
            inbound=self.source,
            outbound=self.dest,
            side=Side.SOURCE,
            bind_command=settings.DISCORD_BIND_COMMAND,
        )
        self.incoming = RelayEngine(
            bindings=self.bindings,
            correlations=self.correlations,
            inbound=self.dest,
            outbound=self.source,
            side=Side.DEST,
            bind_command=settings.TELEGRAM_BIND_COMMAND,
        )
        self.source.set_event_sink(self.outgoing.submit)
        self.dest.set_event_sink(self.incoming.submit)

        self._started: bool = False

    @property
    def engines(self) -> tuple[RelayEngine, RelayEngine]:
        return self.outgoing, self.incoming

    async def start(self) -> None:
        """Load the binding, then bring up the engines and both transports."""
        if self._started:
            return
        loop = asyncio.get_running_loop()
        config = await loop.run_in_executor(None, self.bindings.load_or_create)
        log.info("Binding state: %s", config.state.value)

        for engine in self.engines:
            await engine.start()
        await self.source.start()
        await self.dest.start()
        self._started = True
        log.info(
            "Bridge ready (%s bind: %r, %s bind: %r)",
            self.source.name, self.settings.DISCORD_BIND_COMMAND,
            self.dest.name, self.settings.TELEGRAM_BIND_COMMAND,
        )

    async def run(self) -> None:
        """Start and serve until cancelled or a transport dies, then shut down.

        Raises:
            TransportClosed: An adapter lost its connection for good.
        """
        await self.start()
        watchers = {
            asyncio.create_task(adapter.wait_failed(), name=f"watch:{adapter.name}"): adapter
            for adapter in (self.source, self.dest)
        }
        try:
            done, _ = await asyncio.wait(watchers, return_when=asyncio.FIRST_COMPLETED)
            task = done.pop()
            adapter = watchers[task]
            exc = task.result()
            log.error("%s connection lost, stopping bridge: %s", adapter.name, exc)
            raise TransportClosed(f"{adapter.name} connection lost: {exc}") from exc
        finally:
            for task in watchers:
                task.cancel()
            await self.close()

    async def close(self) -> None:
        """Clean shutdown, in reverse start order."""
        log.info("Shutting down bridge...")
        for adapter in (self.dest, self.source):
            try:
                await adapter.stop()
            except Exception:
                log.exception("Error stopping %s adapter", adapter.name)
        for engine in reversed(self.engines):
            await engine.stop()
        self._started = False
