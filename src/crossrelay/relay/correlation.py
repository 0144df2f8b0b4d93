"""In-memory correlation between forwarded messages and their originals.

Both relay directions write into one shared table.  Keys on either side are
:class:`~crossrelay.relay.events.MessageKey` pairs, so Discord snowflakes and
Telegram message ids can never collide and a backward lookup also tells the
caller which channel (or thread) the original lives in.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from crossrelay.relay.events import MessageKey

log = logging.getLogger(__name__)


class CorrelationTable:
    """Write-once bidirectional map ``original <-> forwarded copy``.

    Args:
        max_entries: Optional bound on stored pairs.  When exceeded, the
            oldest pair is evicted from both maps.  ``None`` keeps every pair
            for the life of the process.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._forward: OrderedDict[MessageKey, MessageKey] = OrderedDict()
        self._backward: dict[MessageKey, MessageKey] = {}
        self._lock = threading.Lock()

    def record(self, source: MessageKey, dest: MessageKey) -> bool:
        """Link *source* to *dest* in both directions.

        Returns ``False`` (and changes nothing) if either key is already
        linked.
        """
        with self._lock:
            if source in self._forward or dest in self._backward:
                log.debug("Correlation for %s / %s already recorded", source, dest)
                return False
            self._forward[source] = dest
            self._backward[dest] = source
            if self.max_entries is not None:
                while len(self._forward) > self.max_entries:
                    old_source, old_dest = self._forward.popitem(last=False)
                    self._backward.pop(old_dest, None)
            return True

    def resolve_forward(self, source: MessageKey) -> MessageKey | None:
        """Return the forwarded copy of *source*, if any."""
        with self._lock:
            return self._forward.get(source)

    def resolve_backward(self, dest: MessageKey) -> MessageKey | None:
        """Return the original that *dest* was forwarded from, if any."""
        with self._lock:
            return self._backward.get(dest)

    def __len__(self) -> int:
        with self._lock:
            return len(self._forward)
