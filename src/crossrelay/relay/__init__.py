"""Bidirectional relay core.

Public API:
    :class:`RelayEngine` -- per-direction guard/resolve/send/record pipeline.
    :class:`CorrelationTable` -- forwarded-message correlation.
    :class:`MessageFormatter` -- outbound text composition.
    :class:`MessageEvent`, :class:`MessageKey`, :class:`ChannelInfo` -- value types.
"""

from crossrelay.relay.correlation import CorrelationTable
from crossrelay.relay.engine import RelayEngine, RelayOutcome, Side
from crossrelay.relay.events import ChannelInfo, MessageEvent, MessageKey
from crossrelay.relay.formatter import MessageFormatter

__all__ = [
    "ChannelInfo",
    "CorrelationTable",
    "MessageEvent",
    "MessageFormatter",
    "MessageKey",
    "RelayEngine",
    "RelayOutcome",
    "Side",
]
