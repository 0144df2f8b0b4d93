"""Exception hierarchy for the relay.

Adapters translate SDK failures into these types so the relay engine never
needs to know which platform library raised.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""


class ConfigIOError(BridgeError):
    """The binding document could not be read, parsed or written."""


class TransportSendError(BridgeError):
    """An outbound message could not be delivered."""


class MetadataLookupError(BridgeError):
    """Channel or chat metadata was unavailable."""


class BindingNotReady(BridgeError):
    """Relay attempted before both sides of the binding were registered."""


class TransportClosed(BridgeError):
    """A platform connection ended for good while the bridge was running."""
