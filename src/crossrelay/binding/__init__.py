"""Persistent channel binding.

Public API:
    :class:`BindingStore` -- thread-safe load/mutate/save of the binding.
    :class:`BindingConfig` -- the persisted document.
    :class:`BindingState` -- handshake progress.
"""

from crossrelay.binding.store import BindingConfig, BindingState, BindingStore

__all__ = [
    "BindingConfig",
    "BindingState",
    "BindingStore",
]
