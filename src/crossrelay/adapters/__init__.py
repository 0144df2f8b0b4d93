"""Platform adapters.

Public API:
    :class:`PlatformAdapter` -- abstract capability set used by the relay.
    :class:`DiscordAdapter` -- ``discord.py`` transport.
    :class:`TelegramAdapter` -- ``python-telegram-bot`` transport.
"""

from crossrelay.adapters.base import PlatformAdapter
from crossrelay.adapters.discord import DiscordAdapter
from crossrelay.adapters.telegram import TelegramAdapter

__all__ = [
    "DiscordAdapter",
    "PlatformAdapter",
    "TelegramAdapter",
]
