"""Cross-Relay: bridge one Discord channel and one Telegram chat."""

__version__ = "0.1.0"
