"""Outbound text composition for relayed messages.

Every relayed message is rendered through this module so that readers on the
other side can see who wrote it and, for thread traffic, where.

Usage::

    from crossrelay.relay.formatter import MessageFormatter

    text = MessageFormatter.compose("Bob", "hi", markdown=True)
    # "**Bob**: hi"
"""

from __future__ import annotations

# Appended when a message has to be cut to fit the target platform.
_TRUNCATION_SUFFIX: str = "\n\n...(truncated)"


class MessageFormatter:
    """Compose relay and bind-command texts.

    All methods are static; the formatter carries no state.
    """

    @staticmethod
    def compose(
        author: str,
        text: str,
        *,
        handle: str | None = None,
        scope: str | None = None,
        markdown: bool = False,
        limit: int | None = None,
    ) -> str:
        """Build ``[#scope] author (handle): text``.

        Args:
            author: Resolved display name of the sender.
            text: Message body.
            handle: Alias handle from the binding's alias map, shown after
                the name.
            scope: Name of the thread/child conversation the message came
                from.
            markdown: Bold the author name (for targets that render
                Markdown).
            limit: Maximum length of the result.
        """
        label = f"**{author}**" if markdown else author
        if handle:
            label = f"{label} ({handle})"
        prefix = f"[#{scope}] " if scope else ""
        composed = f"{prefix}{label}: {text}"
        if limit is not None:
            composed = MessageFormatter.truncate(composed, limit)
        return composed

    @staticmethod
    def truncate(text: str, limit: int) -> str:
        """Trim *text* to *limit* characters with a ``...(truncated)`` marker."""
        if len(text) <= limit:
            return text
        keep = max(limit - len(_TRUNCATION_SUFFIX), 0)
        return (text[:keep] + _TRUNCATION_SUFFIX)[:limit]

    @staticmethod
    def ack_text(platform: str, channel_id: str) -> str:
        """Confirmation posted after a successful bind command."""
        return f"✅ {platform} chat registered: {channel_id}"

    @staticmethod
    def error_text() -> str:
        """One-line reply posted when the binding could not be saved."""
        return "Error saving configuration."
