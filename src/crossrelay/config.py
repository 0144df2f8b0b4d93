"""Central configuration for Cross-Relay.

All settings are loaded from environment variables (with ``.env`` file support
via *python-dotenv*).  Validation and type coercion are handled by
``pydantic-settings``.

Usage::

    from crossrelay.config import get_settings

    settings = get_settings()
    print(settings.BINDING_PATH)

The :func:`get_settings` helper creates the :class:`BridgeSettings` singleton
lazily so that importing this module never triggers validation before the
caller has had a chance to load a ``.env`` file or populate the environment.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import ClassVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Canonical .env locations (checked in order of priority).
ENV_PATHS: list[str] = ["config/.env", ".env"]

_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class BridgeSettings(BaseSettings):
    """Validated configuration for the bridge process.

    Required fields (no defaults):
        ``DISCORD_TOKEN``, ``TELEGRAM_TOKEN``

    Everything else has a default that matches the behaviour of the first
    deployments (``config.json`` in the working directory, ``/syn`` and
    ``/ack`` bind commands).
    """

    model_config = SettingsConfigDict(
        # .env loading is handled by load_dotenv() in __main__.py.
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Required -- no defaults
    # ------------------------------------------------------------------
    DISCORD_TOKEN: str = Field(
        ...,
        min_length=1,
        description="Discord bot token from the Developer Portal.",
    )
    TELEGRAM_TOKEN: str = Field(
        ...,
        min_length=1,
        description="Telegram bot token issued by @BotFather.",
    )

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    BINDING_PATH: Path = Field(
        default=Path("config.json"),
        description=(
            "JSON document holding the bound channel ids and the alias map. "
            "Created on first run, rewritten after every bind command."
        ),
    )
    DISCORD_BIND_COMMAND: str = Field(
        default="/syn",
        description="Prefix that binds the Discord channel it is posted in.",
    )
    TELEGRAM_BIND_COMMAND: str = Field(
        default="/ack",
        description="Prefix that binds the Telegram chat it is posted in.",
    )

    # ------------------------------------------------------------------
    # Reply correlation
    # ------------------------------------------------------------------
    CORRELATION_MAX_ENTRIES: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Upper bound on remembered forwarded messages.  Oldest pairs are "
            "evicted first.  Unset keeps every pair for the process lifetime."
        ),
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("DISCORD_BIND_COMMAND", "TELEGRAM_BIND_COMMAND")
    @classmethod
    def _strip_command(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("bind command must not be empty")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {value!r}"
            )
        return level

    @model_validator(mode="after")
    def _distinct_commands(self) -> "BridgeSettings":
        """The two bind prefixes must not collide (case-insensitive)."""
        if self.DISCORD_BIND_COMMAND.lower() == self.TELEGRAM_BIND_COMMAND.lower():
            raise ValueError(
                "DISCORD_BIND_COMMAND and TELEGRAM_BIND_COMMAND must differ"
            )
        return self

    # ------------------------------------------------------------------
    # Repr safety -- redact secrets in logs / debug output
    # ------------------------------------------------------------------

    _SENSITIVE_FIELDS: ClassVar[set[str]] = {"DISCORD_TOKEN", "TELEGRAM_TOKEN"}

    def __repr__(self) -> str:
        fields = []
        for name in type(self).model_fields:
            val = getattr(self, name)
            if name in self._SENSITIVE_FIELDS:
                val = "***" if val else None
            fields.append(f"{name}={val!r}")
        return f"BridgeSettings({', '.join(fields)})"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_env_file() -> Path | None:
    """Return the first existing ``.env`` file from :data:`ENV_PATHS`."""
    for candidate in ENV_PATHS:
        p = Path(candidate)
        if p.is_file():
            return p
    return None


def has_config() -> bool:
    """Return ``True`` if both bot tokens are available."""
    if os.environ.get("DISCORD_TOKEN") and os.environ.get("TELEGRAM_TOKEN"):
        return True
    env_file = find_env_file()
    if env_file is None:
        return False
    text = env_file.read_text(encoding="utf-8", errors="replace")

    def _present(key: str) -> bool:
        return any(
            line.strip().startswith(f"{key}=") and len(line.split("=", 1)[1].strip()) > 0
            for line in text.splitlines()
        )

    return _present("DISCORD_TOKEN") and _present("TELEGRAM_TOKEN")


# ---------------------------------------------------------------------------
# Lazy singleton accessor
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=1)
def get_settings() -> BridgeSettings:
    """Return the global :class:`BridgeSettings` singleton.

    Raises:
        pydantic.ValidationError: If a token is missing or any value fails
            validation.
    """
    logger.debug("Initialising BridgeSettings from environment.")
    return BridgeSettings()  # type: ignore[call-arg]
