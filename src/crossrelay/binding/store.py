"""Durable storage for the single channel binding.

The binding is a small JSON document that operators are expected to edit by
hand (mostly to maintain the alias map), so loading is lenient about the key
names used by older deployments while saving always writes the canonical
layout::

    {
      "source_channel_id": "123456789012345678",
      "dest_chat_id": -1001234567890,
      "alias_map": {"Alice": "@alice_tg"}
    }

Every public method takes the store's lock.  Nothing inside the lock talks to
the network; callers on the event loop should push the blocking disk access
to an executor (see :class:`~crossrelay.relay.engine.RelayEngine`).
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
import threading
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from crossrelay.errors import ConfigIOError

log = logging.getLogger(__name__)


class BindingState(str, enum.Enum):
    """Handshake progress derived from a :class:`BindingConfig`."""

    UNBOUND = "unbound"
    SOURCE_BOUND = "source_bound"
    DEST_BOUND = "dest_bound"
    FULLY_BOUND = "fully_bound"


class BindingConfig(BaseModel):
    """The persisted binding between one Discord channel and one Telegram chat."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_channel_id: str = Field(
        default="",
        validation_alias=AliasChoices("source_channel_id", "discord_channel_id"),
    )
    dest_chat_id: int = Field(
        default=0,
        validation_alias=AliasChoices("dest_chat_id", "telegram_chat_id"),
    )
    alias_map: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("alias_map", "aliases"),
    )

    @field_validator("source_channel_id", mode="before")
    @classmethod
    def _coerce_channel_id(cls, value: object) -> object:
        # Hand-edited files often carry the snowflake as a bare number.
        if value is None:
            return ""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("dest_chat_id", mode="before")
    @classmethod
    def _coerce_chat_id(cls, value: object) -> object:
        if value is None or value == "":
            return 0
        return value

    @property
    def state(self) -> BindingState:
        has_source = bool(self.source_channel_id)
        has_dest = self.dest_chat_id != 0
        if has_source and has_dest:
            return BindingState.FULLY_BOUND
        if has_source:
            return BindingState.SOURCE_BOUND
        if has_dest:
            return BindingState.DEST_BOUND
        return BindingState.UNBOUND

    @property
    def is_ready(self) -> bool:
        return self.state is BindingState.FULLY_BOUND

    def to_json(self) -> str:
        return self.model_dump_json(indent=2) + "\n"


class BindingStore:
    """Thread-safe load/mutate/save wrapper around one :class:`BindingConfig`.

    Mutations are applied to a copy, written to disk, and only then swapped
    in, so a failed write never leaves memory and disk disagreeing.

    Args:
        path: Location of the JSON document.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._config = BindingConfig()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Disk I/O
    # ------------------------------------------------------------------

    def load(self) -> BindingConfig | None:
        """Read the binding from disk.

        Returns ``None`` when the file does not exist.

        Raises:
            ConfigIOError: The file exists but cannot be read or parsed.
        """
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as exc:
                raise ConfigIOError(f"cannot read {self.path}: {exc}") from exc

            try:
                config = BindingConfig.model_validate_json(raw) if raw.strip() else BindingConfig()
            except ValidationError as exc:
                raise ConfigIOError(f"invalid binding document {self.path}: {exc}") from exc

            self._config = config
            return config.model_copy(deep=True)

    def save(self, config: BindingConfig | None = None) -> None:
        """Persist *config* (or the current binding) and make it current.

        Raises:
            ConfigIOError: The document could not be written.
        """
        with self._lock:
            target = config if config is not None else self._config
            self._write(target)
            self._config = target.model_copy(deep=True)

    def load_or_create(self) -> BindingConfig:
        """Startup helper: load the binding, or write a fresh empty one.

        An unreadable document is moved aside to ``<name>.bak`` and replaced
        rather than aborting startup, the same way a missing one is.

        Raises:
            ConfigIOError: The fresh document could not be written.
        """
        try:
            config = self.load()
        except ConfigIOError as exc:
            log.warning("Could not load %s (%s). A new binding will be created.", self.path, exc)
            self._back_up()
            config = None

        if config is None:
            log.info("No binding at %s, creating an empty one.", self.path)
            self.save(BindingConfig())
            return self.snapshot()

        log.info(
            "Loaded binding from %s (state=%s, aliases=%d)",
            self.path, config.state.value, len(config.alias_map),
        )
        return config

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".bak")

    def _back_up(self) -> None:
        """Move the current document to :attr:`backup_path`, replacing any older backup."""
        with self._lock:
            try:
                os.replace(self.path, self.backup_path)
            except FileNotFoundError:
                return
            except OSError as exc:
                log.warning("Could not back up %s: %s", self.path, exc)
                return
        log.warning("Kept the unreadable binding as %s", self.backup_path)

    def _write(self, config: BindingConfig) -> None:
        """Atomically replace the document on disk.  Caller holds the lock."""
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(config.to_json())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ConfigIOError(f"cannot write {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register_source(self, channel_id: str | int) -> BindingConfig:
        """Bind the source (Discord) channel and persist immediately."""
        channel_id = str(channel_id).strip()
        with self._lock:
            updated = self._config.model_copy(update={"source_channel_id": channel_id}, deep=True)
            self._write(updated)
            self._config = updated
            log.info("Source channel registered: %s (state=%s)", channel_id, updated.state.value)
            return updated.model_copy(deep=True)

    def register_dest(self, chat_id: str | int) -> BindingConfig:
        """Bind the destination (Telegram) chat and persist immediately."""
        chat_id = int(chat_id)
        with self._lock:
            updated = self._config.model_copy(update={"dest_chat_id": chat_id}, deep=True)
            self._write(updated)
            self._config = updated
            log.info("Destination chat registered: %d (state=%s)", chat_id, updated.state.value)
            return updated.model_copy(deep=True)

    def set_alias(self, display_name: str, handle: str) -> BindingConfig:
        """Map *display_name* to *handle* and persist."""
        with self._lock:
            aliases = dict(self._config.alias_map)
            aliases[display_name] = handle
            updated = self._config.model_copy(update={"alias_map": aliases}, deep=True)
            self._write(updated)
            self._config = updated
            return updated.model_copy(deep=True)

    def remove_alias(self, display_name: str) -> bool:
        """Drop *display_name* from the alias map.  Returns ``False`` if absent."""
        with self._lock:
            if display_name not in self._config.alias_map:
                return False
            aliases = {k: v for k, v in self._config.alias_map.items() if k != display_name}
            updated = self._config.model_copy(update={"alias_map": aliases}, deep=True)
            self._write(updated)
            self._config = updated
            return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> BindingConfig:
        """Return an independent copy of the current binding."""
        with self._lock:
            return self._config.model_copy(deep=True)

    @property
    def state(self) -> BindingState:
        with self._lock:
            return self._config.state
