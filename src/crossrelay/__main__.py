"""Entry point for `python -m crossrelay`."""

from __future__ import annotations

import asyncio
import logging
import sys

from dotenv import load_dotenv


def _print_fix_hints(log: logging.Logger) -> None:
    log.error("")
    log.error("  How to fix:")
    log.error("  1. Copy config/.env.example to config/.env (or set environment variables)")
    log.error("  2. Ensure DISCORD_TOKEN and TELEGRAM_TOKEN are set")
    log.error("  3. DISCORD_BIND_COMMAND and TELEGRAM_BIND_COMMAND must differ")
    log.error("")


def main() -> None:
    # Load .env from canonical locations before anything else.
    load_dotenv("config/.env")  # Primary (Docker + local)
    load_dotenv()               # Fallback (CWD/.env)

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    log = logging.getLogger("crossrelay")

    from crossrelay.config import find_env_file, get_settings, has_config

    if not has_config():
        env_file = find_env_file()
        where = str(env_file) if env_file else "environment (no .env file found)"
        log.error("Bot tokens missing from %s", where)
        _print_fix_hints(log)
        sys.exit(1)

    # Validate config early
    try:
        settings = get_settings()
    except Exception as e:
        log.error("Configuration error: %s", e)
        _print_fix_hints(log)
        sys.exit(1)

    logging.getLogger().setLevel(settings.LOG_LEVEL)
    # discord.py and httpx are chatty at INFO; keep our own lines readable.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)

    log.info("Starting Cross-Relay...")
    log.info("Binding file: %s", settings.BINDING_PATH)

    from crossrelay.bridge import Bridge
    from crossrelay.errors import ConfigIOError, TransportClosed

    bridge = Bridge(settings)
    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        log.info("Interrupted, exiting.")
    except ConfigIOError as e:
        log.error("Cannot create binding file: %s", e)
        sys.exit(1)
    except TransportClosed as e:
        log.error("Bridge stopped: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
