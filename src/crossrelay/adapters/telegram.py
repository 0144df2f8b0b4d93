"""Telegram side of the bridge, built on ``python-telegram-bot``."""

from __future__ import annotations

import logging

from telegram import Message, ReplyParameters, Update
from telegram.error import TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from crossrelay.adapters.base import PlatformAdapter
from crossrelay.errors import MetadataLookupError, TransportSendError
from crossrelay.relay.events import ChannelInfo, MessageEvent

log = logging.getLogger(__name__)


class TelegramAdapter(PlatformAdapter):
    """Telegram transport using long polling.

    Updates are handled one at a time (the application's default), which
    keeps inbound events in arrival order.
    """

    name = "Telegram"
    max_message_length = 4096
    supports_markdown = False

    def __init__(self, bot_token: str) -> None:
        super().__init__()
        self.bot_token = bot_token
        self.app: Application | None = None
        self._bot_id: int | None = None

    async def start(self) -> None:
        """Start polling for updates."""
        self.app = Application.builder().token(self.bot_token).build()

        # Text messages, commands included: bind commands arrive as "/ack".
        self.app.add_handler(MessageHandler(filters.TEXT, self._handle_message))
        self.app.add_error_handler(self._handle_error)

        log.info("Starting Telegram bot...")
        await self.app.initialize()
        self._bot_id = self.app.bot.id
        await self.app.start()
        await self.app.updater.start_polling()
        log.info("Telegram bot started: @%s", self.app.bot.username)

    async def stop(self) -> None:
        """Stop polling and shut the application down."""
        if self.app:
            if self.app.updater and self.app.updater.running:
                await self.app.updater.stop()
            if self.app.running:
                await self.app.stop()
            await self.app.shutdown()
            log.info("Telegram bot stopped.")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        # Edits arrive as update.edited_message and are not relayed.
        if update.message is None:
            return
        await self.emit(self.to_event(update.message))

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        log.error("Telegram update failed: %s", context.error, exc_info=context.error)

    def to_event(self, message: Message) -> MessageEvent:
        """Normalise a :class:`telegram.Message`."""
        user = message.from_user
        if user is not None:
            username = user.username or str(user.id)
            global_name = user.full_name or None
            is_self = user.is_bot or (self._bot_id is not None and user.id == self._bot_id)
        else:
            # Anonymous admins and linked channels post as a chat.
            sender = message.sender_chat
            username = (sender.title or sender.username or str(sender.id)) if sender else "unknown"
            global_name = None
            is_self = False

        thread_id = None
        if message.is_topic_message and message.message_thread_id is not None:
            thread_id = str(message.message_thread_id)

        reply_to = None
        replied = message.reply_to_message
        # Inside a forum topic every message "replies" to the topic's root.
        if replied is not None and not (
            thread_id is not None and replied.message_id == message.message_thread_id
        ):
            reply_to = str(replied.message_id)

        return MessageEvent(
            platform=self.name,
            channel_id=str(message.chat.id),
            message_id=str(message.message_id),
            author_username=username,
            author_global_name=global_name,
            text=message.text or "",
            thread_id=thread_id,
            reply_to_message_id=reply_to,
            is_self=is_self,
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, target_id: str, text: str, reply_to: str | None = None) -> str:
        if self.app is None:
            raise TransportSendError("Telegram adapter is not started")

        reply_params = None
        if reply_to is not None:
            reply_params = ReplyParameters(
                message_id=int(reply_to),
                allow_sending_without_reply=True,
            )
        try:
            sent = await self.app.bot.send_message(
                chat_id=int(target_id),
                text=text,
                reply_parameters=reply_params,
            )
        except (TelegramError, ValueError) as exc:
            raise TransportSendError(f"Telegram send to {target_id} failed: {exc}") from exc
        return str(sent.message_id)

    async def lookup_metadata(self, channel_id: str) -> ChannelInfo:
        if self.app is None:
            raise MetadataLookupError("Telegram adapter is not started")
        try:
            chat = await self.app.bot.get_chat(int(channel_id))
        except (TelegramError, ValueError) as exc:
            raise MetadataLookupError(f"Telegram chat {channel_id} unavailable: {exc}") from exc
        return ChannelInfo(
            channel_id=str(chat.id),
            kind=str(chat.type),
            name=chat.title or chat.username or str(chat.id),
        )
