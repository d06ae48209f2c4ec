"""Telegram bot client (Telethon): alert delivery and the chat menu."""
import logging
from pathlib import Path
from typing import Optional

from telethon import TelegramClient, events

from threat_monitor.bot.menu import MenuHandler
from threat_monitor.services.dispatcher import DeliveryError, PARSE_MODE

logger = logging.getLogger(__name__)


class TelegramBot:
    """Owns the bot client; exposes ``send`` for the dispatcher."""

    def __init__(self, api_id: int, api_hash: str, bot_token: str, menu: MenuHandler, session: str = "data/bot"):
        self.api_id = api_id
        self.api_hash = api_hash
        self.bot_token = bot_token
        self.menu = menu
        self.session = session
        self.client: Optional[TelegramClient] = None

    @classmethod
    def from_settings(cls, settings, menu: MenuHandler) -> "TelegramBot":
        return cls(
            api_id=settings.telegram_api_id,
            api_hash=settings.telegram_api_hash,
            bot_token=settings.telegram_bot_token,
            menu=menu,
            session=settings.telegram_bot_session,
        )

    async def start(self) -> None:
        Path(self.session).parent.mkdir(parents=True, exist_ok=True)
        self.client = TelegramClient(self.session, self.api_id, self.api_hash)
        await self.client.start(bot_token=self.bot_token)
        self.client.add_event_handler(
            self._on_message,
            events.NewMessage(incoming=True, func=lambda e: e.is_private),
        )
        logger.info("Bot client started")

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.disconnect()
            self.client = None

    async def send(self, chat_id: int, text: str, parse_mode: Optional[str] = PARSE_MODE) -> bool:
        if self.client is None:
            raise DeliveryError("bot client is not started")
        try:
            await self.client.send_message(chat_id, text, parse_mode=parse_mode)
        except Exception as e:
            raise DeliveryError(f"send to {chat_id} failed: {e}") from e
        return True

    async def _on_message(self, event) -> None:
        chat_id = event.chat_id
        try:
            geo = event.message.geo
            if geo is not None:
                reply = self.menu.handle_location(chat_id, geo.lat, geo.long)
            else:
                reply = await self.menu.handle_message(chat_id, event.raw_text)
        except Exception:
            logger.exception("Menu handler failed for chat %s", chat_id)
            reply = "❌ Сталася помилка. Спробуй ще раз пізніше."

        if reply:
            await event.respond(reply, parse_mode=PARSE_MODE)
