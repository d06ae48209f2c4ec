"""Telegram频道采集器 (MTProto user session via Telethon)"""
import logging
from datetime import timezone
from pathlib import Path
from typing import Dict, List, Optional

from telethon import TelegramClient, events
from telethon.sessions import StringSession
from telethon.tl.types import PeerChannel

from threat_monitor.collectors.base import BaseCollector, ChannelPost, PostHandler

logger = logging.getLogger(__name__)


class TelegramChannelCollector(BaseCollector):
    """Listens to new posts in the configured public channels."""

    platform_name = "telegram"

    def __init__(self, config: Dict = None):
        super().__init__(config)
        self.api_id = int(self.config.get("api_id") or 0)
        self.api_hash = self.config.get("api_hash", "")
        self.session_file = Path(self.config.get("session_file", "data/session.txt"))
        self.phone = self.config.get("phone", "")
        self.channels: List[str] = list(self.config.get("channels", []))
        self.client: Optional[TelegramClient] = None
        self.channel_names: Dict[int, str] = {}
        self._handler: Optional[PostHandler] = None

    @classmethod
    def from_settings(cls, settings) -> "TelegramChannelCollector":
        return cls(config={
            "api_id": settings.telegram_api_id,
            "api_hash": settings.telegram_api_hash,
            "session_file": settings.telegram_session_file,
            "phone": settings.telegram_phone,
            "channels": settings.channel_list,
        })

    def _load_session(self) -> str:
        if not self.session_file.exists():
            return ""
        try:
            session_string = self.session_file.read_text(encoding="utf-8").strip()
            logger.info("Loaded existing session from %s", self.session_file)
            return session_string
        except OSError as e:
            logger.warning("Could not read session file, will create new session: %s", e)
            return ""

    def _save_session(self) -> None:
        self.session_file.parent.mkdir(parents=True, exist_ok=True)
        self.session_file.write_text(self.client.session.save(), encoding="utf-8")
        logger.info("Session saved to %s", self.session_file)

    async def start(self, handler: PostHandler) -> None:
        if not self.phone:
            raise RuntimeError("TELEGRAM_PHONE is not set")

        self._handler = handler
        self.client = TelegramClient(
            StringSession(self._load_session()),
            self.api_id,
            self.api_hash,
            connection_retries=5,
        )
        # prompts for the login code on stdin on first run
        await self.client.start(phone=self.phone)
        self._save_session()
        logger.info("MTProto client connected")

        entities = []
        for username in self.channels:
            try:
                entity = await self.client.get_entity(username)
            except Exception as e:
                logger.error("Failed to subscribe to @%s: %s", username, e)
                continue
            self.channel_names[entity.id] = username
            entities.append(entity)
            logger.info("Subscribed to channel: @%s (%s)", username, getattr(entity, "title", username))

        if not entities:
            logger.warning("No channels configured or resolved; nothing to monitor")
            return

        self.client.add_event_handler(self._on_new_message, events.NewMessage(chats=entities))
        logger.info("Event handler registered for %d channels", len(entities))

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.disconnect()
            self.client = None

    def to_post(self, message) -> Optional[ChannelPost]:
        peer = getattr(message, "peer_id", None)
        if not isinstance(peer, PeerChannel):
            return None
        text = self.clean_text(getattr(message, "message", None))
        if not text:
            return None

        posted_at = getattr(message, "date", None)
        if posted_at is not None and posted_at.tzinfo is not None:
            posted_at = posted_at.astimezone(timezone.utc).replace(tzinfo=None)

        channel_id = peer.channel_id
        return ChannelPost(
            channel_id=channel_id,
            channel_name=self.channel_names.get(channel_id, str(channel_id)),
            text=text,
            message_id=getattr(message, "id", 0) or 0,
            posted_at=posted_at,
        )

    async def _on_new_message(self, event) -> None:
        post = self.to_post(event.message)
        if post is None or self._handler is None:
            return
        logger.info("New message from channel %s", post.channel_name)
        try:
            await self._handler(post)
        except Exception:
            logger.exception("Error handling message from %s", post.channel_name)
