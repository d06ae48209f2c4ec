"""Monitored channels and their bounded message history."""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from threat_monitor.models import Channel, ChannelMessage


class ChannelStore:
    """SQLAlchemy-backed channel store bound to one session."""

    def __init__(self, db: Session, history_limit: int = 20):
        self.db = db
        self.history_limit = history_limit

    def get_or_create_channel(
        self,
        telegram_channel_id: int,
        username: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Channel:
        channel = (
            self.db.query(Channel)
            .filter(Channel.telegram_channel_id == telegram_channel_id)
            .first()
        )
        if channel:
            changed = False
            if username and not channel.username:
                channel.username = username
                changed = True
            if title and not channel.title:
                channel.title = title
                changed = True
            if changed:
                self.db.commit()
            return channel

        channel = Channel(telegram_channel_id=telegram_channel_id, username=username, title=title)
        self.db.add(channel)
        self.db.commit()
        self.db.refresh(channel)
        return channel

    def save_message(
        self,
        channel_id: int,
        message_id: int,
        message_date: Optional[datetime],
        raw_text: str,
    ) -> ChannelMessage:
        message = ChannelMessage(
            channel_id=channel_id,
            message_id=message_id,
            message_date=message_date,
            raw_text=raw_text,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        self._trim_history(channel_id)
        return message

    def _trim_history(self, channel_id: int) -> None:
        keep_ids = [
            row.id
            for row in (
                self.db.query(ChannelMessage.id)
                .filter(ChannelMessage.channel_id == channel_id)
                .order_by(ChannelMessage.message_date.desc(), ChannelMessage.id.desc())
                .limit(self.history_limit)
            )
        ]
        (
            self.db.query(ChannelMessage)
            .filter(ChannelMessage.channel_id == channel_id, ChannelMessage.id.notin_(keep_ids))
            .delete(synchronize_session=False)
        )
        self.db.commit()

    def get_recent_messages(self, channel_id: int, limit: int) -> List[Tuple[str, Optional[datetime]]]:
        """Most recent ``limit`` messages as (text, date), oldest first."""
        rows = (
            self.db.query(ChannelMessage)
            .filter(ChannelMessage.channel_id == channel_id)
            .order_by(ChannelMessage.message_date.desc(), ChannelMessage.id.desc())
            .limit(limit)
            .all()
        )
        return [(row.raw_text or "", row.message_date) for row in reversed(rows)]
