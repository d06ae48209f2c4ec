"""监控频道及消息历史模型"""
from datetime import datetime

from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship

from threat_monitor.database import Base


class Channel(Base):
    """Telegram频道表"""
    __tablename__ = "channels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_channel_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=True)
    title = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    messages = relationship("ChannelMessage", back_populates="channel", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def display_name(self) -> str:
        return self.username or self.title or str(self.telegram_channel_id)


class ChannelMessage(Base):
    """频道消息历史（用于LLM上下文）"""
    __tablename__ = "channel_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel_id = Column(Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False, index=True)

    message_id = Column(BigInteger, nullable=False)
    message_date = Column(DateTime, nullable=True)
    raw_text = Column(Text, nullable=True)

    channel = relationship("Channel", back_populates="messages")
