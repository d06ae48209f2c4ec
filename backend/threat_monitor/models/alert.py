"""已发送报警模型"""
from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship

from threat_monitor.database import Base


class SentAlert(Base):
    """已发送报警审计表"""
    __tablename__ = "sent_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    sent_at = Column(DateTime, default=datetime.utcnow, index=True)
    locations = Column(Text, default="")
    type = Column(String(255), default="")
    description = Column(Text, default="")
    probability = Column(Integer, default=0)
    is_strategic = Column(Boolean, default=False)

    user = relationship("User", back_populates="sent_alerts")
