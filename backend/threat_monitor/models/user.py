"""用户及偏好模型"""
from datetime import datetime

from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship

from threat_monitor.database import Base


class User(Base):
    """订阅用户表"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_user_id = Column(BigInteger, unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    locations = relationship("SavedLocation", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    threat_filters = relationship("ThreatTypeFilter", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    ignored_words = relationship("IgnoredWord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    gps_location = relationship(
        "GPSLocation",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sent_alerts = relationship("SentAlert", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class SavedLocation(Base):
    """用户保存的城市/州"""
    __tablename__ = "user_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    label = Column(String(255), nullable=False)
    city_name = Column(String(255), nullable=False)
    oblast_name = Column(String(255), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="locations")


class ThreatTypeFilter(Base):
    """威胁类型过滤器"""
    __tablename__ = "user_threat_filters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    threat_type = Column(String(100), nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="threat_filters")


class IgnoredWord(Base):
    """忽略词"""
    __tablename__ = "user_ignored_words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    word = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="ignored_words")


class GPSLocation(Base):
    """用户GPS位置及提醒半径"""
    __tablename__ = "user_gps_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    proximity_radius_km = Column(Float, default=20.0, nullable=False)
    last_updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="gps_location")
