"""数据库模型"""
from threat_monitor.models.user import User, SavedLocation, ThreatTypeFilter, IgnoredWord, GPSLocation
from threat_monitor.models.alert import SentAlert
from threat_monitor.models.channel import Channel, ChannelMessage

__all__ = [
    "User",
    "SavedLocation",
    "ThreatTypeFilter",
    "IgnoredWord",
    "GPSLocation",
    "SentAlert",
    "Channel",
    "ChannelMessage",
]
