"""数据采集器模块"""
from threat_monitor.collectors.base import BaseCollector, ChannelPost, PostHandler
from threat_monitor.collectors.telegram import TelegramChannelCollector

__all__ = [
    "BaseCollector",
    "ChannelPost",
    "PostHandler",
    "TelegramChannelCollector",
]
