"""采集器基类"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional


@dataclass
class ChannelPost:
    """采集到的频道消息"""
    channel_id: int
    channel_name: str
    text: str
    message_id: int = 0
    posted_at: Optional[datetime] = None


PostHandler = Callable[[ChannelPost], Awaitable[object]]


class BaseCollector(ABC):
    """采集器基类"""

    platform_name: str = ""

    def __init__(self, config: Dict = None):
        self.config = config or {}

    @abstractmethod
    async def start(self, handler: PostHandler) -> None:
        """Connect and start feeding new posts to handler."""

    @abstractmethod
    async def stop(self) -> None:
        pass

    def clean_text(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        text = text.strip()
        if not text:
            return None
        return text
