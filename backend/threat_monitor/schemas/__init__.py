"""API请求/响应模型"""
from threat_monitor.schemas.user import (
    UserCreate,
    UserResponse,
    UserDetailResponse,
    LocationCreate,
    LocationResponse,
    ThreatFilterToggle,
    ThreatFilterResponse,
    IgnoredWordCreate,
    IgnoredWordResponse,
    GPSUpdate,
    GPSResponse,
)
from threat_monitor.schemas.alert import SentAlertResponse, AlertSummaryResponse

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserDetailResponse",
    "LocationCreate",
    "LocationResponse",
    "ThreatFilterToggle",
    "ThreatFilterResponse",
    "IgnoredWordCreate",
    "IgnoredWordResponse",
    "GPSUpdate",
    "GPSResponse",
    "SentAlertResponse",
    "AlertSummaryResponse",
]
