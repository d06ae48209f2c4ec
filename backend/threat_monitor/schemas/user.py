"""用户及偏好相关的请求/响应模型"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """创建用户请求"""
    telegram_user_id: int


class UserResponse(BaseModel):
    """用户响应"""
    id: int
    telegram_user_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocationCreate(BaseModel):
    """添加城市请求"""
    label: str = Field(..., min_length=1, max_length=100)
    city_name: str = Field(..., min_length=1, max_length=100)
    oblast_name: Optional[str] = Field(default=None, max_length=100)


class LocationResponse(BaseModel):
    id: int
    label: str
    city_name: str
    oblast_name: Optional[str]
    active: bool

    class Config:
        from_attributes = True


class ThreatFilterToggle(BaseModel):
    threat_type: str = Field(..., min_length=1, max_length=50)


class ThreatFilterResponse(BaseModel):
    id: int
    threat_type: str
    active: bool

    class Config:
        from_attributes = True


class IgnoredWordCreate(BaseModel):
    word: str = Field(..., min_length=1, max_length=100)


class IgnoredWordResponse(BaseModel):
    id: int
    word: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GPSUpdate(BaseModel):
    """更新GPS位置请求"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    proximity_radius_km: Optional[float] = Field(default=None, gt=0, le=500)


class GPSResponse(BaseModel):
    latitude: float
    longitude: float
    proximity_radius_km: float
    last_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserDetailResponse(UserResponse):
    """用户详情（含偏好）"""
    locations: List[LocationResponse] = []
    threat_filters: List[ThreatFilterResponse] = []
    ignored_words: List[IgnoredWordResponse] = []
    gps_location: Optional[GPSResponse] = None
