"""已发送告警相关的响应模型"""
from datetime import datetime

from pydantic import BaseModel


class SentAlertResponse(BaseModel):
    """已发送告警响应"""
    id: int
    sent_at: datetime
    locations: str
    type: str
    description: str
    probability: int
    is_strategic: bool

    class Config:
        from_attributes = True


class AlertSummaryResponse(BaseModel):
    """告警汇总响应"""
    minutes: int
    total: int
    strategic: int
    summary: str
