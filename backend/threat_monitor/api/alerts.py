"""已发送告警API"""
from typing import List

from fastapi import APIRouter, Depends, Query

from threat_monitor.analyzers.summary import AlertSummarizer
from threat_monitor.api.deps import get_summarizer, get_user_or_404, get_user_store
from threat_monitor.models import User
from threat_monitor.schemas import SentAlertResponse, AlertSummaryResponse
from threat_monitor.services.user_store import UserStore

router = APIRouter()


@router.get("/{telegram_id}/alerts", response_model=List[SentAlertResponse])
async def list_user_alerts(
    minutes: int = Query(default=60, ge=1, le=7 * 24 * 60),
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    """获取用户在时间窗口内收到的告警（新的在前）"""
    alerts = store.get_user_alerts(user.id, minutes)
    return [SentAlertResponse.model_validate(a) for a in alerts]


@router.get("/{telegram_id}/alerts/summary", response_model=AlertSummaryResponse)
async def summarize_user_alerts(
    minutes: int = Query(default=60, ge=1, le=7 * 24 * 60),
    use_llm: bool = Query(default=False),
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
    summarizer: AlertSummarizer = Depends(get_summarizer),
):
    """告警汇总（手动统计或LLM摘要）"""
    alerts = store.get_user_alerts(user.id, minutes)
    summary = await summarizer.summarize(alerts, minutes, use_llm=use_llm)
    return AlertSummaryResponse(
        minutes=minutes,
        total=len(alerts),
        strategic=sum(1 for a in alerts if a.is_strategic),
        summary=summary,
    )
