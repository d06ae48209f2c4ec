"""API dependencies."""
from hmac import compare_digest

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from threat_monitor.analyzers.llm_client import LLMClient
from threat_monitor.analyzers.summary import AlertSummarizer
from threat_monitor.config import get_settings
from threat_monitor.database import get_db
from threat_monitor.models import User
from threat_monitor.services.user_store import UserStore


def require_api_key(authorization: str | None = Header(default=None)) -> None:
    """Require a valid API key for all protected endpoints."""
    settings = get_settings()
    if not settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API key not configured",
        )
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    token = authorization.removeprefix("Bearer ").strip()
    if not token or not compare_digest(token, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_user_or_404(telegram_id: int, store: UserStore = Depends(get_user_store)) -> User:
    user = store.get_user(telegram_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_summarizer() -> AlertSummarizer:
    settings = get_settings()
    if not settings.llm_api_key:
        return AlertSummarizer()
    return AlertSummarizer(LLMClient(settings))
