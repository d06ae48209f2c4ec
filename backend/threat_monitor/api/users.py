"""用户及偏好管理API"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from threat_monitor.api.deps import get_user_or_404, get_user_store
from threat_monitor.models import User
from threat_monitor.schemas import (
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
from threat_monitor.services.user_store import UserStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[UserResponse])
async def list_users(store: UserStore = Depends(get_user_store)):
    """列出所有用户"""
    return [UserResponse.model_validate(u) for u in store.list_users()]


@router.post("", response_model=UserResponse)
async def get_or_create_user(data: UserCreate, store: UserStore = Depends(get_user_store)):
    """按Telegram ID获取或创建用户"""
    user = store.get_or_create_user(data.telegram_user_id)
    return UserResponse.model_validate(user)


@router.get("/{telegram_id}", response_model=UserDetailResponse)
async def get_user(user: User = Depends(get_user_or_404)):
    """获取用户详情（含偏好）"""
    return UserDetailResponse.model_validate(user)


@router.delete("/{telegram_id}")
async def delete_user(user: User = Depends(get_user_or_404), store: UserStore = Depends(get_user_store)):
    """删除用户及其全部偏好和告警记录"""
    telegram_user_id = user.telegram_user_id
    store.delete_user(user.id)
    logger.info(f"Deleted user {telegram_user_id}")
    return {"message": "User deleted"}


# ---------- saved locations ----------

@router.get("/{telegram_id}/locations", response_model=List[LocationResponse])
async def list_locations(user: User = Depends(get_user_or_404), store: UserStore = Depends(get_user_store)):
    return [LocationResponse.model_validate(loc) for loc in store.list_locations(user.id)]


@router.post("/{telegram_id}/locations", response_model=LocationResponse)
async def add_location(
    data: LocationCreate,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    location = store.add_location(user.id, data.label, data.city_name, data.oblast_name)
    return LocationResponse.model_validate(location)


@router.delete("/{telegram_id}/locations/{location_id}")
async def delete_location(
    location_id: int,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    if not store.delete_location(user.id, location_id):
        raise HTTPException(status_code=404, detail="Location not found")
    return {"message": "Location deleted"}


# ---------- threat type filters ----------

@router.get("/{telegram_id}/filters", response_model=List[ThreatFilterResponse])
async def list_filters(
    active_only: bool = Query(default=False),
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    filters = store.list_threat_filters(user.id, active_only=active_only)
    return [ThreatFilterResponse.model_validate(f) for f in filters]


@router.post("/{telegram_id}/filters/toggle", response_model=ThreatFilterResponse)
async def toggle_filter(
    data: ThreatFilterToggle,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    if not data.threat_type.strip():
        raise HTTPException(status_code=400, detail="threat_type must not be blank")
    threat_filter = store.toggle_threat_filter(user.id, data.threat_type)
    return ThreatFilterResponse.model_validate(threat_filter)


# ---------- ignored words ----------

@router.get("/{telegram_id}/ignored-words", response_model=List[IgnoredWordResponse])
async def list_ignored_words(user: User = Depends(get_user_or_404), store: UserStore = Depends(get_user_store)):
    return [IgnoredWordResponse.model_validate(w) for w in store.list_ignored_words(user.id)]


@router.post("/{telegram_id}/ignored-words", response_model=IgnoredWordResponse)
async def add_ignored_word(
    data: IgnoredWordCreate,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    word = store.add_ignored_word(user.id, data.word)
    if word is None:
        raise HTTPException(status_code=400, detail="Word is blank or already ignored")
    return IgnoredWordResponse.model_validate(word)


@router.delete("/{telegram_id}/ignored-words/{word_id}")
async def delete_ignored_word(
    word_id: int,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    if not store.delete_ignored_word(user.id, word_id):
        raise HTTPException(status_code=404, detail="Ignored word not found")
    return {"message": "Ignored word deleted"}


# ---------- GPS ----------

@router.get("/{telegram_id}/gps", response_model=GPSResponse)
async def get_gps(user: User = Depends(get_user_or_404), store: UserStore = Depends(get_user_store)):
    gps = store.get_gps_location(user.id)
    if gps is None:
        raise HTTPException(status_code=404, detail="GPS location not set")
    return GPSResponse.model_validate(gps)


@router.put("/{telegram_id}/gps", response_model=GPSResponse)
async def update_gps(
    data: GPSUpdate,
    user: User = Depends(get_user_or_404),
    store: UserStore = Depends(get_user_store),
):
    gps = store.update_gps_location(user.id, data.latitude, data.longitude, data.proximity_radius_km)
    return GPSResponse.model_validate(gps)
