"""User preference store and sent-alert audit log."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from threat_monitor.analyzers.threat_parser import ThreatRecord
from threat_monitor.models import (
    User,
    SavedLocation,
    ThreatTypeFilter,
    IgnoredWord,
    GPSLocation,
    SentAlert,
)

logger = logging.getLogger(__name__)

DEFAULT_PROXIMITY_RADIUS_KM = 20.0


@dataclass(frozen=True)
class LocationPref:
    label: str
    city_name: str
    oblast_name: Optional[str] = None


@dataclass(frozen=True)
class GPSPref:
    latitude: float
    longitude: float
    proximity_radius_km: float = DEFAULT_PROXIMITY_RADIUS_KM


@dataclass
class UserProfile:
    """Detached snapshot of a user and the preferences dispatch needs."""
    id: int
    telegram_user_id: int
    locations: List[LocationPref] = field(default_factory=list)
    threat_filters: List[str] = field(default_factory=list)
    ignored_words: List[str] = field(default_factory=list)
    gps: Optional[GPSPref] = None


class UserStore:
    """SQLAlchemy-backed store bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    # ---------- users ----------

    def get_user(self, telegram_user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.telegram_user_id == telegram_user_id).first()

    def get_or_create_user(self, telegram_user_id: int) -> User:
        user = self.get_user(telegram_user_id)
        if user:
            return user
        user = User(telegram_user_id=telegram_user_id)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Created user %s", telegram_user_id)
        return user

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.id).all()

    def delete_user(self, user_id: int) -> bool:
        deleted = self.db.query(User).filter(User.id == user_id).delete()
        self.db.commit()
        return bool(deleted)

    def list_user_profiles(self) -> List[UserProfile]:
        users = (
            self.db.query(User)
            .options(
                selectinload(User.locations),
                selectinload(User.threat_filters),
                selectinload(User.ignored_words),
                selectinload(User.gps_location),
            )
            .order_by(User.id)
            .all()
        )
        profiles = []
        for user in users:
            gps = None
            if user.gps_location:
                gps = GPSPref(
                    latitude=user.gps_location.latitude,
                    longitude=user.gps_location.longitude,
                    proximity_radius_km=user.gps_location.proximity_radius_km or DEFAULT_PROXIMITY_RADIUS_KM,
                )
            profiles.append(UserProfile(
                id=user.id,
                telegram_user_id=user.telegram_user_id,
                locations=[
                    LocationPref(label=loc.label, city_name=loc.city_name, oblast_name=loc.oblast_name)
                    for loc in user.locations if loc.active
                ],
                threat_filters=[f.threat_type for f in user.threat_filters if f.active],
                ignored_words=[w.word for w in user.ignored_words],
                gps=gps,
            ))
        return profiles

    # ---------- saved locations ----------

    def list_locations(self, user_id: int) -> List[SavedLocation]:
        return (
            self.db.query(SavedLocation)
            .filter(SavedLocation.user_id == user_id, SavedLocation.active == True)  # noqa: E712
            .order_by(SavedLocation.id)
            .all()
        )

    def add_location(self, user_id: int, label: str, city_name: str, oblast_name: Optional[str] = None) -> SavedLocation:
        location = SavedLocation(
            user_id=user_id,
            label=label.strip(),
            city_name=city_name.strip(),
            oblast_name=(oblast_name or "").strip() or None,
        )
        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)
        return location

    def delete_location(self, user_id: int, location_id: int) -> bool:
        deleted = (
            self.db.query(SavedLocation)
            .filter(SavedLocation.id == location_id, SavedLocation.user_id == user_id)
            .delete()
        )
        self.db.commit()
        return bool(deleted)

    # ---------- threat type filters ----------

    def list_threat_filters(self, user_id: int, active_only: bool = True) -> List[ThreatTypeFilter]:
        query = self.db.query(ThreatTypeFilter).filter(ThreatTypeFilter.user_id == user_id)
        if active_only:
            query = query.filter(ThreatTypeFilter.active == True)  # noqa: E712
        return query.order_by(ThreatTypeFilter.id).all()

    def toggle_threat_filter(self, user_id: int, threat_type: str) -> ThreatTypeFilter:
        threat_type = threat_type.strip().lower()
        existing = (
            self.db.query(ThreatTypeFilter)
            .filter(ThreatTypeFilter.user_id == user_id, ThreatTypeFilter.threat_type == threat_type)
            .first()
        )
        if existing:
            existing.active = not existing.active
            threat_filter = existing
        else:
            threat_filter = ThreatTypeFilter(user_id=user_id, threat_type=threat_type, active=True)
            self.db.add(threat_filter)
        self.db.commit()
        self.db.refresh(threat_filter)
        return threat_filter

    # ---------- ignored words ----------

    def list_ignored_words(self, user_id: int) -> List[IgnoredWord]:
        return (
            self.db.query(IgnoredWord)
            .filter(IgnoredWord.user_id == user_id)
            .order_by(IgnoredWord.word)
            .all()
        )

    def add_ignored_word(self, user_id: int, word: str) -> Optional[IgnoredWord]:
        """Store a normalized word; None when empty or already present."""
        normalized = (word or "").strip().lower()
        if not normalized:
            return None
        existing = (
            self.db.query(IgnoredWord)
            .filter(IgnoredWord.user_id == user_id, IgnoredWord.word == normalized)
            .first()
        )
        if existing:
            return None
        ignored = IgnoredWord(user_id=user_id, word=normalized)
        self.db.add(ignored)
        self.db.commit()
        self.db.refresh(ignored)
        return ignored

    def delete_ignored_word(self, user_id: int, word_id: int) -> bool:
        deleted = (
            self.db.query(IgnoredWord)
            .filter(IgnoredWord.id == word_id, IgnoredWord.user_id == user_id)
            .delete()
        )
        self.db.commit()
        return bool(deleted)

    # ---------- GPS ----------

    def get_gps_location(self, user_id: int) -> Optional[GPSLocation]:
        return self.db.query(GPSLocation).filter(GPSLocation.user_id == user_id).first()

    def update_gps_location(
        self,
        user_id: int,
        latitude: float,
        longitude: float,
        proximity_radius_km: Optional[float] = None,
    ) -> GPSLocation:
        gps = self.get_gps_location(user_id)
        if gps is None:
            gps = GPSLocation(
                user_id=user_id,
                latitude=latitude,
                longitude=longitude,
                proximity_radius_km=proximity_radius_km or DEFAULT_PROXIMITY_RADIUS_KM,
            )
            self.db.add(gps)
        else:
            gps.latitude = latitude
            gps.longitude = longitude
            if proximity_radius_km:
                gps.proximity_radius_km = proximity_radius_km
        gps.last_updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(gps)
        return gps

    def update_proximity_radius(self, user_id: int, radius_km: float) -> Optional[GPSLocation]:
        gps = self.get_gps_location(user_id)
        if gps is None:
            return None
        gps.proximity_radius_km = radius_km
        self.db.commit()
        self.db.refresh(gps)
        return gps

    # ---------- sent alerts ----------

    def save_sent_alert(self, user_id: int, record: ThreatRecord, is_strategic: bool) -> SentAlert:
        alert = SentAlert(
            user_id=user_id,
            sent_at=datetime.utcnow(),
            locations=", ".join(record.locations),
            type=record.threat_type or "",
            description=record.description or "",
            probability=record.probability_percent or 0,
            is_strategic=bool(is_strategic),
        )
        self.db.add(alert)
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def get_user_alerts(self, user_id: int, minutes_ago: int, now: Optional[datetime] = None) -> List[SentAlert]:
        """Alerts sent within the trailing window, most recent first."""
        since = (now or datetime.utcnow()) - timedelta(minutes=minutes_ago)
        return (
            self.db.query(SentAlert)
            .filter(SentAlert.user_id == user_id, SentAlert.sent_at >= since)
            .order_by(SentAlert.sent_at.desc(), SentAlert.id.desc())
            .all()
        )
