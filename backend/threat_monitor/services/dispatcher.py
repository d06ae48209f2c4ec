"""Relevance matching and alert dispatch.

For every classified threat the dispatcher decides which users are notified,
renders a per-user message and delivers all messages concurrently. Filters
are applied per user in a fixed order, stopping at the first decisive one:

1. ignored words (exclude, even for strategic threats)
2. strategic threat (include)
3. GPS proximity (include, annotated with the nearest match)
4. saved city/oblast names (exclude on mismatch)
5. threat type filters (exclude on mismatch)

Every delivery attempt writes one SentAlert row, whatever the transport
outcome. One recipient's failure never affects the others.
"""
import asyncio
import html
from collections import Counter
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from threat_monitor.analyzers.strategic import is_strategic
from threat_monitor.analyzers.threat_parser import ThreatRecord, UNKNOWN_SENTINEL
from threat_monitor.database import SessionLocal
from threat_monitor.geo.distance import format_distance, is_within_radius
from threat_monitor.geo.geocoding import Coordinates, Geocoder
from threat_monitor.services.user_store import UserProfile, UserStore, DEFAULT_PROXIMITY_RADIUS_KM
from threat_monitor.utils.logger import get_logger

logger = get_logger(__name__)

# send(telegram_user_id, text, parse_mode) -> delivered?
SendFn = Callable[[int, str, Optional[str]], Awaitable[bool]]

PARSE_MODE = "html"


class DeliveryError(RuntimeError):
    """Raised by a transport when a message could not be delivered."""


@dataclass(frozen=True)
class ProximityMatch:
    location: str
    distance_km: float


@dataclass(frozen=True)
class RecipientDecision:
    included: bool
    reason: str
    proximity: Optional[ProximityMatch] = None


@dataclass
class DeliveryOutcome:
    user_id: int
    telegram_user_id: int
    success: bool
    audited: bool = False
    error: Optional[str] = None
    proximity: Optional[ProximityMatch] = None


@dataclass
class DispatchReport:
    strategic: bool = False
    considered: int = 0
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    exclusions: Dict[str, int] = field(default_factory=dict)

    @property
    def recipients(self) -> List[int]:
        return [o.telegram_user_id for o in self.outcomes]

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


def probability_band(percent: int) -> str:
    if percent >= 80:
        return "висока"
    if percent >= 50:
        return "середня"
    if percent >= 20:
        return "низька"
    return "невідома"


def build_alert_message(
    record: ThreatRecord,
    strategic: bool,
    proximity: Optional[ProximityMatch] = None,
) -> str:
    """Render the HTML alert text for one recipient."""
    parts = []
    if proximity:
        parts.append(
            f"🔴 <b>УВАГА! Загроза поруч: {format_distance(proximity.distance_km)} "
            f"від вашої локації ({html.escape(proximity.location)})</b>"
        )
        parts.append("")
    if strategic:
        parts.append("🚨 <b>СТРАТЕГІЧНА ЗАГРОЗА</b> (сповіщення для всіх регіонів)")
        parts.append("")

    regions = ", ".join(record.locations) if record.locations else UNKNOWN_SENTINEL
    parts.append("⚠️ <b>Нова загроза</b>")
    parts.append(f"📍 Регіони: {html.escape(regions)}")
    parts.append(f"🎯 Тип: {html.escape(record.type_label)}")
    if record.description:
        parts.append(f"📝 Опис: {html.escape(record.description)}")
    parts.append(f"🕐 Час: {html.escape(record.time_label)}")
    parts.append(f"📊 Ймовірність: {probability_band(record.probability_percent)} ({record.probability_percent}%)")
    return "\n".join(parts)


def ignored_word_hit(profile: UserProfile, description: str) -> Optional[str]:
    lowered = (description or "").lower()
    for word in profile.ignored_words:
        word = word.strip().lower()
        if word and word in lowered:
            return word
    return None


def named_location_match(profile: UserProfile, record: ThreatRecord) -> bool:
    threat_locations = [loc.lower() for loc in record.locations]
    for saved in profile.locations:
        city = (saved.city_name or "").strip().lower()
        oblast = (saved.oblast_name or "").strip().lower()
        for threat_location in threat_locations:
            if city and city in threat_location:
                return True
            if oblast and oblast in threat_location:
                return True
    return False


def threat_type_match(filters: List[str], threat_type: str) -> bool:
    analysis_type = threat_type.lower()
    for threat_filter in filters:
        filter_type = threat_filter.lower()
        if filter_type in analysis_type or analysis_type in filter_type:
            return True
    return False


class ThreatDispatcher:
    """Decides recipients for a threat and delivers the alerts."""

    def __init__(
        self,
        geocoder: Geocoder,
        session_factory=SessionLocal,
        default_radius_km: float = DEFAULT_PROXIMITY_RADIUS_KM,
    ):
        self.geocoder = geocoder
        self.session_factory = session_factory
        self.default_radius_km = default_radius_km
        # SQLite takes one writer at a time
        self._audit_lock = asyncio.Lock()

    def resolve_locations(self, record: ThreatRecord) -> Dict[str, Coordinates]:
        """Geocode the threat's locations; misses are dropped."""
        resolved = {}
        for location in record.locations:
            coordinates = self.geocoder.coordinates_for(location)
            if coordinates is not None:
                resolved[location] = coordinates
        return resolved

    def find_proximity_match(
        self,
        profile: UserProfile,
        resolved: Dict[str, Coordinates],
    ) -> Optional[ProximityMatch]:
        if profile.gps is None or not resolved:
            return None
        radius = profile.gps.proximity_radius_km or self.default_radius_km
        nearest = None
        for location, coordinates in resolved.items():
            check = is_within_radius(
                profile.gps.latitude,
                profile.gps.longitude,
                coordinates.lat,
                coordinates.lon,
                radius,
            )
            if check.within and (nearest is None or check.distance_km < nearest.distance_km):
                nearest = ProximityMatch(location=location, distance_km=check.distance_km)
        return nearest

    def evaluate_user(
        self,
        profile: UserProfile,
        record: ThreatRecord,
        strategic: bool,
        resolved: Optional[Dict[str, Coordinates]] = None,
    ) -> RecipientDecision:
        if ignored_word_hit(profile, record.description):
            return RecipientDecision(False, "ignored_word")

        if strategic:
            return RecipientDecision(True, "strategic")

        if resolved is None:
            resolved = self.resolve_locations(record)
        proximity = self.find_proximity_match(profile, resolved)
        if proximity:
            return RecipientDecision(True, "proximity", proximity)

        if not profile.locations:
            return RecipientDecision(False, "no_saved_locations")

        if record.locations_known and not named_location_match(profile, record):
            return RecipientDecision(False, "location_mismatch")

        if profile.threat_filters and record.threat_type is not None:
            if not threat_type_match(profile.threat_filters, record.threat_type):
                return RecipientDecision(False, "type_filter")

        return RecipientDecision(True, "location")

    def _load_profiles(self) -> List[UserProfile]:
        with self.session_factory() as db:
            return UserStore(db).list_user_profiles()

    def _record_sent_alert(self, profile: UserProfile, record: ThreatRecord, strategic: bool) -> bool:
        try:
            with self.session_factory() as db:
                UserStore(db).save_sent_alert(profile.id, record, strategic)
            return True
        except Exception as e:
            logger.error(f"Failed to save sent alert for user {profile.telegram_user_id}: {e}")
            return False

    async def _deliver(
        self,
        profile: UserProfile,
        record: ThreatRecord,
        strategic: bool,
        proximity: Optional[ProximityMatch],
        send_fn: SendFn,
    ) -> DeliveryOutcome:
        outcome = DeliveryOutcome(
            user_id=profile.id,
            telegram_user_id=profile.telegram_user_id,
            success=False,
            proximity=proximity,
        )
        message = build_alert_message(record, strategic, proximity)
        try:
            delivered = await send_fn(profile.telegram_user_id, message, PARSE_MODE)
            outcome.success = delivered is not False
            if not outcome.success:
                outcome.error = "transport reported failure"
        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"

        if outcome.success:
            logger.info(f"Alert sent to user {profile.telegram_user_id}")
        else:
            logger.error(f"Failed to send alert to user {profile.telegram_user_id}: {outcome.error}")

        async with self._audit_lock:
            outcome.audited = await asyncio.to_thread(self._record_sent_alert, profile, record, strategic)
        return outcome

    async def dispatch(self, record: ThreatRecord, send_fn: SendFn) -> DispatchReport:
        """Notify every relevant user about one threat. Never raises per recipient."""
        report = DispatchReport()
        if not record.has_threat:
            logger.info("No threat detected, skipping alert dispatch")
            return report

        report.strategic = is_strategic(record)
        profiles = await asyncio.to_thread(self._load_profiles)
        report.considered = len(profiles)

        resolved = {} if report.strategic else self.resolve_locations(record)
        exclusions: Counter = Counter()
        selected = []
        for profile in profiles:
            decision = self.evaluate_user(profile, record, report.strategic, resolved)
            if decision.included:
                selected.append((profile, decision))
            else:
                exclusions[decision.reason] += 1
        report.exclusions = dict(exclusions)

        logger.info(
            f"Dispatching threat alert (strategic: {report.strategic}) "
            f"to {len(selected)}/{len(profiles)} users"
        )
        if not selected:
            return report

        results = await asyncio.gather(
            *(
                self._deliver(profile, record, report.strategic, decision.proximity, send_fn)
                for profile, decision in selected
            ),
            return_exceptions=True,
        )
        for (profile, decision), result in zip(selected, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected dispatch error for user {profile.telegram_user_id}: {result}")
                result = DeliveryOutcome(
                    user_id=profile.id,
                    telegram_user_id=profile.telegram_user_id,
                    success=False,
                    error=str(result),
                    proximity=decision.proximity,
                )
            report.outcomes.append(result)

        logger.info(f"Dispatch complete: {report.delivered} delivered, {report.failed} failed")
        return report
