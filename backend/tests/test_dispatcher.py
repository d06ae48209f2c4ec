"""Tests for relevance matching and concurrent alert dispatch."""
import threading

import pytest

from threat_monitor.analyzers.threat_parser import StrategicFlag, ThreatRecord
from threat_monitor.models import SentAlert
from threat_monitor.services.dispatcher import (
    ProximityMatch,
    ThreatDispatcher,
    build_alert_message,
    probability_band,
)
from threat_monitor.services.user_store import GPSPref, LocationPref, UserProfile, UserStore

from conftest import FakeTransport

KYIV_LAT, KYIV_LON = 50.4501, 30.5234
# one degree of latitude is ~111.195 km on a 6371 km sphere
KM_PER_DEGREE = 111.195


def _record(
    locations=("Київ",),
    threat_type="ракети",
    description="Ракетна небезпека",
    flag=StrategicFlag.NO,
    has_threat=True,
    has_unknown_location=False,
) -> ThreatRecord:
    return ThreatRecord(
        has_threat=has_threat,
        threat_type=threat_type,
        locations=list(locations),
        description=description,
        occurs_at="14:30",
        probability_percent=80,
        strategic_flag=flag,
        has_unknown_location=has_unknown_location,
    )


def _add_user(session_factory, telegram_id, cities=(), filters=(), words=(), gps=None, radius=None):
    with session_factory() as db:
        store = UserStore(db)
        user = store.get_or_create_user(telegram_id)
        for city, oblast in cities:
            store.add_location(user.id, city, city, oblast)
        for threat_type in filters:
            store.toggle_threat_filter(user.id, threat_type)
        for word in words:
            store.add_ignored_word(user.id, word)
        if gps:
            store.update_gps_location(user.id, gps[0], gps[1], radius)
        return user.id


def _north_of_kyiv(km):
    return KYIV_LAT + km / KM_PER_DEGREE, KYIV_LON


@pytest.fixture
def dispatcher(geocoder, session_factory):
    return ThreatDispatcher(geocoder, session_factory=session_factory)


class TestDispatch:
    async def test_no_threat_sends_nothing(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Київ", None)])

        report = await dispatcher.dispatch(_record(has_threat=False), transport.send)

        assert transport.sent == []
        assert report.outcomes == []

    async def test_strategic_reaches_every_user(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Львів", None)])
        _add_user(session_factory, 2)
        _add_user(session_factory, 3, filters=["дрони"])
        record = _record(locations=["Енгельс"], description="Зліт стратегічної авіації", flag=StrategicFlag.YES)

        report = await dispatcher.dispatch(record, transport.send)

        assert report.strategic is True
        assert sorted(report.recipients) == [1, 2, 3]
        assert report.delivered == 3
        assert all("СТРАТЕГІЧНА ЗАГРОЗА" in text for _, text, _ in transport.sent)
        assert all(parse_mode == "html" for _, _, parse_mode in transport.sent)

    async def test_ignored_word_beats_strategic(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, words=["шахед"])
        _add_user(session_factory, 2)
        record = _record(description="Пуски шахедів з Приморсько-Ахтарська", flag=StrategicFlag.YES)

        report = await dispatcher.dispatch(record, transport.send)

        assert report.recipients == [2]
        assert report.exclusions == {"ignored_word": 1}

    async def test_city_matches_oblast_mention(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Харків", None)])
        _add_user(session_factory, 2, cities=[("Львів", None)])

        report = await dispatcher.dispatch(_record(locations=["Харківська область"]), transport.send)

        assert report.recipients == [1]
        assert report.exclusions == {"location_mismatch": 1}

    async def test_saved_oblast_matches(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Бровари", "Київська")])

        report = await dispatcher.dispatch(_record(locations=["Київська область"]), transport.send)

        assert report.recipients == [1]

    async def test_users_without_locations_miss_regular_threats(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1)

        report = await dispatcher.dispatch(_record(), transport.send)

        assert report.recipients == []
        assert report.exclusions == {"no_saved_locations": 1}

    async def test_unknown_locations_do_not_exclude(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Львів", None)])

        report = await dispatcher.dispatch(_record(locations=[], has_unknown_location=True), transport.send)

        assert report.recipients == [1]

    async def test_type_filters(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Київ", None)], filters=["ракети"])
        _add_user(session_factory, 2, cities=[("Київ", None)], filters=["дрони"])
        _add_user(session_factory, 3, cities=[("Київ", None)])

        report = await dispatcher.dispatch(_record(threat_type="Крилаті ракети"), transport.send)

        assert sorted(report.recipients) == [1, 3]
        assert report.exclusions == {"type_filter": 1}

    async def test_unknown_type_bypasses_filters(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Київ", None)], filters=["дрони"])

        report = await dispatcher.dispatch(_record(threat_type=None), transport.send)

        assert report.recipients == [1]

    async def test_proximity_within_radius(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, gps=_north_of_kyiv(15))
        _add_user(session_factory, 2, gps=_north_of_kyiv(30))

        report = await dispatcher.dispatch(_record(locations=["Київ"]), transport.send)

        assert report.recipients == [1]
        outcome = report.outcomes[0]
        assert outcome.proximity.location == "Київ"
        assert outcome.proximity.distance_km == pytest.approx(15, abs=0.05)
        message = transport.messages_by_chat[1]
        assert message.startswith("🔴 <b>УВАГА! Загроза поруч: 15.0 км від вашої локації (Київ)</b>")

    async def test_proximity_uses_user_radius(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, gps=_north_of_kyiv(30), radius=50)

        report = await dispatcher.dispatch(_record(locations=["Київ"]), transport.send)

        assert report.recipients == [1]

    async def test_proximity_bypasses_type_filter_and_saved_locations(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, cities=[("Львів", None)], filters=["дрони"], gps=_north_of_kyiv(5))

        report = await dispatcher.dispatch(_record(locations=["Київ"]), transport.send)

        assert report.recipients == [1]

    async def test_geocode_miss_is_skipped(self, dispatcher, session_factory, transport):
        _add_user(session_factory, 1, gps=_north_of_kyiv(5))

        report = await dispatcher.dispatch(_record(locations=["Невідомівка", "Київ"]), transport.send)

        assert report.outcomes[0].proximity.location == "Київ"

    async def test_failures_are_isolated_and_audited(self, geocoder, session_factory):
        for telegram_id in (1, 2, 3):
            _add_user(session_factory, telegram_id, cities=[("Київ", None)])
        transport = FakeTransport(raise_for={2}, fail_for={3})
        dispatcher = ThreatDispatcher(geocoder, session_factory=session_factory)

        report = await dispatcher.dispatch(_record(), transport.send)

        assert report.delivered == 1
        assert report.failed == 2
        assert [chat_id for chat_id, _, _ in transport.sent] == [1]
        failed = {o.telegram_user_id: o.error for o in report.outcomes if not o.success}
        assert "DeliveryError" in failed[2]
        assert failed[3] == "transport reported failure"
        assert all(o.audited for o in report.outcomes)
        with session_factory() as db:
            assert db.query(SentAlert).count() == 3

    async def test_database_work_runs_off_the_event_loop(self, geocoder, session_factory, transport):
        for telegram_id in (1, 2):
            _add_user(session_factory, telegram_id, cities=[("Київ", None)])
        threads = []

        def recording_factory():
            threads.append(threading.get_ident())
            return session_factory()

        dispatcher = ThreatDispatcher(geocoder, session_factory=recording_factory)
        report = await dispatcher.dispatch(_record(), transport.send)

        assert report.delivered == 2
        # one profile load plus one audit write per recipient
        assert len(threads) == 3
        assert threading.get_ident() not in threads
        with session_factory() as db:
            assert db.query(SentAlert).count() == 2


class TestEvaluateUser:
    def test_filter_order(self, geocoder):
        dispatcher = ThreatDispatcher(geocoder)
        profile = UserProfile(
            id=1,
            telegram_user_id=1,
            locations=[LocationPref(label="Дім", city_name="Одеса")],
            threat_filters=["дрони"],
            ignored_words=["навчання"],
            gps=GPSPref(latitude=KYIV_LAT, longitude=KYIV_LON, proximity_radius_km=20),
        )

        ignored = _record(description="Навчання ППО у Києві", flag=StrategicFlag.YES)
        assert dispatcher.evaluate_user(profile, ignored, strategic=True).reason == "ignored_word"

        near = dispatcher.evaluate_user(profile, _record(), strategic=False)
        assert near.included is True
        assert near.reason == "proximity"
        assert near.proximity.distance_km == pytest.approx(0)

        far = dispatcher.evaluate_user(profile, _record(locations=["Львів"]), strategic=False)
        assert far.reason == "location_mismatch"

        wrong_type = dispatcher.evaluate_user(profile, _record(locations=["Одеса"]), strategic=False)
        assert wrong_type.reason == "type_filter"

    def test_nearest_match_wins(self, geocoder):
        dispatcher = ThreatDispatcher(geocoder)
        brovary = geocoder.coordinates_for("Бровари")
        profile = UserProfile(
            id=1,
            telegram_user_id=1,
            gps=GPSPref(latitude=brovary.lat, longitude=brovary.lon, proximity_radius_km=50),
        )

        decision = dispatcher.evaluate_user(profile, _record(locations=["Київ", "Бровари"]), strategic=False)

        assert decision.proximity.location == "Бровари"


class TestMessage:
    def test_probability_bands(self):
        assert probability_band(80) == "висока"
        assert probability_band(79) == "середня"
        assert probability_band(50) == "середня"
        assert probability_band(20) == "низька"
        assert probability_band(19) == "невідома"

    def test_regular_message(self):
        message = build_alert_message(_record(locations=["Київ", "Бровари"]), strategic=False)

        assert message.startswith("⚠️ <b>Нова загроза</b>")
        assert "📍 Регіони: Київ, Бровари" in message
        assert "🎯 Тип: ракети" in message
        assert "🕐 Час: 14:30" in message
        assert "📊 Ймовірність: висока (80%)" in message
        assert "СТРАТЕГІЧНА" not in message

    def test_unknown_fields_render_sentinel(self):
        record = _record(locations=[], threat_type=None)
        record.occurs_at = None
        message = build_alert_message(record, strategic=False)

        assert "📍 Регіони: невідомо" in message
        assert "🎯 Тип: невідомо" in message
        assert "🕐 Час: невідомо" in message

    def test_proximity_preamble_in_meters(self):
        message = build_alert_message(_record(), strategic=True, proximity=ProximityMatch("Київ", 0.5))

        assert message.startswith("🔴 <b>УВАГА! Загроза поруч: 500 м від вашої локації (Київ)</b>")
        assert message.index("СТРАТЕГІЧНА ЗАГРОЗА") < message.index("Нова загроза")

    def test_html_is_escaped(self):
        message = build_alert_message(_record(description="<b>вибухи</b> & дим"), strategic=False)
        assert "&lt;b&gt;вибухи&lt;/b&gt; &amp; дим" in message
