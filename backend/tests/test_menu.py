"""Tests for the bot chat menu, driven without a Telegram transport."""
import pytest

from threat_monitor.analyzers.threat_parser import StrategicFlag, ThreatRecord
from threat_monitor.bot.menu import MenuHandler, parse_choice, parse_radius, resolve_threat_choice
from threat_monitor.bot.state import ChatState, ChatStateStore
from threat_monitor.services.user_store import UserStore

CHAT = 4242


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def menu(session_factory, clock):
    return MenuHandler(ChatStateStore(ttl_seconds=600, clock=clock), session_factory=session_factory)


async def test_start_registers_user(menu, session_factory):
    reply = await menu.handle_message(CHAT, "/start")

    assert reply.startswith("Привіт")
    with session_factory() as db:
        assert UserStore(db).get_user(CHAT) is not None


async def test_help_accepts_bot_suffix(menu):
    reply = await menu.handle_message(CHAT, "/help@threat_monitor_bot")
    assert "/addcity" in reply
    assert "/summary" in reply


async def test_unknown_command(menu):
    assert "Невідома команда" in await menu.handle_message(CHAT, "/launch")


async def test_plain_text_without_flow_is_ignored(menu):
    assert await menu.handle_message(CHAT, "привіт") is None
    assert await menu.handle_message(CHAT, "   ") is None


async def test_addcity_flow(menu, session_factory):
    assert "коротку назву" in await menu.handle_message(CHAT, "/addcity")
    assert "назву міста" in await menu.handle_message(CHAT, "Дім")
    assert "область" in await menu.handle_message(CHAT, "Київ")
    reply = await menu.handle_message(CHAT, "-")

    assert reply == "✅ Додано: Дім – Київ"
    with session_factory() as db:
        store = UserStore(db)
        locations = store.list_locations(store.get_user(CHAT).id)
        assert [(loc.label, loc.city_name, loc.oblast_name) for loc in locations] == [("Дім", "Київ", None)]
    assert await menu.handle_message(CHAT, "ще текст") is None


async def test_addcity_with_oblast_and_escaping(menu):
    await menu.handle_message(CHAT, "/addcity")
    await menu.handle_message(CHAT, "<Дача>")
    await menu.handle_message(CHAT, "Ірпінь")
    reply = await menu.handle_message(CHAT, "Київська область")

    assert reply == "✅ Додано: &lt;Дача&gt; – Ірпінь (Київська область)"


async def test_cities_and_delcity_flow(menu, session_factory):
    await menu.handle_message(CHAT, "/start")
    with session_factory() as db:
        store = UserStore(db)
        user = store.get_user(CHAT)
        store.add_location(user.id, "Дім", "Київ")
        store.add_location(user.id, "Батьки", "Суми", "Сумська")

    listing = await menu.handle_message(CHAT, "/cities")
    assert "1) Дім – Київ" in listing
    assert "2) Батьки – Суми (Сумська)" in listing

    assert "номер міста" in await menu.handle_message(CHAT, "/delcity")
    assert "Невірний номер" in await menu.handle_message(CHAT, "7")
    assert await menu.handle_message(CHAT, "1") == "✅ Видалено: Дім – Київ"

    with session_factory() as db:
        store = UserStore(db)
        assert [loc.label for loc in store.list_locations(store.get_user(CHAT).id)] == ["Батьки"]


async def test_cities_empty(menu):
    assert "немає збережених міст" in await menu.handle_message(CHAT, "/cities")
    assert "немає збережених міст" in await menu.handle_message(CHAT, "/delcity")


async def test_togglethreat_by_number_and_name(menu):
    await menu.handle_message(CHAT, "/togglethreat")
    assert await menu.handle_message(CHAT, "1") == '✅ Фільтр "ракети" увімкнено'

    assert await menu.handle_message(CHAT, "/togglethreat Шахеди") == '✅ Фільтр "шахеди" увімкнено'
    assert await menu.handle_message(CHAT, "/togglethreat 1") == '✅ Фільтр "ракети" вимкнено'

    threats = await menu.handle_message(CHAT, "/threats")
    assert "ракети: ❌ вимкнено" in threats
    assert "шахеди: ✅ увімкнено" in threats


async def test_togglethreat_rejects_unknown_type(menu):
    await menu.handle_message(CHAT, "/togglethreat")
    assert "Невірний вибір" in await menu.handle_message(CHAT, "танки")
    assert "Невірний вибір" in await menu.handle_message(CHAT, "/togglethreat танки")


async def test_ignore_words_flow(menu):
    assert "Слів-виключень немає" in await menu.handle_message(CHAT, "/words")
    assert await menu.handle_message(CHAT, "/ignore Навчання") == '✅ Слово "навчання" додано до виключень'
    assert "вже є" in await menu.handle_message(CHAT, "/ignore навчання")

    await menu.handle_message(CHAT, "/ignore")
    assert await menu.handle_message(CHAT, "вибухи") == '✅ Слово "вибухи" додано до виключень'

    words = await menu.handle_message(CHAT, "/words")
    assert "1) вибухи" in words
    assert "2) навчання" in words

    await menu.handle_message(CHAT, "/unignore")
    assert await menu.handle_message(CHAT, "2") == '✅ Слово "навчання" прибрано з виключень'
    assert "навчання" not in await menu.handle_message(CHAT, "/words")


async def test_location_and_radius(menu, session_factory):
    assert "геолокацію" in await menu.handle_message(CHAT, "/radius 10")

    reply = menu.handle_location(CHAT, 50.4501, 30.5234)
    assert "Геолокацію оновлено (50.4501, 30.5234)" in reply
    assert "20 км" in reply

    assert "Поточний радіус: 20 км" in await menu.handle_message(CHAT, "/radius")
    assert await menu.handle_message(CHAT, "/radius 7,5") == "✅ Радіус сповіщень: 7.5 км"
    assert "Невірний радіус" in await menu.handle_message(CHAT, "/radius 0")
    assert "Невірний радіус" in await menu.handle_message(CHAT, "/radius далеко")

    with session_factory() as db:
        store = UserStore(db)
        assert store.get_gps_location(store.get_user(CHAT).id).proximity_radius_km == 7.5


async def test_cancel(menu):
    assert await menu.handle_message(CHAT, "/cancel") == "Немає активної дії."
    await menu.handle_message(CHAT, "/addcity")
    assert await menu.handle_message(CHAT, "/cancel") == "Скасовано."
    assert await menu.handle_message(CHAT, "Дім") is None


async def test_new_command_abandons_flow(menu):
    await menu.handle_message(CHAT, "/addcity")
    await menu.handle_message(CHAT, "/help")
    assert await menu.handle_message(CHAT, "Дім") is None


async def test_flow_state_expires(menu, clock):
    await menu.handle_message(CHAT, "/addcity")
    clock.now += 601
    assert await menu.handle_message(CHAT, "Дім") is None


async def test_summary(menu, session_factory):
    assert "сповіщень не було" in await menu.handle_message(CHAT, "/summary")

    with session_factory() as db:
        store = UserStore(db)
        user = store.get_user(CHAT)
        record = ThreatRecord(
            has_threat=True,
            threat_type="ракети",
            locations=["Київ"],
            description="Ракетна небезпека",
            probability_percent=90,
            strategic_flag=StrategicFlag.YES,
        )
        store.save_sent_alert(user.id, record, True)

    reply = await menu.handle_message(CHAT, "/summary 30")
    assert "Зведення за останні 30 хв" in reply
    assert "Всього сповіщень: 1" in reply
    assert "Стратегічних: 1" in reply
    assert "Вкажи кількість хвилин" in await menu.handle_message(CHAT, "/summary година")


def test_state_store_ttl():
    clock = FakeClock()
    states = ChatStateStore(ttl_seconds=10, clock=clock)
    states.set(1, ChatState("addcity"))
    states.set(2, ChatState("ignore"))

    clock.now += 5
    states.touch(1)
    clock.now += 6

    assert states.get(1).command == "addcity"
    assert states.get(2) is None
    clock.now += 11
    assert states.purge_expired() == 1
    assert len(states) == 0


def test_choice_helpers():
    assert parse_choice("2", 3) == 1
    assert parse_choice("0", 3) is None
    assert parse_choice("x", 3) is None
    assert resolve_threat_choice("5") == "дрони"
    assert resolve_threat_choice(" Авіація ") == "авіація"
    assert resolve_threat_choice("6") is None
    assert parse_radius("500") == 500
    assert parse_radius("501") is None
