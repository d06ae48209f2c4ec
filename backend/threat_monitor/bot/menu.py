"""Bot chat menu: commands and multi-step flows, replies as HTML text.

Transport-free so it can be driven by the Telethon bot or by tests. Every
public entry point takes the chat id (equal to the Telegram user id in a
private chat) and returns the reply text, or None when nothing should be
sent.
"""
import html
from typing import Awaitable, Callable, Dict, List, Optional

from threat_monitor.analyzers.summary import AlertSummarizer
from threat_monitor.bot.state import ChatState, ChatStateStore
from threat_monitor.database import SessionLocal
from threat_monitor.services.user_store import DEFAULT_PROXIMITY_RADIUS_KM, UserStore
from threat_monitor.utils.logger import get_logger

logger = get_logger(__name__)

PREDEFINED_THREATS = ("ракети", "шахеди", "артобстріл", "авіація", "дрони")

DEFAULT_SUMMARY_MINUTES = 60
MAX_SUMMARY_MINUTES = 24 * 60
MAX_RADIUS_KM = 500.0

START_TEXT = (
    "Привіт. Я допомагаю відстежувати загрози для твоїх міст за повідомленнями з вибраних каналів.\n\n"
    "Використовуй /cities щоб налаштувати міста, /threats щоб налаштувати типи загроз, "
    "надішли геолокацію для сповіщень про загрози поруч, /help щоб отримати довідку."
)

HELP_TEXT = (
    "📋 Доступні команди:\n\n"
    "/start - почати роботу з ботом\n"
    "/cities - показати твої міста\n"
    "/addcity - додати місто\n"
    "/delcity - видалити місто\n"
    "/threats - налаштування типів загроз\n"
    "/togglethreat - змінити фільтр типу загрози\n"
    "/words - слова-виключення\n"
    "/ignore &lt;слово&gt; - не надсилати сповіщення з цим словом\n"
    "/unignore - прибрати слово-виключення\n"
    "/radius &lt;км&gt; - радіус сповіщень навколо геолокації\n"
    "/summary [хвилини] - зведення надісланих сповіщень\n"
    "/cancel - скасувати поточну дію\n"
    "/help - ця довідка\n\n"
    "📍 Надішли свою геолокацію, щоб отримувати сповіщення про загрози поруч."
)

Reply = Optional[str]
CommandFn = Callable[[int, str], Awaitable[Reply]]
FlowFn = Callable[[int, ChatState, str], Awaitable[Reply]]


def parse_choice(text: str, count: int) -> Optional[int]:
    """1-based menu choice -> 0-based index, None if out of range."""
    try:
        number = int(text.strip())
    except ValueError:
        return None
    if 1 <= number <= count:
        return number - 1
    return None


def resolve_threat_choice(text: str) -> Optional[str]:
    index = parse_choice(text, len(PREDEFINED_THREATS))
    if index is not None:
        return PREDEFINED_THREATS[index]
    name = text.strip().lower()
    return name if name in PREDEFINED_THREATS else None


def parse_radius(text: str) -> Optional[float]:
    try:
        radius = float(text.strip().replace(",", "."))
    except ValueError:
        return None
    if radius <= 0 or radius > MAX_RADIUS_KM:
        return None
    return radius


def _location_line(index: int, label: str, city: str, oblast: Optional[str]) -> str:
    oblast_text = f" ({html.escape(oblast)})" if oblast else ""
    return f"{index}) {html.escape(label)} – {html.escape(city)}{oblast_text}"


class MenuHandler:
    """Routes chat input to commands or the pending multi-step flow."""

    def __init__(
        self,
        states: ChatStateStore,
        summarizer: Optional[AlertSummarizer] = None,
        session_factory=SessionLocal,
        default_radius_km: float = DEFAULT_PROXIMITY_RADIUS_KM,
    ):
        self.states = states
        self.summarizer = summarizer or AlertSummarizer()
        self.session_factory = session_factory
        self.default_radius_km = default_radius_km
        self._commands: Dict[str, CommandFn] = {
            "start": self.cmd_start,
            "help": self.cmd_help,
            "cities": self.cmd_cities,
            "addcity": self.cmd_addcity,
            "delcity": self.cmd_delcity,
            "threats": self.cmd_threats,
            "togglethreat": self.cmd_togglethreat,
            "words": self.cmd_words,
            "ignore": self.cmd_ignore,
            "unignore": self.cmd_unignore,
            "radius": self.cmd_radius,
            "summary": self.cmd_summary,
            "cancel": self.cmd_cancel,
        }
        self._flows: Dict[str, FlowFn] = {
            "addcity": self.flow_addcity,
            "delcity": self.flow_delcity,
            "togglethreat": self.flow_togglethreat,
            "ignore": self.flow_ignore,
            "unignore": self.flow_unignore,
        }

    async def handle_message(self, chat_id: int, text: str) -> Reply:
        text = (text or "").strip()
        if not text:
            return None

        if text.startswith("/"):
            head, _, args = text.partition(" ")
            command = head[1:].split("@", 1)[0].lower()
            handler = self._commands.get(command)
            if handler is None:
                return "Невідома команда. Використовуй /help щоб переглянути список команд."
            if command != "cancel":
                # a new command abandons any unfinished flow
                self.states.pop(chat_id)
            return await handler(chat_id, args.strip())

        state = self.states.get(chat_id)
        if state is None:
            return None
        return await self._flows[state.command](chat_id, state, text)

    def handle_location(self, chat_id: int, latitude: float, longitude: float) -> str:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            gps = store.update_gps_location(user.id, latitude, longitude)
            radius = gps.proximity_radius_km or self.default_radius_km
        logger.info(f"GPS location updated for user {chat_id}")
        return (
            f"📍 Геолокацію оновлено ({latitude:.4f}, {longitude:.4f}).\n"
            f"Радіус сповіщень: {radius:g} км. Змінити: /radius &lt;км&gt;"
        )

    # ---------- simple commands ----------

    async def cmd_start(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            UserStore(db).get_or_create_user(chat_id)
        return START_TEXT

    async def cmd_help(self, chat_id: int, args: str) -> Reply:
        return HELP_TEXT

    async def cmd_cancel(self, chat_id: int, args: str) -> Reply:
        if self.states.pop(chat_id) is None:
            return "Немає активної дії."
        return "Скасовано."

    # ---------- cities ----------

    async def cmd_cities(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            locations = store.list_locations(user.id)
            if not locations:
                return "У тебе поки немає збережених міст.\n\nВикористовуй /addcity щоб додати місто."
            lines = ["Твої міста:", ""]
            lines.extend(
                _location_line(i, loc.label, loc.city_name, loc.oblast_name)
                for i, loc in enumerate(locations, start=1)
            )
        lines.append("")
        lines.append("Використовуй /addcity щоб додати місто, /delcity щоб видалити.")
        return "\n".join(lines)

    async def cmd_addcity(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            user = UserStore(db).get_or_create_user(chat_id)
            user_id = user.id
        self.states.set(chat_id, ChatState("addcity", step="label", data={"user_id": user_id}))
        return "Введи коротку назву для цієї локації (наприклад, Дім, Батьки):"

    async def flow_addcity(self, chat_id: int, state: ChatState, text: str) -> Reply:
        if state.step == "label":
            state.data["label"] = text
            state.step = "city"
            self.states.set(chat_id, state)
            return "Введи назву міста (наприклад, Київ):"

        if state.step == "city":
            state.data["city"] = text
            state.step = "oblast"
            self.states.set(chat_id, state)
            return 'Введи область (наприклад, Київська область) або напиши "-" якщо не хочеш вказувати:'

        oblast = None if text == "-" else text
        with self.session_factory() as db:
            UserStore(db).add_location(state.data["user_id"], state.data["label"], state.data["city"], oblast)
        self.states.pop(chat_id)
        oblast_text = f" ({html.escape(oblast)})" if oblast else ""
        return f"✅ Додано: {html.escape(state.data['label'])} – {html.escape(state.data['city'])}{oblast_text}"

    async def cmd_delcity(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            locations = [
                {"id": loc.id, "label": loc.label, "city": loc.city_name, "oblast": loc.oblast_name}
                for loc in store.list_locations(user.id)
            ]
            user_id = user.id
        if not locations:
            return "У тебе немає збережених міст для видалення."

        self.states.set(chat_id, ChatState("delcity", data={"user_id": user_id, "locations": locations}))
        lines = ["Вибери номер міста для видалення:", ""]
        lines.extend(
            _location_line(i, loc["label"], loc["city"], loc["oblast"])
            for i, loc in enumerate(locations, start=1)
        )
        return "\n".join(lines)

    async def flow_delcity(self, chat_id: int, state: ChatState, text: str) -> Reply:
        locations = state.data["locations"]
        index = parse_choice(text, len(locations))
        if index is None:
            return "Невірний номер. Спробуй ще раз або скасуй командою /cancel"
        location = locations[index]
        with self.session_factory() as db:
            UserStore(db).delete_location(state.data["user_id"], location["id"])
        self.states.pop(chat_id)
        return f"✅ Видалено: {html.escape(location['label'])} – {html.escape(location['city'])}"

    # ---------- threat type filters ----------

    async def cmd_threats(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            active = {f.threat_type for f in store.list_threat_filters(user.id)}
        lines = ["Твої фільтри типів загроз:", ""]
        for threat in PREDEFINED_THREATS:
            status = "✅ увімкнено" if threat in active else "❌ вимкнено"
            lines.append(f"{threat}: {status}")
        lines.append("")
        lines.append("Якщо жоден фільтр не увімкнено, надходять загрози всіх типів.")
        lines.append("Використовуй /togglethreat щоб змінити фільтри.")
        return "\n".join(lines)

    def _toggle(self, chat_id: int, threat_type: str) -> str:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            threat_filter = store.toggle_threat_filter(user.id, threat_type)
            status = "увімкнено" if threat_filter.active else "вимкнено"
        return f'✅ Фільтр "{threat_type}" {status}'

    async def cmd_togglethreat(self, chat_id: int, args: str) -> Reply:
        if args:
            threat_type = resolve_threat_choice(args)
            if threat_type is None:
                return "Невірний вибір. Доступні типи: " + ", ".join(PREDEFINED_THREATS)
            return self._toggle(chat_id, threat_type)

        self.states.set(chat_id, ChatState("togglethreat"))
        lines = ["Введи тип загрози для переключення:", ""]
        lines.extend(f"{i}) {threat}" for i, threat in enumerate(PREDEFINED_THREATS, start=1))
        return "\n".join(lines)

    async def flow_togglethreat(self, chat_id: int, state: ChatState, text: str) -> Reply:
        threat_type = resolve_threat_choice(text)
        if threat_type is None:
            return "Невірний вибір. Спробуй ще раз або скасуй командою /cancel"
        self.states.pop(chat_id)
        return self._toggle(chat_id, threat_type)

    # ---------- ignored words ----------

    def _ignored_words(self, chat_id: int) -> List[dict]:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            return [{"id": w.id, "word": w.word} for w in store.list_ignored_words(user.id)]

    async def cmd_words(self, chat_id: int, args: str) -> Reply:
        words = self._ignored_words(chat_id)
        if not words:
            return "Слів-виключень немає.\n\nВикористовуй /ignore &lt;слово&gt; щоб додати."
        lines = ["Сповіщення з цими словами не надсилаються:", ""]
        lines.extend(f"{i}) {html.escape(w['word'])}" for i, w in enumerate(words, start=1))
        lines.append("")
        lines.append("Використовуй /ignore щоб додати, /unignore щоб прибрати.")
        return "\n".join(lines)

    def _add_word(self, chat_id: int, word: str) -> str:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            added = store.add_ignored_word(user.id, word)
            if added is None:
                return "Це слово вже є у списку або порожнє."
            return f'✅ Слово "{html.escape(added.word)}" додано до виключень'

    async def cmd_ignore(self, chat_id: int, args: str) -> Reply:
        if args:
            return self._add_word(chat_id, args)
        self.states.set(chat_id, ChatState("ignore"))
        return "Введи слово або фразу, які треба ігнорувати:"

    async def flow_ignore(self, chat_id: int, state: ChatState, text: str) -> Reply:
        self.states.pop(chat_id)
        return self._add_word(chat_id, text)

    async def cmd_unignore(self, chat_id: int, args: str) -> Reply:
        words = self._ignored_words(chat_id)
        if not words:
            return "Слів-виключень немає."
        self.states.set(chat_id, ChatState("unignore", data={"words": words}))
        lines = ["Вибери номер слова, яке треба прибрати:", ""]
        lines.extend(f"{i}) {html.escape(w['word'])}" for i, w in enumerate(words, start=1))
        return "\n".join(lines)

    async def flow_unignore(self, chat_id: int, state: ChatState, text: str) -> Reply:
        words = state.data["words"]
        index = parse_choice(text, len(words))
        if index is None:
            return "Невірний номер. Спробуй ще раз або скасуй командою /cancel"
        word = words[index]
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            store.delete_ignored_word(user.id, word["id"])
        self.states.pop(chat_id)
        return f'✅ Слово "{html.escape(word["word"])}" прибрано з виключень'

    # ---------- GPS radius ----------

    async def cmd_radius(self, chat_id: int, args: str) -> Reply:
        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            gps = store.get_gps_location(user.id)
            if gps is None:
                return "Спочатку надішли свою геолокацію, потім налаштуй радіус."
            if not args:
                return (
                    f"Поточний радіус: {gps.proximity_radius_km:g} км.\n"
                    f"Змінити: /radius &lt;км&gt; (до {MAX_RADIUS_KM:g} км)"
                )
            radius = parse_radius(args)
            if radius is None:
                return f"Невірний радіус. Вкажи число від 0 до {MAX_RADIUS_KM:g} км."
            store.update_proximity_radius(user.id, radius)
        return f"✅ Радіус сповіщень: {radius:g} км"

    # ---------- summary ----------

    async def cmd_summary(self, chat_id: int, args: str) -> Reply:
        minutes = DEFAULT_SUMMARY_MINUTES
        if args:
            try:
                minutes = int(args)
            except ValueError:
                return "Вкажи кількість хвилин числом, наприклад /summary 120"
            minutes = max(1, min(MAX_SUMMARY_MINUTES, minutes))

        with self.session_factory() as db:
            store = UserStore(db)
            user = store.get_or_create_user(chat_id)
            alerts = store.get_user_alerts(user.id, minutes)
            return await self.summarizer.summarize(alerts, minutes, use_llm=True)
