"""Geocoder for Ukrainian place names.

Two tiers: a built-in table of major cities and a persisted table of oblast
centroids built from the open ``ukraine_geojson`` dataset. The persisted
cache is JSON ``{"timestamp": ISO-8601, "data": {name: {"lat", "lon"}}}`` and
is rebuilt when older than ``max_age_days``.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional

import requests

logger = logging.getLogger(__name__)


class Coordinates(NamedTuple):
    lat: float
    lon: float


UKRAINE_REGIONS = [
    ("Вінницька", "05"),
    ("Волинська", "07"),
    ("Дніпропетровська", "12"),
    ("Донецька", "14"),
    ("Житомирська", "18"),
    ("Закарпатська", "21"),
    ("Запорізька", "23"),
    ("Івано-Франківська", "26"),
    ("Київська", "32"),
    ("Кіровоградська", "35"),
    ("Луганська", "09"),
    ("Львівська", "46"),
    ("Миколаївська", "48"),
    ("Одеська", "51"),
    ("Полтавська", "53"),
    ("Рівненська", "56"),
    ("Сумська", "59"),
    ("Тернопільська", "61"),
    ("Харківська", "63"),
    ("Херсонська", "65"),
    ("Хмельницька", "68"),
    ("Черкаська", "71"),
    ("Чернівецька", "77"),
    ("Чернігівська", "74"),
    ("Крим", "43"),
]

MAJOR_CITIES: Dict[str, Coordinates] = {
    "київ": Coordinates(50.4501, 30.5234),
    "харків": Coordinates(49.9935, 36.2304),
    "одеса": Coordinates(46.4825, 30.7233),
    "дніпро": Coordinates(48.4647, 35.0462),
    "донецьк": Coordinates(48.0159, 37.8028),
    "запоріжжя": Coordinates(47.8388, 35.1396),
    "львів": Coordinates(49.8397, 24.0297),
    "кривий ріг": Coordinates(47.9077, 33.3917),
    "миколаїв": Coordinates(46.9750, 31.9946),
    "маріуполь": Coordinates(47.0971, 37.5432),
    "луганськ": Coordinates(48.5740, 39.3078),
    "вінниця": Coordinates(49.2331, 28.4682),
    "сімферополь": Coordinates(44.9521, 34.1024),
    "херсон": Coordinates(46.6354, 32.6169),
    "полтава": Coordinates(49.5883, 34.5514),
    "чернігів": Coordinates(51.4982, 31.2893),
    "черкаси": Coordinates(49.4285, 32.0616),
    "суми": Coordinates(50.9077, 34.7981),
    "житомир": Coordinates(50.2649, 28.6767),
    "хмельницький": Coordinates(49.4229, 26.9871),
    "чернівці": Coordinates(48.2921, 25.9358),
    "рівне": Coordinates(50.6199, 26.2516),
    "івано-франківськ": Coordinates(48.9226, 24.7111),
    "тернопіль": Coordinates(49.5535, 25.5948),
    "луцьк": Coordinates(50.7472, 25.3254),
    "ужгород": Coordinates(48.6208, 22.2879),
    "кропивницький": Coordinates(48.5079, 32.2623),
    "біла церква": Coordinates(49.7968, 30.1311),
    "бровари": Coordinates(50.5110, 30.7909),
    "бориспіль": Coordinates(50.3527, 30.9550),
    "ірпінь": Coordinates(50.5218, 30.2506),
    "буча": Coordinates(50.5436, 30.2127),
    "васильків": Coordinates(50.1776, 30.3215),
    "фастів": Coordinates(50.0770, 29.9178),
    "обухів": Coordinates(50.1072, 30.6211),
    "павлоград": Coordinates(48.5350, 35.8700),
    "кременчук": Coordinates(49.0659, 33.4100),
    "краматорськ": Coordinates(48.7389, 37.5848),
    "слов'янськ": Coordinates(48.8533, 37.6053),
    "ізюм": Coordinates(49.2128, 37.2567),
    "куп'янськ": Coordinates(49.7106, 37.6156),
    "нікополь": Coordinates(47.5667, 34.4061),
    "енергодар": Coordinates(47.4989, 34.6575),
    "мелітополь": Coordinates(46.8489, 35.3653),
    "бердянськ": Coordinates(46.7558, 36.7886),
    "ізмаїл": Coordinates(45.3503, 28.8372),
    "чорноморськ": Coordinates(46.3017, 30.6569),
    "конотоп": Coordinates(51.2403, 33.2026),
    "шостка": Coordinates(51.8659, 33.4698),
    "ковель": Coordinates(51.2150, 24.7133),
}

# Administrative suffixes removed before lookup (first occurrence each).
ADMIN_SUFFIXES = ("область", "обл.", "обл", "м.", "місто")

LOCATION_ALIASES = {
    "дніпропетровськ": "дніпро",
    "кіровоград": "кропивницький",
    "кировоград": "кропивницький",
    "киев": "київ",
    "kyiv": "київ",
    "kiev": "київ",
    "харьков": "харків",
    "kharkiv": "харків",
    "одесса": "одеса",
    "odesa": "одеса",
    "lviv": "львів",
    "львов": "львів",
    "николаев": "миколаїв",
    "запорожье": "запоріжжя",
    "кривой рог": "кривий ріг",
    "київщина": "київська",
    "харківщина": "харківська",
    "одещина": "одеська",
    "сумщина": "сумська",
    "чернігівщина": "чернігівська",
    "полтавщина": "полтавська",
    "дніпропетровщина": "дніпропетровська",
    "дніпровщина": "дніпропетровська",
    "миколаївщина": "миколаївська",
    "херсонщина": "херсонська",
    "житомирщина": "житомирська",
    "вінниччина": "вінницька",
    "львівщина": "львівська",
    "волинь": "волинська",
    "закарпаття": "закарпатська",
    "буковина": "чернівецька",
    "кримський півострів": "крим",
}


def normalize_location_name(name: str) -> str:
    """Lowercase, strip administrative suffixes and fold aliases."""
    normalized = (name or "").lower().strip()
    for suffix in ADMIN_SUFFIXES:
        normalized = normalized.replace(suffix, "", 1)
    normalized = " ".join(normalized.split())
    return LOCATION_ALIASES.get(normalized, normalized)


def extract_center_coordinates(feature: dict) -> Optional[Coordinates]:
    """Point coordinates, or the vertex mean of a polygon's outer ring."""
    geometry = feature.get("geometry") if isinstance(feature, dict) else None
    if not geometry:
        return None

    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if not coordinates:
        return None

    if geometry_type == "Point":
        return Coordinates(lat=float(coordinates[1]), lon=float(coordinates[0]))

    if geometry_type == "Polygon":
        ring = coordinates[0]
    elif geometry_type == "MultiPolygon":
        ring = coordinates[0][0]
    else:
        return None

    if not ring:
        return None
    lon_sum = sum(float(point[0]) for point in ring)
    lat_sum = sum(float(point[1]) for point in ring)
    return Coordinates(lat=lat_sum / len(ring), lon=lon_sum / len(ring))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Geocoder:
    """Resolves free-text location names to coordinates."""

    def __init__(
        self,
        cache_path: str,
        max_age_days: int = 7,
        base_url: str = "https://raw.githubusercontent.com/EugeneBorshch/ukraine_geojson/master/",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.cache_path = Path(cache_path)
        self.max_age = timedelta(days=max_age_days)
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock
        self._table: Dict[str, Coordinates] = dict(MAJOR_CITIES)
        self.initialized = False

    @classmethod
    def from_settings(cls, settings) -> "Geocoder":
        return cls(
            cache_path=settings.geocoding_cache_path,
            max_age_days=settings.geocoding_cache_max_age_days,
            base_url=settings.geojson_base_url,
            timeout=settings.geocoding_request_timeout,
        )

    @property
    def known_names(self) -> List[str]:
        return list(self._table.keys())

    def initialize(self) -> None:
        """Load the persisted cache or rebuild it from the dataset. Never raises."""
        cached = self._load_cache()
        if cached is not None:
            self._table = {**MAJOR_CITIES, **cached}
            self.initialized = True
            logger.info("Loaded cached geocoding data (%d locations)", len(self._table))
            return

        try:
            region_data = self.fetch_region_centroids()
        except Exception as e:
            logger.error("Failed to build geocoding data: %s", e)
            region_data = {}

        if not region_data:
            self._table = dict(MAJOR_CITIES)
            self.initialized = True
            logger.warning("No regional data available; using major cities only (offline mode)")
            return

        self._table = {**MAJOR_CITIES, **region_data}
        self.initialized = True
        try:
            self._save_cache(self._table)
            logger.info("Geocoding cache created with %d locations", len(self._table))
        except OSError as e:
            logger.warning("Could not persist geocoding cache: %s", e)

    def _load_cache(self) -> Optional[Dict[str, Coordinates]]:
        if not self.cache_path.exists():
            return None
        try:
            payload = json.loads(self.cache_path.read_text(encoding="utf-8"))
            age = self.clock() - _parse_timestamp(payload["timestamp"])
            if age >= self.max_age:
                logger.info("Geocoding cache is stale (%s old); refreshing", age)
                return None
            return {
                name: Coordinates(lat=float(coords["lat"]), lon=float(coords["lon"]))
                for name, coords in payload["data"].items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Could not load geocoding cache: %s", e)
            return None

    def _save_cache(self, table: Dict[str, Coordinates]) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "timestamp": self.clock().isoformat(),
            "data": {name: {"lat": c.lat, "lon": c.lon} for name, c in table.items()},
        }
        self.cache_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def fetch_region_centroids(self) -> Dict[str, Coordinates]:
        """Download every oblast file; failures are skipped individually."""
        region_data: Dict[str, Coordinates] = {}
        logger.info("Downloading Ukraine GeoJSON data...")

        for name, code in UKRAINE_REGIONS:
            file_name = f"UA_{code}_{name}.geojson"
            url = f"{self.base_url}{file_name}"
            try:
                response = self.session.get(url, timeout=self.timeout)
                if response.status_code != 200:
                    logger.warning("Could not fetch %s: HTTP %s", file_name, response.status_code)
                    continue
                features = response.json().get("features") or []
                if not features:
                    continue
                coordinates = extract_center_coordinates(features[0])
                if coordinates:
                    region_data[name.lower()] = coordinates
                    logger.debug("Loaded %s: %.4f, %.4f", name, coordinates.lat, coordinates.lon)
            except (requests.RequestException, ValueError, TypeError, IndexError, AttributeError) as e:
                logger.warning("Error fetching %s: %s", file_name, e)

        return region_data

    def coordinates_for(self, name: str) -> Optional[Coordinates]:
        if not name:
            return None
        if not self.initialized:
            logger.debug("Geocoder not initialized; using major cities only")
        return self._table.get(normalize_location_name(name))

    def find_locations_in_text(self, text: str) -> List[str]:
        """Known location names contained in text."""
        lowered = (text or "").lower()
        return [name for name in self._table if name in lowered]
