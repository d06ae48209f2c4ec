"""Strategic threat detection: explicit classifier flag plus keyword fallback."""
import logging
from typing import Iterable, Optional

from threat_monitor.analyzers.threat_parser import StrategicFlag, ThreatRecord

logger = logging.getLogger(__name__)

STRATEGIC_KEYWORDS_VERSION = "strategic-keywords-v2"

# Matched as lowercase substrings of "<type> <description>". Extend freely.
STRATEGIC_KEYWORDS = (
    # strategic aviation
    "стратегічна авіація",
    "стратегічної авіації",
    "стратегічн",
    "бойових частотах",
    "бортів ту",
    # aircraft
    "ту-95",
    "ту-160",
    "ту-22",
    "ту95",
    "ту160",
    "tu-95",
    "tu-160",
    "tu-22",
    "міг-31",
    "миг-31",
    "mig-31",
    # missiles
    "крилат",
    "кинджал",
    "kinzhal",
    "калібр",
    "kalibr",
    "х-101",
    "х-555",
    "х-22",
    "х-47",
    "kh-101",
    "kh-555",
    "kh-22",
    "іскандер",
    "iskander",
    "циркон",
    "балістик",
    "ballistic",
    # attack drones
    "шахед",
    "шахід",
    "shahed",
    "герань",
    "geran",
    # fleet
    "флот",
    "носії калібрів",
    # launch regions
    "енгельс",
    "engels",
    "оленья",
    "olenya",
    "шайковка",
    "моздок",
    "саваслейка",
    "єйськ",
    # mass launches
    "масован",
    "масовий пуск",
    "масований пуск",
    "масована атака",
    "пуски ракет",
)


def keyword_match(text: str, keywords: Iterable[str] = STRATEGIC_KEYWORDS) -> Optional[str]:
    """Return the first strategic keyword contained in text, if any."""
    lowered = (text or "").lower()
    for keyword in keywords:
        if keyword in lowered:
            return keyword
    return None


def is_strategic(record: ThreatRecord) -> bool:
    if record.strategic_flag is StrategicFlag.YES:
        return True
    if record.strategic_flag is StrategicFlag.NO:
        return False

    combined = f"{record.threat_type or ''} {record.description}"
    keyword = keyword_match(combined)
    logger.warning(
        "Strategic flag unknown; keyword fallback (%s) %s",
        STRATEGIC_KEYWORDS_VERSION,
        f"matched {keyword!r}" if keyword else "found no match",
    )
    return keyword is not None
