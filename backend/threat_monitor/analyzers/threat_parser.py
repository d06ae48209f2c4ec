"""Parser for the labeled-line threat analysis returned by the classifier.

The classifier answers with one ``Label: value`` pair per line, Ukrainian
labels, fixed by the prompt in ``prompts.threat_prompts``. Parsing never
raises: malformed output degrades to defaults and the problems are recorded
in ``ThreatRecord.warnings`` (and logged).
"""
import enum
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

UNKNOWN_SENTINEL = "невідомо"
UNKNOWN_TOKENS = ("невідомо", "unknown")
YES_TOKENS = ("так", "yes")
NO_TOKENS = ("ні", "no")

LABEL_THREAT = "Загроза:"
LABEL_TYPE = "Тип:"
LABEL_LOCATIONS = ("Локації:", "Локація:")
LABEL_DESCRIPTION = "Опис:"
LABEL_TIME = "Час:"
LABEL_PROBABILITY = "Ймовірність:"
LABEL_STRATEGIC = "Стратегічна"

FULL_SCHEMA_LINES = 7
LEGACY_SCHEMA_LINES = 6

_INT_RE = re.compile(r"\d+")
_WORD_RE = re.compile(r"\w+")


class StrategicFlag(str, enum.Enum):
    """Explicit strategic signal from the classifier."""
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


@dataclass
class ThreatRecord:
    """Structured result of one classified channel message."""
    has_threat: bool = False
    threat_type: Optional[str] = None
    locations: List[str] = field(default_factory=list)
    description: str = ""
    occurs_at: Optional[str] = None
    probability_percent: int = 0
    strategic_flag: StrategicFlag = StrategicFlag.UNKNOWN
    raw_text: str = ""
    # the classifier listed "невідомо" among the locations
    has_unknown_location: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def type_label(self) -> str:
        return self.threat_type or UNKNOWN_SENTINEL

    @property
    def time_label(self) -> str:
        return self.occurs_at or UNKNOWN_SENTINEL

    @property
    def locations_known(self) -> bool:
        return bool(self.locations) and not self.has_unknown_location


def is_unknown(value: Optional[str]) -> bool:
    if value is None:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in UNKNOWN_TOKENS


def _value_after_colon(line: str) -> str:
    return line.split(":", 1)[1].strip() if ":" in line else ""


def parse_threat_flag(value: str) -> bool:
    return value.strip().lower() in YES_TOKENS


def parse_locations(value: str) -> tuple[List[str], bool]:
    """Split a comma-separated location list; report whether "unknown" was listed."""
    if is_unknown(value):
        return [], bool(value.strip())
    locations = []
    has_unknown = False
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if is_unknown(part):
            has_unknown = True
            continue
        locations.append(part)
    return locations, has_unknown


def parse_probability(value: str) -> Optional[int]:
    match = _INT_RE.search(value)
    if not match:
        return None
    return max(0, min(100, int(match.group(0))))


def parse_strategic_flag(value: str) -> StrategicFlag:
    """First whole-word yes/no token decides; an unknown token anywhere wins."""
    words = _WORD_RE.findall(value.lower())
    if any(word in UNKNOWN_TOKENS for word in words):
        return StrategicFlag.UNKNOWN
    for word in words:
        if word in YES_TOKENS:
            return StrategicFlag.YES
        if word in NO_TOKENS:
            return StrategicFlag.NO
    return StrategicFlag.UNKNOWN


def parse_threat_analysis(raw_text: str, expected_lines: int = FULL_SCHEMA_LINES) -> ThreatRecord:
    """Convert raw classifier output into a ThreatRecord."""
    raw_text = raw_text or ""
    record = ThreatRecord(raw_text=raw_text)
    lines = [line.strip() for line in raw_text.split("\n")]
    lines = [line for line in lines if line]

    if len(lines) < expected_lines:
        record.warnings.append(
            f"classifier response has {len(lines)} lines, expected {expected_lines}; parse may be incomplete"
        )

    strategic_seen = False
    for line in lines:
        if line.startswith(LABEL_THREAT):
            record.has_threat = parse_threat_flag(_value_after_colon(line))
        elif line.startswith(LABEL_TYPE):
            value = _value_after_colon(line)
            record.threat_type = None if is_unknown(value) else value
        elif line.startswith(LABEL_LOCATIONS):
            record.locations, record.has_unknown_location = parse_locations(_value_after_colon(line))
        elif line.startswith(LABEL_DESCRIPTION):
            record.description = _value_after_colon(line)
        elif line.startswith(LABEL_TIME):
            value = _value_after_colon(line)
            record.occurs_at = None if is_unknown(value) else value
        elif line.startswith(LABEL_PROBABILITY):
            probability = parse_probability(_value_after_colon(line))
            if probability is not None:
                record.probability_percent = probability
        elif line.startswith(LABEL_STRATEGIC):
            strategic_seen = True
            value = _value_after_colon(line)
            record.strategic_flag = parse_strategic_flag(value)
            if record.strategic_flag is StrategicFlag.UNKNOWN:
                record.warnings.append(f"unrecognized strategic value: {value!r}")

    if not strategic_seen:
        record.warnings.append("strategic line missing from classifier response")

    for warning in record.warnings:
        logger.warning("Threat analysis: %s", warning)

    return record
