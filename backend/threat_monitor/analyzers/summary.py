"""告警汇总 (alert digest over a trailing window)"""
import logging
from collections import Counter
from typing import List, Optional, Sequence

from threat_monitor.analyzers.llm_client import LLMClient
from threat_monitor.analyzers.threat_parser import UNKNOWN_SENTINEL
from prompts.threat_prompts import SUMMARY_SYSTEM_PROMPT, build_summary_user_prompt

logger = logging.getLogger(__name__)

TOP_N = 5


def split_locations(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def format_alert_line(alert) -> str:
    time_label = alert.sent_at.strftime("%H:%M") if alert.sent_at else "--:--"
    strategic = "стратегічна" if alert.is_strategic else "звичайна"
    return (
        f"[{time_label}] {alert.type or UNKNOWN_SENTINEL} | "
        f"{alert.locations or UNKNOWN_SENTINEL} | {alert.description or '-'} | "
        f"{alert.probability or 0}% | {strategic}"
    )


class AlertSummarizer:
    """Manual frequency table, or an LLM-written digest with manual fallback."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    def summarize_manual(self, alerts: Sequence, minutes: int) -> str:
        if not alerts:
            return f"За останні {minutes} хв сповіщень не було."

        by_type = Counter((a.type or UNKNOWN_SENTINEL).lower() for a in alerts)
        by_location: Counter = Counter()
        for alert in alerts:
            by_location.update(split_locations(alert.locations))
        strategic = sum(1 for a in alerts if a.is_strategic)

        lines = [
            f"📊 <b>Зведення за останні {minutes} хв</b>",
            f"Всього сповіщень: {len(alerts)}",
            f"Стратегічних: {strategic}",
            "",
            "<b>За типом:</b>",
        ]
        lines.extend(f"• {name}: {count}" for name, count in by_type.most_common(TOP_N))
        if by_location:
            lines.append("")
            lines.append("<b>За локаціями:</b>")
            lines.extend(f"• {name}: {count}" for name, count in by_location.most_common(TOP_N))
        return "\n".join(lines)

    async def summarize(self, alerts: Sequence, minutes: int, use_llm: bool = False) -> str:
        if not alerts or not use_llm or self.llm is None:
            return self.summarize_manual(alerts, minutes)

        prompt = build_summary_user_prompt([format_alert_line(a) for a in alerts], minutes)
        try:
            digest = await self.llm.complete_text(
                prompt,
                system_prompt=SUMMARY_SYSTEM_PROMPT,
                temperature=0.3,
                max_tokens=500,
            )
        except Exception as e:
            logger.warning(f"LLM summary failed, using manual summary: {e}")
            return self.summarize_manual(alerts, minutes)
        return f"📊 <b>Зведення за останні {minutes} хв</b>\n\n{digest}"
