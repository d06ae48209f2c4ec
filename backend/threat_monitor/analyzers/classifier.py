"""威胁分类器，使用LLM对频道消息进行分析"""
import logging
from datetime import datetime
from typing import Optional, Sequence, Tuple

from threat_monitor.analyzers.llm_client import LLMClient
from prompts.threat_prompts import THREAT_SYSTEM_PROMPT, build_threat_user_prompt

logger = logging.getLogger(__name__)


class ThreatClassifier:
    """Black-box classifier: returns the raw seven-line labeled text."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient()

    async def analyze(
        self,
        channel_name: str,
        recent_messages: Sequence[Tuple[str, Optional[datetime]]],
        new_message_text: str,
    ) -> str:
        prompt = build_threat_user_prompt(channel_name, list(recent_messages), new_message_text)
        raw_text = await self.llm.complete_text(
            prompt,
            system_prompt=THREAT_SYSTEM_PROMPT,
            temperature=0.1,
            max_tokens=600,
        )
        logger.debug("Classifier response for %s: %s", channel_name, raw_text)
        return raw_text
