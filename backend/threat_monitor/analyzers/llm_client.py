"""LLM客户端封装"""
import asyncio
from typing import Optional, Dict, Any, List

from openai import OpenAI

from threat_monitor.config import get_settings


class ClassifierError(RuntimeError):
    """Raised when the LLM call fails or returns nothing usable."""


class LLMClient:
    """LLM API客户端 (OpenAI-compatible endpoint)"""

    def __init__(self, settings=None):
        settings = settings or get_settings()
        self.api_key = settings.llm_api_key
        self.base_url = settings.llm_api_base_url
        self.model = settings.llm_model
        self.timeout = settings.llm_timeout
        self.client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url or None,
            timeout=self.timeout,
        )

    def _chat_sync(self, payload: Dict[str, Any]) -> str:
        response = self.client.chat.completions.create(**payload)
        return response.choices[0].message.content or ""

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return await asyncio.to_thread(self._chat_sync, payload)

    async def complete_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.chat(messages, temperature=temperature, max_tokens=max_tokens)
        except Exception as exc:
            raise ClassifierError(f"LLM request failed: {type(exc).__name__}: {exc}") from exc

        text = response.strip()
        if not text:
            raise ClassifierError("LLM returned an empty response")
        return text
