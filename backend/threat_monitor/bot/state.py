"""Per-chat conversation state for multi-step bot commands."""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass
class ChatState:
    command: str
    step: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    updated_at: float = 0.0


class ChatStateStore:
    """In-memory chat_id -> ChatState with idle expiry."""

    def __init__(self, ttl_seconds: float = 600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._states: Dict[int, ChatState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def get(self, chat_id: int) -> Optional[ChatState]:
        state = self._states.get(chat_id)
        if state is None:
            return None
        if self.clock() - state.updated_at > self.ttl_seconds:
            del self._states[chat_id]
            return None
        return state

    def set(self, chat_id: int, state: ChatState) -> ChatState:
        state.updated_at = self.clock()
        self._states[chat_id] = state
        return state

    def touch(self, chat_id: int) -> None:
        state = self._states.get(chat_id)
        if state is not None:
            state.updated_at = self.clock()

    def pop(self, chat_id: int) -> Optional[ChatState]:
        return self._states.pop(chat_id, None)

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [cid for cid, s in self._states.items() if now - s.updated_at > self.ttl_seconds]
        for chat_id in expired:
            del self._states[chat_id]
        return len(expired)
