"""Time-windowed deduplication of channel messages."""
import hashlib
import time
from collections import OrderedDict
from typing import Callable, Hashable, Tuple


def content_hash(text: str) -> str:
    normalized = (text or "").strip().lower()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class MessageDeduplicator:
    """
    Remembers (channel, content hash) -> last-seen time.

    A message seen on the same channel within ``window_seconds`` is a
    duplicate. Entries beyond ``max_entries`` are evicted oldest-inserted
    first (not LRU). Accessed only from the event loop thread.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._seen: "OrderedDict[Tuple[Hashable, str], float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def should_process(self, channel_id: Hashable, text: str) -> bool:
        """Record the message and return False if it is a recent duplicate."""
        key = (channel_id, content_hash(text))
        now = self.clock()
        seen_at = self._seen.get(key)
        if seen_at is not None and now - seen_at < self.window_seconds:
            return False

        # re-insert so the refreshed entry is evicted last
        self._seen.pop(key, None)
        self._seen[key] = now
        while len(self._seen) > self.max_entries:
            self._seen.popitem(last=False)
        return True
