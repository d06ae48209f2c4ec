"""Channel message pipeline: dedup -> history -> classify -> parse -> dispatch."""
from typing import Optional

from threat_monitor.analyzers.classifier import ThreatClassifier
from threat_monitor.analyzers.threat_parser import (
    FULL_SCHEMA_LINES,
    LEGACY_SCHEMA_LINES,
    ThreatRecord,
    parse_threat_analysis,
)
from threat_monitor.collectors.base import ChannelPost
from threat_monitor.database import SessionLocal
from threat_monitor.services.channel_store import ChannelStore
from threat_monitor.services.dedup import MessageDeduplicator
from threat_monitor.services.dispatcher import DispatchReport, SendFn, ThreatDispatcher
from threat_monitor.utils.logger import get_logger

logger = get_logger(__name__)


class ThreatMonitor:
    """Handles one incoming channel post end to end."""

    def __init__(
        self,
        classifier: ThreatClassifier,
        dispatcher: ThreatDispatcher,
        deduplicator: MessageDeduplicator,
        send_fn: SendFn,
        session_factory=SessionLocal,
        context_messages: int = 10,
        history_limit: int = 20,
        strategic_line_required: bool = True,
    ):
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.deduplicator = deduplicator
        self.send_fn = send_fn
        self.session_factory = session_factory
        self.context_messages = context_messages
        self.history_limit = history_limit
        self.expected_lines = FULL_SCHEMA_LINES if strategic_line_required else LEGACY_SCHEMA_LINES

    @classmethod
    def from_settings(cls, settings, classifier, dispatcher, send_fn, session_factory=SessionLocal):
        return cls(
            classifier=classifier,
            dispatcher=dispatcher,
            deduplicator=MessageDeduplicator(
                window_seconds=settings.dedup_window_seconds,
                max_entries=settings.dedup_max_entries,
            ),
            send_fn=send_fn,
            session_factory=session_factory,
            context_messages=settings.context_messages,
            history_limit=settings.history_limit,
            strategic_line_required=settings.strategic_line_required,
        )

    def _store_and_load_context(self, post: ChannelPost):
        """Persist the post and return the preceding messages, oldest first."""
        with self.session_factory() as db:
            store = ChannelStore(db, history_limit=self.history_limit)
            channel = store.get_or_create_channel(post.channel_id, username=post.channel_name)
            recent = store.get_recent_messages(channel.id, self.context_messages)
            store.save_message(channel.id, post.message_id, post.posted_at, post.text)
        return recent

    async def handle_post(self, post: ChannelPost) -> Optional[DispatchReport]:
        """Process one post. Never raises; returns the dispatch report if alerts went out."""
        text = (post.text or "").strip()
        if not text:
            return None

        if not self.deduplicator.should_process(post.channel_id, text):
            logger.info(f"Skipping duplicate message from {post.channel_name}")
            return None

        try:
            context = self._store_and_load_context(post)
        except Exception as e:
            logger.error(f"Failed to store message from {post.channel_name}: {e}")
            context = []

        try:
            raw_text = await self.classifier.analyze(post.channel_name, context, text)
        except Exception as e:
            logger.error(f"Error analyzing message from {post.channel_name}: {e}")
            return None

        record = parse_threat_analysis(raw_text, expected_lines=self.expected_lines)
        self._log_record(post, record)

        if not record.has_threat:
            return None

        try:
            return await self.dispatcher.dispatch(record, self.send_fn)
        except Exception as e:
            logger.error(f"Error dispatching alert for {post.channel_name}: {e}")
            return None

    def _log_record(self, post: ChannelPost, record: ThreatRecord) -> None:
        logger.info(
            f"Analysis from {post.channel_name}: threat={record.has_threat}, "
            f"type={record.type_label}, locations={', '.join(record.locations) or '-'}, "
            f"probability={record.probability_percent}%, strategic={record.strategic_flag.value}"
        )
