"""Shared pytest fixtures.

Provides:
- In-memory SQLite engine (StaticPool) and a session factory bound to it
- A geocoder that never touches the network
- A recording fake transport for alert delivery
- An httpx AsyncClient on the FastAPI app with the DB dependency overridden
"""
import os
from typing import AsyncGenerator, Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Force test configuration before the application modules are imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["API_KEY"] = "test-api-key"
os.environ["MONITOR_ENABLED"] = "false"
os.environ["LLM_API_KEY"] = ""

from threat_monitor.database import get_db, init_db  # noqa: E402
from threat_monitor.geo.geocoding import Geocoder  # noqa: E402
from threat_monitor.services.dispatcher import DeliveryError  # noqa: E402

API_KEY = "test-api-key"
AUTH_HEADERS = {"Authorization": f"Bearer {API_KEY}"}


# ── Database fixtures ─────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


# ── Collaborators ─────────────────────────────────────────────────────

@pytest.fixture
def geocoder(tmp_path) -> Geocoder:
    """Major-city table only; initialize() is never called."""
    return Geocoder(cache_path=str(tmp_path / "geo_cache.json"))


class FakeTransport:
    """Records deliveries; chat ids in ``raise_for`` raise, in ``fail_for`` return False."""

    def __init__(self, raise_for: Optional[Set[int]] = None, fail_for: Optional[Set[int]] = None):
        self.raise_for = raise_for or set()
        self.fail_for = fail_for or set()
        self.sent: List[Tuple[int, str, Optional[str]]] = []

    async def send(self, chat_id: int, text: str, parse_mode: Optional[str] = None) -> bool:
        if chat_id in self.raise_for:
            raise DeliveryError(f"chat {chat_id} blocked the bot")
        if chat_id in self.fail_for:
            return False
        self.sent.append((chat_id, text, parse_mode))
        return True

    @property
    def messages_by_chat(self) -> Dict[int, str]:
        return {chat_id: text for chat_id, text, _ in self.sent}


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


# ── API client ────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the DB dependency bound to the test engine."""
    from threat_monitor.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=AUTH_HEADERS) as ac:
        yield ac

    app.dependency_overrides.clear()
