"""Shared fixtures: in-memory store, catalog, tokens and the HTTP client."""

import os
import tempfile
from collections.abc import Callable, Iterator
from datetime import datetime
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "json")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="audiocoach-logs-"))

from fastapi.testclient import TestClient  # noqa: E402

from audiocoach.analytics.models import SessionLogEntry  # noqa: E402
from audiocoach.auth.permissions import UserRole  # noqa: E402
from audiocoach.auth.security import create_access_token  # noqa: E402
from audiocoach.catalog.models import AudioTrack, Member  # noqa: E402
from audiocoach.main import app, init_analytics_services  # noqa: E402
from tests.fakes import NOW, InMemoryAnalyticsRepository, InMemoryCatalog  # noqa: E402


@pytest.fixture
def now() -> datetime:
    """Fixed reference time shared by ingest and dashboard tests."""
    return NOW


@pytest.fixture
def repository() -> InMemoryAnalyticsRepository:
    return InMemoryAnalyticsRepository()


@pytest.fixture
def audio() -> AudioTrack:
    """A 10 minute audio."""
    return AudioTrack(
        audio_id=uuid4(), title="Pre-race focus", duration_seconds=600, category_id="focus"
    )


@pytest.fixture
def athlete() -> Member:
    return Member(user_id=uuid4(), first_name="Ana", last_name="Souza")


@pytest.fixture
def admin() -> Member:
    return Member(
        user_id=uuid4(), first_name="Coach", last_name="Lima", role=UserRole.ADMIN.value
    )


@pytest.fixture
def catalog(audio: AudioTrack, athlete: Member, admin: Member) -> InMemoryCatalog:
    return InMemoryCatalog(audios=[audio], members=[athlete, admin])


@pytest.fixture
def session_at(repository: InMemoryAnalyticsRepository) -> Callable[..., None]:
    """Append a session log entry directly to the store."""

    def _add(user_id: UUID, audio_id: UUID, seconds: int, at: datetime) -> None:
        repository.sessions.append(
            SessionLogEntry(
                user_id=user_id, audio_id=audio_id, duration_seconds=seconds, created_at=at
            )
        )

    return _add


def _auth_headers(user_id: UUID, role: str) -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[[UUID, str], dict[str, str]]:
    """Build a Bearer header for any user id and role claim."""
    return _auth_headers


@pytest.fixture
def athlete_headers(athlete: Member) -> dict[str, str]:
    return _auth_headers(athlete.user_id, UserRole.USER.value)


@pytest.fixture
def admin_headers(admin: Member) -> dict[str, str]:
    return _auth_headers(admin.user_id, UserRole.ADMIN.value)


@pytest.fixture
def client(
    repository: InMemoryAnalyticsRepository, catalog: InMemoryCatalog
) -> Iterator[TestClient]:
    """Test client wired to the in-memory store (no Cassandra, no lifespan)."""
    init_analytics_services(app, repository, catalog)
    yield TestClient(app)
    for name in (
        "heartbeat_ingestor",
        "admin_aggregator",
        "user_aggregator",
        "favorites_service",
    ):
        setattr(app.state, name, None)
