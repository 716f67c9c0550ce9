"""Read models for the audio catalog and the user directory.

Both tables are owned by the admin CRUD service; this service only reads
them. The CQL is kept here so a standalone deployment (or a test cluster)
boots with the tables present.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from audiocoach.auth.permissions import UserRole


AUDIO_TRACKS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.audio_tracks (
    audio_id UUID PRIMARY KEY,
    title TEXT,
    duration_seconds INT,
    category_id TEXT,
    published BOOLEAN,
    created_at TIMESTAMP
)
"""

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    email TEXT,
    first_name TEXT,
    last_name TEXT,
    role TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP
)
"""

CATALOG_TABLES_CQL = [
    AUDIO_TRACKS_TABLE_CQL,
    USERS_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class AudioTrack:
    """Audio reference as seen by analytics.

    Attributes:
        audio_id: Audio UUID
        title: Display title
        duration_seconds: Nominal duration, 0 when unknown
        category_id: Category identifier, None when unassigned
    """

    def __init__(
        self,
        audio_id: UUID,
        title: str = "",
        duration_seconds: int = 0,
        category_id: str | None = None,
        created_at: datetime | None = None,
    ):
        self.audio_id = audio_id
        self.title = title
        self.duration_seconds = duration_seconds
        self.category_id = category_id
        self.created_at = ensure_utc_aware(created_at)

    @classmethod
    def from_row(cls, row: Any) -> "AudioTrack":
        """Create AudioTrack instance from Cassandra row."""
        return cls(
            audio_id=row.audio_id,
            title=row.title or "",
            duration_seconds=row.duration_seconds or 0,
            category_id=row.category_id,
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        return f"<AudioTrack {self.audio_id} {self.title!r} {self.duration_seconds}s>"


class Member:
    """User reference: identity, role and display name."""

    def __init__(
        self,
        user_id: UUID,
        first_name: str = "",
        last_name: str = "",
        role: str = UserRole.USER.value,
        is_active: bool = True,
    ):
        self.user_id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.role = role
        self.is_active = is_active

    @property
    def name(self) -> str:
        """Full display name."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_athlete(self) -> bool:
        """Active standard (non-admin) users are the athletes."""
        return self.is_active and self.role == UserRole.USER.value

    @classmethod
    def from_row(cls, row: Any) -> "Member":
        """Create Member instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            first_name=row.first_name or "",
            last_name=row.last_name or "",
            role=row.role or UserRole.USER.value,
            is_active=row.is_active is not False,
        )

    def __repr__(self) -> str:
        return f"<Member {self.user_id} {self.role}>"
