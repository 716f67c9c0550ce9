"""Database models for listening progress and the session log.

Cassandra table definitions for:
- Audio progress: playback position, completion and favorite per (user, audio)
- Listening sessions: append-only log of listened seconds per heartbeat

Both tables are partitioned by user so an athlete's dashboard reads a single
partition; fleet-wide dashboards scan the tables.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from audiocoach.catalog.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progress per (user, audio); unique on the pair.
# pass_completed: current listen-through already crossed the threshold.
AUDIO_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.audio_progress (
    user_id UUID,
    audio_id UUID,
    last_position DOUBLE,
    completed BOOLEAN,
    pass_completed BOOLEAN,
    times_completed INT,
    is_favorite BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), audio_id)
)
"""

# Append-only session log, newest first inside the user partition
LISTENING_SESSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.listening_sessions (
    user_id UUID,
    created_at TIMESTAMP,
    session_id UUID,
    audio_id UUID,
    duration_seconds INT,
    PRIMARY KEY ((user_id), created_at, session_id)
) WITH CLUSTERING ORDER BY (created_at DESC, session_id ASC)
"""

ANALYTICS_TABLES_CQL = [
    AUDIO_PROGRESS_TABLE_CQL,
    LISTENING_SESSIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ProgressRecord:
    """Playback state of one audio for one user.

    Attributes:
        user_id: User UUID (partition key)
        audio_id: Audio UUID
        last_position: Last reported position in seconds (last write wins)
        completed: Ever crossed the completion threshold (never reset)
        pass_completed: Current listen-through crossed the threshold
        times_completed: Number of listen-throughs that crossed the threshold
        is_favorite: Favorite flag, toggled independently of playback
        created_at: First write timestamp
        updated_at: Last write timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        audio_id: UUID,
        last_position: float = 0.0,
        completed: bool = False,
        pass_completed: bool = False,
        times_completed: int = 0,
        is_favorite: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.audio_id = audio_id
        self.last_position = last_position
        self.completed = completed
        self.pass_completed = pass_completed
        self.times_completed = times_completed
        self.is_favorite = is_favorite
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    @classmethod
    def from_row(cls, row: Any) -> "ProgressRecord":
        """Create ProgressRecord instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            audio_id=row.audio_id,
            last_position=row.last_position or 0.0,
            completed=bool(row.completed),
            pass_completed=bool(row.pass_completed),
            times_completed=row.times_completed or 0,
            is_favorite=bool(row.is_favorite),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "audio_id": self.audio_id,
            "last_position": self.last_position,
            "completed": self.completed,
            "pass_completed": self.pass_completed,
            "times_completed": self.times_completed,
            "is_favorite": self.is_favorite,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord user={self.user_id} audio={self.audio_id} "
            f"pos={self.last_position} completed={self.completed} "
            f"x{self.times_completed}>"
        )


class SessionLogEntry:
    """One listened interval reported by a heartbeat. Never mutated."""

    def __init__(
        self,
        user_id: UUID,
        audio_id: UUID,
        duration_seconds: int,
        created_at: datetime | None = None,
        session_id: UUID | None = None,
    ):
        self.user_id = user_id
        self.audio_id = audio_id
        self.duration_seconds = duration_seconds
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.session_id = session_id or uuid4()

    @classmethod
    def from_row(cls, row: Any) -> "SessionLogEntry":
        """Create SessionLogEntry instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            audio_id=row.audio_id,
            duration_seconds=row.duration_seconds or 0,
            created_at=row.created_at,
            session_id=row.session_id,
        )

    def __repr__(self) -> str:
        return (
            f"<SessionLogEntry user={self.user_id} audio={self.audio_id} "
            f"{self.duration_seconds}s at {self.created_at.isoformat()}>"
        )
