"""Cassandra access for the progress store and the session log.

Position writes are plain upserts (last write wins). The completion
transition uses lightweight transactions so two heartbeats racing across the
threshold cannot both increment the counter.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import ProgressRecord, SessionLogEntry


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class AnalyticsRepository:
    """Storage primitives used by the ingestor and the aggregators."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements (keyspace is from settings, not user input)."""
        # Progress
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.audio_progress
            WHERE user_id = ? AND audio_id = ?
        """)  # noqa: S608

        self._list_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.audio_progress WHERE user_id = ?
        """)  # noqa: S608

        self._list_all_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.audio_progress
        """)  # noqa: S608

        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.audio_progress
            (user_id, audio_id, last_position, completed, pass_completed,
             times_completed, is_favorite, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_position = self.session.prepare(f"""
            UPDATE {self.keyspace}.audio_progress
            SET last_position = ?, updated_at = ?
            WHERE user_id = ? AND audio_id = ?
        """)

        self._complete_pass = self.session.prepare(f"""
            UPDATE {self.keyspace}.audio_progress
            SET completed = true, pass_completed = true, times_completed = ?
            WHERE user_id = ? AND audio_id = ?
            IF pass_completed = false AND times_completed = ?
        """)

        self._rearm_pass = self.session.prepare(f"""
            UPDATE {self.keyspace}.audio_progress
            SET pass_completed = false
            WHERE user_id = ? AND audio_id = ?
            IF pass_completed = true
        """)

        self._set_favorite = self.session.prepare(f"""
            UPDATE {self.keyspace}.audio_progress
            SET is_favorite = ?, updated_at = ?
            WHERE user_id = ? AND audio_id = ?
        """)

        # Session log
        self._insert_session = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.listening_sessions
            (user_id, created_at, session_id, audio_id, duration_seconds)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._list_user_sessions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.listening_sessions WHERE user_id = ?
        """)  # noqa: S608

        self._list_all_sessions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.listening_sessions
        """)  # noqa: S608

    # ==========================================================================
    # Progress Store
    # ==========================================================================

    async def get_progress(
        self, user_id: UUID, audio_id: UUID
    ) -> ProgressRecord | None:
        """Get the progress record for a (user, audio) pair."""
        result = await self.session.aexecute(self._get_progress, [user_id, audio_id])
        row = result.one()
        return ProgressRecord.from_row(row) if row else None

    async def list_progress(self, user_id: UUID | None = None) -> list[ProgressRecord]:
        """List progress records for one user, or for everyone."""
        if user_id is None:
            rows = await self.session.aexecute(self._list_all_progress)
        else:
            rows = await self.session.aexecute(self._list_user_progress, [user_id])
        return [ProgressRecord.from_row(row) for row in rows]

    async def create_progress(self, record: ProgressRecord) -> bool:
        """Insert a progress record unless one already exists.

        Returns:
            True if this call created the row, False if another writer won
        """
        result = await self.session.aexecute(
            self._insert_progress,
            [
                record.user_id,
                record.audio_id,
                record.last_position,
                record.completed,
                record.pass_completed,
                record.times_completed,
                record.is_favorite,
                record.created_at,
                record.updated_at,
            ],
        )
        if not result.was_applied:
            logger.debug(
                "progress_insert_not_applied",
                user_id=str(record.user_id),
                audio_id=str(record.audio_id),
            )
        return result.was_applied

    async def update_position(
        self,
        user_id: UUID,
        audio_id: UUID,
        position: float,
        updated_at: datetime,
    ) -> None:
        """Overwrite the playback position (last write wins)."""
        await self.session.aexecute(
            self._update_position, [position, updated_at, user_id, audio_id]
        )

    async def complete_pass(
        self,
        user_id: UUID,
        audio_id: UUID,
        expected_times: int,
    ) -> bool:
        """Mark the current pass completed and bump the counter atomically.

        Applies only if the pass is not completed yet and the counter still
        holds ``expected_times``.

        Returns:
            True if the conditional update was applied
        """
        result = await self.session.aexecute(
            self._complete_pass,
            [expected_times + 1, user_id, audio_id, expected_times],
        )
        return result.was_applied

    async def rearm_pass(self, user_id: UUID, audio_id: UUID) -> bool:
        """Start a new listen-through after the position fell below threshold."""
        result = await self.session.aexecute(self._rearm_pass, [user_id, audio_id])
        return result.was_applied

    async def set_favorite(
        self,
        user_id: UUID,
        audio_id: UUID,
        is_favorite: bool,
        updated_at: datetime,
    ) -> None:
        """Set the favorite flag on an existing progress record."""
        await self.session.aexecute(
            self._set_favorite, [is_favorite, updated_at, user_id, audio_id]
        )

    # ==========================================================================
    # Session Log
    # ==========================================================================

    async def append_session(self, entry: SessionLogEntry) -> None:
        """Append one entry to the session log."""
        await self.session.aexecute(
            self._insert_session,
            [
                entry.user_id,
                entry.created_at,
                entry.session_id,
                entry.audio_id,
                entry.duration_seconds,
            ],
        )

    async def list_sessions(self, user_id: UUID | None = None) -> list[SessionLogEntry]:
        """List session log entries for one user, or for everyone."""
        if user_id is None:
            rows = await self.session.aexecute(self._list_all_sessions)
        else:
            rows = await self.session.aexecute(self._list_user_sessions, [user_id])
        return [SessionLogEntry.from_row(row) for row in rows]
