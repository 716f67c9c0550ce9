"""Read-only lookups over the audio catalog and user directory."""

from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import AudioTrack, Member


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CatalogService:
    """Resolve audio and user references for analytics."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements (keyspace is from settings, not user input)."""
        self._get_audio = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.audio_tracks WHERE audio_id = ?
        """)  # noqa: S608

        self._get_audios = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.audio_tracks WHERE audio_id IN ?
        """)  # noqa: S608

        self._list_users = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users
        """)  # noqa: S608

    async def get_audio(self, audio_id: UUID) -> AudioTrack | None:
        """Get a single audio by id."""
        result = await self.session.aexecute(self._get_audio, [audio_id])
        row = result.one()
        return AudioTrack.from_row(row) if row else None

    async def get_audios(self, audio_ids: Iterable[UUID]) -> dict[UUID, AudioTrack]:
        """Get several audios keyed by id; unknown ids are simply absent."""
        ids = list(dict.fromkeys(audio_ids))
        if not ids:
            return {}
        rows = await self.session.aexecute(self._get_audios, [ids])
        audios = [AudioTrack.from_row(row) for row in rows]
        return {audio.audio_id: audio for audio in audios}

    async def list_athletes(self) -> list[Member]:
        """List active standard-role users, sorted by display name.

        The user directory is small (one club), so a full scan is acceptable.
        """
        rows = await self.session.aexecute(self._list_users)
        athletes = [m for m in (Member.from_row(row) for row in rows) if m.is_athlete]
        athletes.sort(key=lambda m: (m.name.lower(), str(m.user_id)))
        logger.debug("athletes_listed", count=len(athletes))
        return athletes
