"""Heartbeat ingestion: playback pings -> progress store + session log.

Business logic for:
- Position tracking (last write wins, backward seeks included)
- Completion at 90% of the nominal duration, counted once per listen-through
- Session log append for the seconds listened since the previous ping

The progress write and the session log append are independent operations:
if the append fails the request fails, but the progress write stays.
"""

import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException

from .aggregations import reaches_completion, round_int
from .exceptions import AudioNotFoundError, InvalidHeartbeatError, StorageError
from .models import ProgressRecord, SessionLogEntry


if TYPE_CHECKING:
    from audiocoach.catalog.service import CatalogService

    from .repository import AnalyticsRepository

logger = structlog.get_logger(__name__)

# Conditional completion updates retried when another writer changed the row
MAX_COMPLETION_ATTEMPTS = 3


class HeartbeatIngestor:
    """Apply player heartbeats to the progress store and session log."""

    def __init__(
        self,
        repository: "AnalyticsRepository",
        catalog: "CatalogService",
    ):
        self.repository = repository
        self.catalog = catalog

    async def ingest(
        self,
        user_id: UUID,
        audio_id: UUID,
        position: float,
        session_duration: float | None = None,
        now: datetime | None = None,
    ) -> ProgressRecord:
        """Apply one heartbeat.

        Args:
            user_id: Authenticated caller
            audio_id: Audio being played
            position: Playback position in seconds (>= 0)
            session_duration: Seconds listened since the previous heartbeat;
                              a missing or zero value is a seek update
            now: Timestamp of the heartbeat (defaults to current UTC time)

        Returns:
            The progress record as written

        Raises:
            InvalidHeartbeatError: position is not a finite number >= 0
            AudioNotFoundError: audio_id does not resolve
            StorageError: a read or write against the store failed
        """
        _validate_position(position)
        now = now or datetime.now(UTC)

        try:
            audio = await self.catalog.get_audio(audio_id)
        except DriverException as e:
            logger.exception("heartbeat_audio_lookup_failed", audio_id=str(audio_id))
            raise StorageError("Heartbeat failed") from e

        if audio is None:
            raise AudioNotFoundError

        completed_now = reaches_completion(position, audio.duration_seconds)

        try:
            progress = await self._write_progress(
                user_id, audio_id, position, completed_now, now
            )
        except DriverException as e:
            logger.exception(
                "heartbeat_progress_write_failed",
                user_id=str(user_id),
                audio_id=str(audio_id),
            )
            raise StorageError("Heartbeat failed") from e

        listened = _listened_seconds(session_duration)
        if listened > 0:
            entry = SessionLogEntry(
                user_id=user_id,
                audio_id=audio_id,
                duration_seconds=listened,
                created_at=now,
            )
            try:
                await self.repository.append_session(entry)
            except DriverException as e:
                # Progress above is already durable; nothing is rolled back
                logger.exception(
                    "heartbeat_session_log_failed",
                    user_id=str(user_id),
                    audio_id=str(audio_id),
                    duration_seconds=listened,
                )
                raise StorageError("Heartbeat failed") from e
            logger.debug(
                "session_logged",
                user_id=str(user_id),
                audio_id=str(audio_id),
                duration_seconds=listened,
            )

        logger.debug(
            "heartbeat_ingested",
            user_id=str(user_id),
            audio_id=str(audio_id),
            position=position,
            completed=progress.completed,
        )
        return progress

    async def _write_progress(
        self,
        user_id: UUID,
        audio_id: UUID,
        position: float,
        completed_now: bool,
        now: datetime,
    ) -> ProgressRecord:
        existing = await self.repository.get_progress(user_id, audio_id)

        if existing is None:
            record = ProgressRecord(
                user_id=user_id,
                audio_id=audio_id,
                last_position=position,
                completed=completed_now,
                pass_completed=completed_now,
                times_completed=1 if completed_now else 0,
                created_at=now,
                updated_at=now,
            )
            if await self.repository.create_progress(record):
                if completed_now:
                    _log_completion(record)
                return record

            # Another heartbeat created the row first; continue as an update
            existing = await self.repository.get_progress(user_id, audio_id)
            if existing is None:
                msg = "Progress record disappeared during heartbeat"
                raise StorageError(msg)

        await self.repository.update_position(user_id, audio_id, position, now)
        existing.last_position = position
        existing.updated_at = now

        if completed_now:
            return await self._complete_pass(existing)

        if existing.pass_completed:
            # Fell back below the threshold: the next crossing counts again
            await self.repository.rearm_pass(user_id, audio_id)
            existing.pass_completed = False

        return existing

    async def _complete_pass(self, record: ProgressRecord) -> ProgressRecord:
        """Count the current listen-through as completed, at most once."""
        for _ in range(MAX_COMPLETION_ATTEMPTS):
            if record.pass_completed:
                return record

            applied = await self.repository.complete_pass(
                record.user_id, record.audio_id, expected_times=record.times_completed
            )
            if applied:
                record.completed = True
                record.pass_completed = True
                record.times_completed += 1
                _log_completion(record)
                return record

            fresh = await self.repository.get_progress(record.user_id, record.audio_id)
            if fresh is None:
                msg = "Progress record disappeared during heartbeat"
                raise StorageError(msg)
            fresh.last_position = record.last_position
            fresh.updated_at = record.updated_at
            record = fresh

        logger.warning(
            "completion_update_contended",
            user_id=str(record.user_id),
            audio_id=str(record.audio_id),
            attempts=MAX_COMPLETION_ATTEMPTS,
        )
        return record


def _validate_position(position: object) -> None:
    if isinstance(position, bool) or not isinstance(position, int | float):
        raise InvalidHeartbeatError("position must be a number")
    if not math.isfinite(position) or position < 0:
        raise InvalidHeartbeatError("position must be a finite number >= 0")


def _listened_seconds(session_duration: float | None) -> int:
    """Whole seconds to log; missing, negative or non-finite values log nothing."""
    if session_duration is None or isinstance(session_duration, bool):
        return 0
    if not math.isfinite(session_duration) or session_duration <= 0:
        return 0
    return round_int(session_duration)


def _log_completion(record: ProgressRecord) -> None:
    logger.info(
        "audio_completed",
        user_id=str(record.user_id),
        audio_id=str(record.audio_id),
        times_completed=record.times_completed,
    )
