"""Tests for heartbeat ingestion."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from cassandra import OperationTimedOut

from audiocoach.analytics.aggregator import UserAggregator
from audiocoach.analytics.exceptions import (
    AudioNotFoundError,
    InvalidHeartbeatError,
    StorageError,
)
from audiocoach.analytics.ingestor import HeartbeatIngestor
from audiocoach.catalog.models import AudioTrack
from tests.fakes import NOW, InMemoryAnalyticsRepository, InMemoryCatalog


@pytest.fixture
def ingestor(
    repository: InMemoryAnalyticsRepository, catalog: InMemoryCatalog
) -> HeartbeatIngestor:
    return HeartbeatIngestor(repository, catalog)


class TestPositionTracking:
    """Position writes and idempotency."""

    @pytest.mark.asyncio
    async def test_first_heartbeat_creates_progress(
        self, ingestor, repository, athlete, audio
    ) -> None:
        record = await ingestor.ingest(athlete.user_id, audio.audio_id, 12.5, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert record.last_position == 12.5
        assert stored.last_position == 12.5
        assert stored.completed is False
        assert stored.times_completed == 0
        assert repository.sessions == []

    @pytest.mark.asyncio
    async def test_replayed_low_position_is_idempotent(
        self, ingestor, repository, athlete, audio
    ) -> None:
        for _ in range(3):
            await ingestor.ingest(athlete.user_id, audio.audio_id, 100, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.last_position == 100
        assert stored.completed is False
        assert stored.times_completed == 0
        assert len(repository.progress) == 1

    @pytest.mark.asyncio
    async def test_backward_seek_moves_position_back(
        self, ingestor, repository, athlete, audio
    ) -> None:
        await ingestor.ingest(athlete.user_id, audio.audio_id, 300, now=NOW)
        await ingestor.ingest(
            athlete.user_id, audio.audio_id, 40, now=NOW + timedelta(seconds=10)
        )

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.last_position == 40
        assert stored.updated_at == NOW + timedelta(seconds=10)


class TestCompletion:
    """Completion threshold and per-pass counting."""

    @pytest.mark.asyncio
    async def test_completion_counted_per_pass(
        self, ingestor, repository, athlete, audio
    ) -> None:
        for position in (0, 570, 300, 570):
            await ingestor.ingest(athlete.user_id, audio.audio_id, position, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.completed is True
        assert stored.times_completed == 2
        assert stored.last_position == 570

    @pytest.mark.asyncio
    async def test_staying_above_threshold_counts_once(
        self, ingestor, repository, athlete, audio
    ) -> None:
        for position in (540, 560, 580, 600):
            await ingestor.ingest(athlete.user_id, audio.audio_id, position, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.times_completed == 1

    @pytest.mark.asyncio
    async def test_completed_never_reset(
        self, ingestor, repository, athlete, audio
    ) -> None:
        await ingestor.ingest(athlete.user_id, audio.audio_id, 590, now=NOW)
        await ingestor.ingest(athlete.user_id, audio.audio_id, 5, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.completed is True
        assert stored.pass_completed is False
        assert stored.times_completed == 1

    @pytest.mark.asyncio
    async def test_first_heartbeat_past_threshold(
        self, ingestor, repository, athlete, audio
    ) -> None:
        record = await ingestor.ingest(athlete.user_id, audio.audio_id, 560, now=NOW)

        assert record.completed is True
        assert record.times_completed == 1

    @pytest.mark.asyncio
    async def test_unknown_duration_never_completes(
        self, repository, catalog, athlete
    ) -> None:
        untimed = catalog.add_audio(AudioTrack(audio_id=uuid4(), title="Live"))
        ingestor = HeartbeatIngestor(repository, catalog)

        record = await ingestor.ingest(athlete.user_id, untimed.audio_id, 5000, now=NOW)

        assert record.completed is False

    @pytest.mark.asyncio
    async def test_concurrent_crossings_count_once(
        self, ingestor, repository, athlete, audio
    ) -> None:
        await ingestor.ingest(athlete.user_id, audio.audio_id, 100, now=NOW)

        await asyncio.gather(
            *(
                ingestor.ingest(athlete.user_id, audio.audio_id, 560 + i, now=NOW)
                for i in range(5)
            )
        )

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.completed is True
        assert stored.times_completed == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_heartbeats_create_one_row(
        self, ingestor, repository, athlete, audio
    ) -> None:
        await asyncio.gather(
            ingestor.ingest(athlete.user_id, audio.audio_id, 570, now=NOW),
            ingestor.ingest(athlete.user_id, audio.audio_id, 575, now=NOW),
        )

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.times_completed == 1
        assert len(repository.progress) == 1


class TestSessionLog:
    """Session log appends."""

    @pytest.mark.asyncio
    async def test_logs_rounded_duration(
        self, ingestor, repository, athlete, audio
    ) -> None:
        await ingestor.ingest(
            athlete.user_id, audio.audio_id, 20, session_duration=9.5, now=NOW
        )

        assert len(repository.sessions) == 1
        entry = repository.sessions[0]
        assert entry.duration_seconds == 10
        assert entry.created_at == NOW
        assert entry.audio_id == audio.audio_id

    @pytest.mark.parametrize("duration", [None, 0, 0.4, -5.0, float("nan")])
    @pytest.mark.asyncio
    async def test_seek_only_heartbeat_logs_nothing(
        self, ingestor, repository, athlete, audio, duration
    ) -> None:
        await ingestor.ingest(
            athlete.user_id, audio.audio_id, 20, session_duration=duration, now=NOW
        )

        assert repository.sessions == []
        assert repository.progress[(athlete.user_id, audio.audio_id)].last_position == 20

    @pytest.mark.asyncio
    async def test_end_to_end_short_listen(
        self, ingestor, repository, catalog, athlete, audio
    ) -> None:
        await ingestor.ingest(athlete.user_id, audio.audio_id, 0, 0, now=NOW)
        await ingestor.ingest(athlete.user_id, audio.audio_id, 570, 30, now=NOW)

        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.completed is True
        assert stored.times_completed == 1
        assert [e.duration_seconds for e in repository.sessions] == [30]

        dashboard = await UserAggregator(repository, catalog).build(
            athlete.user_id, now=NOW
        )
        assert dashboard.total_minutes == 1
        assert dashboard.completed_count == 1
        assert dashboard.continue_listening == []


class TestFailures:
    """Validation and storage failures."""

    @pytest.mark.parametrize("position", [-1, float("inf"), float("nan"), "12", True])
    @pytest.mark.asyncio
    async def test_invalid_position(
        self, ingestor, repository, athlete, audio, position
    ) -> None:
        with pytest.raises(InvalidHeartbeatError) as exc_info:
            await ingestor.ingest(athlete.user_id, audio.audio_id, position, now=NOW)

        assert exc_info.value.code == "invalid_payload"
        assert repository.progress == {}

    @pytest.mark.asyncio
    async def test_unknown_audio(self, ingestor, repository, athlete) -> None:
        with pytest.raises(AudioNotFoundError):
            await ingestor.ingest(athlete.user_id, uuid4(), 10, 10, now=NOW)

        assert repository.progress == {}
        assert repository.sessions == []

    @pytest.mark.asyncio
    async def test_log_failure_keeps_progress_write(
        self, ingestor, repository, athlete, audio
    ) -> None:
        repository.fail_append = True

        with pytest.raises(StorageError) as exc_info:
            await ingestor.ingest(athlete.user_id, audio.audio_id, 570, 30, now=NOW)

        assert exc_info.value.code == "storage_error"
        stored = repository.progress[(athlete.user_id, audio.audio_id)]
        assert stored.last_position == 570
        assert stored.completed is True
        assert repository.sessions == []

    @pytest.mark.asyncio
    async def test_progress_failure_skips_log(
        self, ingestor, repository, athlete, audio
    ) -> None:
        repository.fail_reads = True

        with pytest.raises(StorageError):
            await ingestor.ingest(athlete.user_id, audio.audio_id, 10, 10, now=NOW)

        assert repository.sessions == []

    @pytest.mark.asyncio
    async def test_catalog_failure(self, repository, athlete, audio) -> None:
        catalog = InMemoryCatalog()
        catalog.get_audio = AsyncMock(side_effect=OperationTimedOut("timeout"))
        ingestor = HeartbeatIngestor(repository, catalog)

        with pytest.raises(StorageError):
            await ingestor.ingest(athlete.user_id, audio.audio_id, 10, now=NOW)
