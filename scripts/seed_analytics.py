"""Seed a development keyspace with sample listening data.

Creates a small catalog (audios in four categories), a coach and a handful of
athletes, then 10-20 listening sessions per athlete spread over the last 30
days and progress rows for up to five audios each, so both dashboards have
something to show.

Usage:
    python -m scripts.seed_analytics
"""

import asyncio
import random
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import structlog

from audiocoach.analytics.aggregations import reaches_completion
from audiocoach.analytics.models import ProgressRecord, SessionLogEntry
from audiocoach.analytics.repository import AnalyticsRepository
from audiocoach.auth.permissions import UserRole
from audiocoach.config.settings import get_settings
from audiocoach.core.database import init_async_cassandra, shutdown_async_cassandra


logger = structlog.get_logger(__name__)


AUDIO_SEEDS = [
    ("Pre-race visualisation", 540, "pre-competition"),
    ("Start line breathing", 300, "pre-competition"),
    ("Post-match body scan", 900, "recovery"),
    ("Active recovery walk", 720, "recovery"),
    ("Deep sleep induction", 1500, "sleep"),
    ("Travel nap", 0, "sleep"),  # duration unknown
    ("Single-point focus", 600, "focus"),
    ("Refocus after a mistake", 420, None),
]

MEMBER_SEEDS = [
    ("coach@audiocoach.dev", "Claire", "Coach", UserRole.ADMIN),
    ("thomas@audiocoach.dev", "Thomas", "Runner", UserRole.USER),
    ("lisa@audiocoach.dev", "Lisa", "Swim", UserRole.USER),
    ("david@audiocoach.dev", "David", "Focus", UserRole.USER),
    ("emma@audiocoach.dev", "Emma", "Rower", UserRole.USER),
    # Never listens: shows up as a dropoff
    ("marc@audiocoach.dev", "Marc", "Idle", UserRole.USER),
]

DEFAULT_DURATION = 600


async def seed_catalog(session, keyspace: str) -> tuple[dict[UUID, int], list[UUID]]:
    """Insert audios and members.

    Returns:
        Audio durations keyed by id, and the ids of the listening athletes
    """
    insert_audio = session.prepare(f"""
        INSERT INTO {keyspace}.audio_tracks
        (audio_id, title, duration_seconds, category_id, published, created_at)
        VALUES (?, ?, ?, ?, true, ?)
    """)
    insert_user = session.prepare(f"""
        INSERT INTO {keyspace}.users
        (user_id, email, first_name, last_name, role, is_active, created_at)
        VALUES (?, ?, ?, ?, ?, true, ?)
    """)

    now = datetime.now(UTC)
    durations: dict[UUID, int] = {}
    for title, duration, category_id in AUDIO_SEEDS:
        audio_id = uuid4()
        await session.aexecute(
            insert_audio, [audio_id, title, duration, category_id, now]
        )
        durations[audio_id] = duration

    athletes: list[UUID] = []
    for email, first_name, last_name, role in MEMBER_SEEDS:
        user_id = uuid4()
        await session.aexecute(
            insert_user, [user_id, email, first_name, last_name, role.value, now]
        )
        if role is UserRole.USER and not email.startswith("marc@"):
            athletes.append(user_id)

    logger.info("catalog_seeded", audios=len(durations), members=len(MEMBER_SEEDS))
    return durations, athletes


async def seed_listening(
    repository: AnalyticsRepository,
    durations: dict[UUID, int],
    athletes: list[UUID],
    rng: random.Random,
) -> tuple[int, int]:
    """Insert session log entries and progress rows.

    Returns:
        Tuple of (sessions_count, progress_count)
    """
    now = datetime.now(UTC)
    audio_ids = list(durations)
    sessions = 0
    progress = 0

    for user_id in athletes:
        for _ in range(rng.randint(10, 20)):
            audio_id = rng.choice(audio_ids)
            total = durations[audio_id] or DEFAULT_DURATION
            created_at = now - timedelta(
                days=rng.randint(0, 29), seconds=rng.randint(0, 86_399)
            )
            await repository.append_session(
                SessionLogEntry(
                    user_id=user_id,
                    audio_id=audio_id,
                    duration_seconds=rng.randint(int(total * 0.3), total),
                    created_at=created_at,
                )
            )
            sessions += 1

        for audio_id in rng.sample(audio_ids, k=min(5, len(audio_ids))):
            total = durations[audio_id] or DEFAULT_DURATION
            ratio = rng.random()
            position = float(total) if ratio > 0.85 else float(round(total * ratio))
            completed = reaches_completion(position, durations[audio_id])
            created = await repository.create_progress(
                ProgressRecord(
                    user_id=user_id,
                    audio_id=audio_id,
                    last_position=position,
                    completed=completed,
                    pass_completed=completed,
                    times_completed=rng.randint(1, 4) if completed else 0,
                    is_favorite=rng.random() > 0.6,
                    created_at=now - timedelta(days=rng.randint(1, 29)),
                    updated_at=now - timedelta(minutes=rng.randint(0, 10_000)),
                )
            )
            progress += int(created)

    return sessions, progress


async def run_seed(seed: int | None = None) -> None:
    """Seed the configured keyspace."""
    settings = get_settings()
    keyspace = settings.cassandra_keyspace
    rng = random.Random(seed)

    logger.info("seed_starting", keyspace=keyspace, hosts=settings.cassandra_hosts)

    session = await init_async_cassandra()
    try:
        durations, athletes = await seed_catalog(session, keyspace)
        sessions, progress = await seed_listening(
            AnalyticsRepository(session, keyspace), durations, athletes, rng
        )
        logger.info("seed_completed", sessions=sessions, progress_rows=progress)
    finally:
        await shutdown_async_cassandra()


if __name__ == "__main__":
    asyncio.run(run_seed())
