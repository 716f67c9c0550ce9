"""Dashboard aggregators.

Each build loads the session log and progress rows once, resolves the audio
titles it needs from the catalog, and hands everything to the pure functions
in ``aggregations``. Nothing is cached between requests.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from cassandra import DriverException

from . import aggregations as agg
from .exceptions import StorageError
from .schemas import AdminDashboardResponse, AthleteOption, UserDashboardResponse


if TYPE_CHECKING:
    from uuid import UUID

    from audiocoach.catalog.service import CatalogService

    from .repository import AnalyticsRepository


logger = structlog.get_logger(__name__)


class AdminAggregator:
    """Fleet-wide dashboard, optionally narrowed to one athlete."""

    def __init__(
        self,
        repository: AnalyticsRepository,
        catalog: CatalogService,
    ) -> None:
        self.repository = repository
        self.catalog = catalog

    async def build(
        self,
        filter_user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> AdminDashboardResponse:
        """Build the admin dashboard.

        Args:
            filter_user_id: Restrict session and progress figures to one user
            now: Reference time (defaults to current UTC time)

        Raises:
            StorageError: a store read failed; no partial dashboard is returned
        """
        now = now or datetime.now(UTC)

        try:
            sessions, records, athletes = await asyncio.gather(
                self.repository.list_sessions(filter_user_id),
                self.repository.list_progress(filter_user_id),
                self.catalog.list_athletes(),
            )
            audios = await self.catalog.get_audios(agg.top_audio_ids(sessions))
        except DriverException as e:
            logger.exception(
                "admin_dashboard_failed",
                filter_user_id=str(filter_user_id) if filter_user_id else None,
            )
            raise StorageError("Dashboard unavailable") from e

        filtered = filter_user_id is not None

        dashboard = AdminDashboardResponse(
            total_listening_hours=agg.listening_hours(sessions),
            completion_rate=agg.completion_rate(records),
            active_athletes=(
                None if filtered else agg.active_athlete_count(sessions, now)
            ),
            engagement_trend=agg.engagement_trend(sessions, now),
            popular_audios=agg.popular_audios(sessions, records, audios),
            dropoffs=[] if filtered else agg.dropoffs(athletes, sessions, now),
            athletes=[AthleteOption(id=a.user_id, name=a.name) for a in athletes],
            filter_user_id=filter_user_id,
        )

        logger.debug(
            "dashboard_built",
            role="ADMIN",
            filtered=filtered,
            sessions=len(sessions),
            progress_rows=len(records),
        )
        return dashboard


class UserAggregator:
    """Personal dashboard of one athlete."""

    def __init__(
        self,
        repository: AnalyticsRepository,
        catalog: CatalogService,
    ) -> None:
        self.repository = repository
        self.catalog = catalog

    async def build(
        self,
        user_id: UUID,
        now: datetime | None = None,
    ) -> UserDashboardResponse:
        """Build the dashboard of ``user_id``.

        Raises:
            StorageError: a store read failed
        """
        now = now or datetime.now(UTC)

        try:
            sessions, records = await asyncio.gather(
                self.repository.list_sessions(user_id),
                self.repository.list_progress(user_id),
            )
            audios = await self.catalog.get_audios(r.audio_id for r in records)
        except DriverException as e:
            logger.exception("user_dashboard_failed", user_id=str(user_id))
            raise StorageError("Dashboard unavailable") from e

        completed_count = sum(1 for record in records if record.completed)

        dashboard = UserDashboardResponse(
            total_minutes=agg.listening_minutes(sessions),
            completion_percent=agg.percent(completed_count, len(records)),
            streak_days=agg.streak_days(sessions, now),
            completed_count=completed_count,
            category_progress=agg.category_progress(records, audios),
            continue_listening=agg.continue_listening(records, audios),
        )

        logger.debug(
            "dashboard_built",
            role="USER",
            user_id=str(user_id),
            sessions=len(sessions),
            progress_rows=len(records),
        )
        return dashboard
