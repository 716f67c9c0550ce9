"""Favorite flags stored on the progress record."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException

from .exceptions import AudioNotFoundError, StorageError
from .models import ProgressRecord


if TYPE_CHECKING:
    from audiocoach.catalog.service import CatalogService

    from .repository import AnalyticsRepository

logger = structlog.get_logger(__name__)


class FavoritesService:
    """Read and toggle a user's favorite audios."""

    def __init__(self, repository: "AnalyticsRepository", catalog: "CatalogService"):
        self.repository = repository
        self.catalog = catalog

    async def list_favorites(self, user_id: UUID) -> list[UUID]:
        """Favorite audio ids of a user, most recently touched first."""
        try:
            records = await self.repository.list_progress(user_id)
        except DriverException as e:
            logger.exception("favorites_list_failed", user_id=str(user_id))
            raise StorageError from e

        favorites = [r for r in records if r.is_favorite]
        favorites.sort(key=lambda r: r.updated_at, reverse=True)
        return [r.audio_id for r in favorites]

    async def set_favorite(
        self, user_id: UUID, audio_id: UUID, is_favorite: bool
    ) -> list[UUID]:
        """Set or clear the favorite flag and return the updated list.

        Favoriting an audio that was never played creates its progress row
        with a zero position.

        Raises:
            AudioNotFoundError: audio_id does not resolve
            StorageError: a store operation failed
        """
        now = datetime.now(UTC)
        try:
            if await self.catalog.get_audio(audio_id) is None:
                raise AudioNotFoundError

            await self.repository.create_progress(
                ProgressRecord(
                    user_id=user_id,
                    audio_id=audio_id,
                    is_favorite=is_favorite,
                    created_at=now,
                    updated_at=now,
                )
            )
            await self.repository.set_favorite(user_id, audio_id, is_favorite, now)
        except DriverException as e:
            logger.exception(
                "favorite_update_failed", user_id=str(user_id), audio_id=str(audio_id)
            )
            raise StorageError from e

        logger.info(
            "favorite_updated",
            user_id=str(user_id),
            audio_id=str(audio_id),
            is_favorite=is_favorite,
        )
        return await self.list_favorites(user_id)
