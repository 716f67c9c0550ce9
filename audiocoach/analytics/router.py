"""Analytics API endpoints.

Provides routes for:
- Playback heartbeats (sent by the player every ~10 seconds)
- Role-dependent dashboard
- Favorite audios of the current user
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from audiocoach.auth.dependencies import CurrentUser

from .dependencies import (
    AdminAggregatorDep,
    FavoritesServiceDep,
    HeartbeatIngestorDep,
    UserAggregatorDep,
    handle_analytics_error,
)
from .exceptions import AnalyticsError, AudioNotFoundError, InvalidFilterError
from .schemas import (
    AdminDashboardResponse,
    FavoriteRequest,
    HeartbeatRequest,
    HeartbeatResponse,
    UserDashboardResponse,
)


router = APIRouter(prefix="/analytics", tags=["analytics"])
favorites_router = APIRouter(prefix="/users/me/favorites", tags=["favorites"])


def _audio_id(raw: str) -> UUID:
    """Parse a requested audio id; a value that is not a UUID names no audio."""
    try:
        return UUID(raw)
    except ValueError as e:
        raise AudioNotFoundError from e


def _user_filter(raw: str | None) -> UUID | None:
    """Parse the admin ``userId`` filter; an empty value means no filter."""
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError as e:
        raise InvalidFilterError from e


# ==============================================================================
# Heartbeat Endpoint
# ==============================================================================


@router.post(
    "/heartbeat",
    response_model=HeartbeatResponse,
    summary="Record playback heartbeat",
)
async def record_heartbeat(
    data: HeartbeatRequest,
    ingestor: HeartbeatIngestorDep,
    user: CurrentUser,
) -> HeartbeatResponse:
    """Record the playback position and the seconds listened since last ping.

    Completes the audio once the position reaches 90% of its duration.
    """
    try:
        await ingestor.ingest(
            user_id=user.id,
            audio_id=_audio_id(data.audio_id),
            position=data.position,
            session_duration=data.session_duration,
        )
    except AnalyticsError as e:
        raise handle_analytics_error(e) from e
    return HeartbeatResponse()


# ==============================================================================
# Dashboard Endpoint
# ==============================================================================


@router.get(
    "/dashboard",
    response_model=AdminDashboardResponse | UserDashboardResponse,
    summary="Get analytics dashboard",
)
async def get_dashboard(
    user: CurrentUser,
    admin_aggregator: AdminAggregatorDep,
    user_aggregator: UserAggregatorDep,
    filter_user_id: Annotated[
        str | None,
        Query(alias="userId", description="Admins only: narrow to one athlete"),
    ] = None,
) -> AdminDashboardResponse | UserDashboardResponse:
    """Get the dashboard for the caller's role.

    Admins get fleet-wide figures, optionally filtered to one athlete.
    Everyone else gets their personal dashboard; ``userId`` is ignored.
    A malformed ``userId`` from an admin is rejected with 400.
    """
    try:
        if user.is_admin:
            return await admin_aggregator.build(
                filter_user_id=_user_filter(filter_user_id)
            )
        return await user_aggregator.build(user.id)
    except AnalyticsError as e:
        raise handle_analytics_error(e) from e


# ==============================================================================
# Favorites Endpoints
# ==============================================================================


@favorites_router.get(
    "",
    response_model=list[UUID],
    summary="List favorite audios",
)
async def list_favorites(
    favorites_service: FavoritesServiceDep,
    user: CurrentUser,
) -> list[UUID]:
    """Get the ids of the current user's favorite audios."""
    try:
        return await favorites_service.list_favorites(user.id)
    except AnalyticsError as e:
        raise handle_analytics_error(e) from e


@favorites_router.put(
    "",
    response_model=list[UUID],
    summary="Set favorite flag",
)
async def set_favorite(
    data: FavoriteRequest,
    favorites_service: FavoritesServiceDep,
    user: CurrentUser,
) -> list[UUID]:
    """Add or remove an audio from favorites and return the updated list."""
    try:
        return await favorites_service.set_favorite(
            user.id, _audio_id(data.audio_id), data.is_favorite
        )
    except AnalyticsError as e:
        raise handle_analytics_error(e) from e
