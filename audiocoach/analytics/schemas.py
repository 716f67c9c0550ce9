"""Pydantic schemas for the analytics API.

The web player speaks camelCase JSON, so every model aliases its fields to
camelCase while Python code keeps snake_case names.
"""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ==============================================================================
# Heartbeat Schemas
# ==============================================================================


class HeartbeatRequest(CamelModel):
    """Playback ping sent by the player every ~10 seconds.

    ``position`` must be a JSON number; numeric strings are rejected.
    ``audioId`` only has to be present: an id that names no audio, malformed
    or not, is a 404 rather than a payload error.
    """

    audio_id: str = Field(..., min_length=1, description="Audio being played")
    position: float = Field(
        ..., ge=0, strict=True, description="Current playback position in seconds"
    )
    session_duration: float | None = Field(
        default=None,
        strict=True,
        description="Seconds listened since the previous heartbeat",
    )


class HeartbeatResponse(CamelModel):
    """Heartbeat acknowledgement."""

    success: bool = True


# ==============================================================================
# Admin Dashboard Schemas
# ==============================================================================


class TrendPoint(CamelModel):
    """Minutes listened on one UTC calendar day."""

    date: str = Field(description="ISO date (YYYY-MM-DD)")
    minutes: int


class PopularAudio(CamelModel):
    """Leaderboard row: most listened audio."""

    audio_id: UUID
    title: str
    minutes: int
    completion_rate: int = Field(description="0-100 percentage")


class Dropoff(CamelModel):
    """Athlete who stopped listening."""

    user_id: UUID
    name: str
    days_since: int | None = Field(
        description="Whole days since the last session, null if never listened"
    )


class AthleteOption(CamelModel):
    """Athlete entry for the admin filter picker."""

    id: UUID
    name: str


class AdminDashboardResponse(CamelModel):
    """Fleet-wide (or single-athlete filtered) dashboard."""

    role: Literal["ADMIN"] = "ADMIN"
    total_listening_hours: float
    completion_rate: int
    active_athletes: int | None = Field(
        description="Athletes with >= 10 min in the last 7 days; null when filtered"
    )
    engagement_trend: list[TrendPoint]
    popular_audios: list[PopularAudio]
    dropoffs: list[Dropoff]
    athletes: list[AthleteOption]
    filter_user_id: UUID | None = None


# ==============================================================================
# User Dashboard Schemas
# ==============================================================================


class CategoryProgress(CamelModel):
    """Completion percentage for one category."""

    category_id: str
    percent: int


class ContinueListeningItem(CamelModel):
    """Started but unfinished audio."""

    audio_id: UUID
    title: str
    progress_percent: int


class UserDashboardResponse(CamelModel):
    """Personal dashboard of an athlete."""

    role: Literal["USER"] = "USER"
    total_minutes: int
    completion_percent: int
    streak_days: int
    completed_count: int
    category_progress: list[CategoryProgress]
    continue_listening: list[ContinueListeningItem]


# ==============================================================================
# Favorites Schemas
# ==============================================================================


class FavoriteRequest(CamelModel):
    """Toggle the favorite flag of an audio."""

    audio_id: str = Field(..., min_length=1)
    is_favorite: bool
