"""Listening analytics: heartbeat ingestion, dashboards and favorites."""

from .aggregator import AdminAggregator, UserAggregator
from .exceptions import (
    AnalyticsError,
    AudioNotFoundError,
    InvalidFilterError,
    InvalidHeartbeatError,
    StorageError,
)
from .favorites import FavoritesService
from .ingestor import HeartbeatIngestor
from .models import ANALYTICS_TABLES_CQL, ProgressRecord, SessionLogEntry
from .repository import AnalyticsRepository
from .router import favorites_router, router


__all__ = [
    "ANALYTICS_TABLES_CQL",
    "AdminAggregator",
    "AnalyticsError",
    "AnalyticsRepository",
    "AudioNotFoundError",
    "FavoritesService",
    "HeartbeatIngestor",
    "InvalidFilterError",
    "InvalidHeartbeatError",
    "ProgressRecord",
    "SessionLogEntry",
    "StorageError",
    "UserAggregator",
    "favorites_router",
    "router",
]
