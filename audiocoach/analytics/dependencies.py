"""FastAPI dependencies for analytics.

Provides dependency injection for:
- Heartbeat ingestor
- Dashboard aggregators
- Favorites service
- Error handlers
"""

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status

from .aggregator import AdminAggregator, UserAggregator
from .exceptions import AnalyticsError
from .favorites import FavoritesService
from .ingestor import HeartbeatIngestor


def _from_state(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analytics service not available",
        )
    return service


async def get_heartbeat_ingestor(request: Request) -> HeartbeatIngestor:
    """Get heartbeat ingestor from app state."""
    return _from_state(request, "heartbeat_ingestor")


async def get_admin_aggregator(request: Request) -> AdminAggregator:
    """Get admin dashboard aggregator from app state."""
    return _from_state(request, "admin_aggregator")


async def get_user_aggregator(request: Request) -> UserAggregator:
    """Get user dashboard aggregator from app state."""
    return _from_state(request, "user_aggregator")


async def get_favorites_service(request: Request) -> FavoritesService:
    """Get favorites service from app state."""
    return _from_state(request, "favorites_service")


# Type aliases for dependency injection
HeartbeatIngestorDep = Annotated[HeartbeatIngestor, Depends(get_heartbeat_ingestor)]
AdminAggregatorDep = Annotated[AdminAggregator, Depends(get_admin_aggregator)]
UserAggregatorDep = Annotated[UserAggregator, Depends(get_user_aggregator)]
FavoritesServiceDep = Annotated[FavoritesService, Depends(get_favorites_service)]


def handle_analytics_error(error: AnalyticsError) -> HTTPException:
    """Convert analytics errors to HTTP exceptions.

    Args:
        error: Analytics error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "invalid_payload": status.HTTP_400_BAD_REQUEST,
        "audio_not_found": status.HTTP_404_NOT_FOUND,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
