"""Audiocoach analytics API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from audiocoach.analytics import (
    AdminAggregator,
    AnalyticsRepository,
    FavoritesService,
    HeartbeatIngestor,
    UserAggregator,
    favorites_router,
)
from audiocoach.analytics import router as analytics_router
from audiocoach.catalog import CatalogService
from audiocoach.config import get_settings
from audiocoach.core.context import get_request_id
from audiocoach.core.database import init_async_cassandra, shutdown_async_cassandra
from audiocoach.core.logging import configure_structlog, get_logger
from audiocoach.core.middleware import RequestContextMiddleware
from audiocoach.health.router import router as health_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def init_analytics_services(
    app: FastAPI,
    repository: AnalyticsRepository,
    catalog: CatalogService,
) -> None:
    """Wire the analytics services onto app.state for request dependencies."""
    app.state.heartbeat_ingestor = HeartbeatIngestor(repository, catalog)
    app.state.admin_aggregator = AdminAggregator(repository, catalog)
    app.state.user_aggregator = UserAggregator(repository, catalog)
    app.state.favorites_service = FavoritesService(repository, catalog)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    try:
        session = await init_async_cassandra()
        init_analytics_services(
            app,
            repository=AnalyticsRepository(session, settings.cassandra_keyspace),
            catalog=CatalogService(session, settings.cassandra_keyspace),
        )
        logger.info("analytics_services_initialized")
    except Exception as e:
        # Health endpoints stay up; analytics routes answer 503 until restart
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    logger.info("shutting_down_application")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps Starlette from rendering stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Listening analytics for the audio coaching platform",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _request_id(request: Request) -> str | None:
        return getattr(request.state, "request_id", None) or get_request_id() or None

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions; 5xx details stay in the logs."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _request_id(request),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Answer malformed payloads with 400 and the offending fields."""
        errors = exc.errors()
        logger.warning(
            "validation_error",
            fields=[".".join(str(loc) for loc in err.get("loc", [])) for err in errors],
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": True,
                "message": "Invalid payload",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "request_id": _request_id(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in errors
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler: log the traceback, return a generic body."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "request_id": _request_id(request),
            },
        )

    app.include_router(health_router)
    app.include_router(analytics_router)
    app.include_router(favorites_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Audiocoach analytics API", "version": settings.app_version}

    return app


app = create_app()
