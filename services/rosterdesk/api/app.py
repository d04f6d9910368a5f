"""
FastAPI application factory for the rosterdesk API server.

Uses lifespan handler for startup/shutdown with async resource management.
"""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from rosterdesk import __version__
from rosterdesk.auth.discord_oauth import DiscordOAuthConnector
from rosterdesk.config import settings
from rosterdesk.errors import InvalidRequest, Unauthenticated, UpstreamUnavailable
from rosterdesk.logging_config import configure_logging, get_logger
from rosterdesk.redis.client import close_redis, init_redis
from rosterdesk.roster.discord_rest import DiscordRESTClient
from rosterdesk.roster.source import DiscordRosterSource
from rosterdesk.services.audit_service import AuditNotifier, EmbedStyle
from rosterdesk.services.batch_actions import BatchActionProcessor
from rosterdesk.services.role_ladder import build_action_table, validate_action_table
from rosterdesk.services.roster_cache import RosterCache

from .health import router as health_router
from .models.common import ErrorResponse
from .routers.actions import router as actions_router
from .routers.auth import router as auth_router
from .routers.roster import router as roster_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting rosterdesk API server", version=__version__)

    # Bad role tables abort startup (ConfigurationError)
    rules = build_action_table(settings.actions)
    validate_action_table(rules)

    await init_redis()
    logger.info("Redis connection initialized")

    discord = DiscordRESTClient(
        bot_token=settings.discord.bot_token,
        base_url=settings.discord.api_base_url,
        timeout=settings.discord.request_timeout_seconds,
    )
    source = DiscordRosterSource(discord, settings.discord.guild_id)
    cache = RosterCache(
        source,
        eligible_role_ids=settings.roster.eligible_role_ids,
        freshness_seconds=settings.roster.freshness_seconds,
        wait_timeout_seconds=settings.roster.refresh_wait_timeout_seconds,
    )
    notifier = AuditNotifier(
        discord,
        settings.notifications.channels,
        EmbedStyle(
            footer_text=settings.notifications.footer_text,
            timezone=settings.notifications.display_timezone,
        ),
    )

    app.state.roster_source = source
    app.state.roster_cache = cache
    app.state.notifier = notifier
    app.state.processor = BatchActionProcessor(source, notifier, rules)
    app.state.oauth_connector = DiscordOAuthConnector(settings.discord)

    warmup = asyncio.create_task(cache.warm(delay=settings.roster.warmup_delay_seconds))

    yield

    # Shutdown
    logger.info("Shutting down rosterdesk API server")
    warmup.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await warmup
    await discord.close()
    await close_redis()


def _error(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="rosterdesk API",
        description="Staff roster and disciplinary actions dashboard",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Any:
        """Add request ID to context for logging correlation."""
        request_id = request.headers.get("X-Request-ID")
        if request_id:
            structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        if request_id:
            response.headers["X-Request-ID"] = request_id
            structlog.contextvars.unbind_contextvars("request_id")

        return response

    # Exception handlers; every error body is {"error": ...}
    @app.exception_handler(InvalidRequest)
    async def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("Request validation failed", path=request.url.path, errors=exc.errors())
        return _error(status.HTTP_400_BAD_REQUEST, "Missing data")

    @app.exception_handler(Unauthenticated)
    async def unauthenticated_handler(request: Request, exc: Unauthenticated) -> JSONResponse:
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_unavailable_handler(
        request: Request, exc: UpstreamUnavailable
    ) -> JSONResponse:
        logger.error("Upstream unavailable", path=request.url.path, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    # Health endpoints
    app.include_router(health_router)

    app.include_router(auth_router)
    app.include_router(roster_router)
    app.include_router(actions_router)

    # Dashboard frontend; mounted last so API routes take precedence
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        logger.info("Static directory not found, frontend disabled", path=str(settings.static_dir))

    return app


# Application instance
app = create_application()
