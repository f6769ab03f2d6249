"""
FamConomy FastAPI Application - Main Entry Point
REST API for family management: tasks and approvals, calendar, messaging,
budgets and wallet, shopping and meals, wishlists, gigs, and the iOS
Family Controls (screen time) integration.

Features:
- JWT authentication (bearer header or httpOnly cookie) with refresh tokens
- Family membership and role guard on every family-scoped resource
- Socket.IO realtime channel for notifications and family chat
- Hourly background maintenance (APScheduler), opt-in
- Auto-generated OpenAPI documentation

Run with ``uvicorn famconomy.api.main:asgi_app`` so Socket.IO is served
alongside the REST API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import socketio
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from famconomy.api.config import Settings, get_settings
from famconomy.api.errors import ApiError, api_error_handler, http_exception_handler
from famconomy.api.middleware.identity import IdentityHintMiddleware
from famconomy.api.middleware.logging import LoggingMiddleware
from famconomy.api.middleware.rate_limit import RateLimitMiddleware
from famconomy.api.middleware.request_id import RequestIDMiddleware
from famconomy.api.realtime import RealtimeGateway, create_socket_server
from famconomy.api.routers import (
    assistant,
    auth,
    budget,
    calendar,
    dashboard,
    family,
    family_controls,
    feedback,
    gigs,
    integrations,
    invitations,
    journal,
    lookups,
    meals,
    messages,
    notifications,
    onboarding,
    public,
    recipes,
    rooms,
    savings_goals,
    shopping_items,
    shopping_lists,
    subscriptions,
    tasks,
    transactions,
    wallet,
    wishlists,
)
from famconomy.api.scheduler import create_scheduler
from famconomy.shared.database import (
    AsyncSessionLocal,
    check_database_health,
    close_database,
    init_database,
)
from famconomy.shared.logger import configure_logging
from famconomy.shared.models import utcnow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    configure_logging(
        level=settings.LOG_LEVEL,
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        debug_logging=settings.DEBUG_LOGGING,
    )

    # Startup
    logger.info("Starting FamConomy API...")
    try:
        await init_database()
        health = await check_database_health()
        logger.info(f"Database health: {health}")
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise

    scheduler = create_scheduler(settings, AsyncSessionLocal)
    if scheduler is not None:
        scheduler.start()
        logger.info("Hourly maintenance job scheduled")

    logger.info("FamConomy API is ready")

    yield

    # Shutdown
    logger.info("Shutting down FamConomy API...")
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    try:
        await close_database()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Shutdown error: {e}", exc_info=True)


# ============================================================================
# Exception Handlers
# ============================================================================

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": errors,
            "timestamp": utcnow().isoformat(),
        },
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle database errors."""
    logger.error(f"Database error: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "A database error occurred. Please try again later.",
            "timestamp": utcnow().isoformat(),
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected error occurred."},
    )


# ============================================================================
# Router Registration
# ============================================================================

ROUTERS = [
    (auth.router, "/auth", ["Authentication"]),
    (family.router, "/family", ["Family"]),
    (wishlists.router, "/family", ["Wishlists"]),
    (invitations.router, "/invitations", ["Invitations"]),
    (tasks.router, "/tasks", ["Tasks"]),
    (lookups.router, "", ["Lookups"]),
    (calendar.router, "/calendar", ["Calendar"]),
    (messages.router, "/messages", ["Messages"]),
    (notifications.router, "/notifications", ["Notifications"]),
    (subscriptions.router, "/subscriptions", ["Notifications"]),
    (budget.router, "/budget", ["Budget"]),
    (transactions.router, "/transactions", ["Budget"]),
    (savings_goals.router, "/savings-goals", ["Budget"]),
    (wallet.router, "/wallet", ["Wallet"]),
    (journal.router, "/journal", ["Journal"]),
    (shopping_lists.router, "/shopping-lists", ["Shopping"]),
    (shopping_items.router, "/shopping-items", ["Shopping"]),
    (recipes.router, "/recipes", ["Recipes"]),
    (meals.router, "/meals", ["Meals"]),
    (rooms.router, "/rooms", ["Gigs"]),
    (gigs.router, "/gigs", ["Gigs"]),
    (family_controls.router, "/family-controls", ["Family Controls"]),
    (dashboard.router, "/dashboard", ["Dashboard"]),
    (feedback.router, "/feedback", ["Feedback"]),
    (integrations.router, "/integrations", ["Integrations"]),
    (onboarding.router, "/onboarding", ["Onboarding"]),
    (assistant.router, "/assistant", ["Assistant"]),
    (assistant.router, "/linz", ["Assistant"]),
    (public.router, "", ["Public"]),
]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The Socket.IO server is created here and exposed to handlers through
    ``app.state.realtime``; wrap the app with ``socketio.ASGIApp`` to serve it.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "REST API for FamConomy family management.\n\n"
            "Tasks and approvals, shared calendar, messaging, budgets and wallet, "
            "shopping lists and meal plans, wishlists, gigs, and Family Controls."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ========================================================================
    # Middleware Configuration
    # ========================================================================

    # CORS - Allow web and mobile clients with cookies
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # GZip compression for responses
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Signed cookie session (pending invitations)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        https_only=settings.is_production,
        same_site="lax",
    )

    # Logging middleware
    app.add_middleware(LoggingMiddleware)

    # Unverified tenant/user hints for the request log
    app.add_middleware(IdentityHintMiddleware)

    # Request ID tracking
    app.add_middleware(RequestIDMiddleware)

    # Rate limiting per client IP
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        enabled=settings.RATE_LIMIT_ENABLED,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    for router, prefix, tags in ROUTERS:
        app.include_router(router, prefix=prefix, tags=tags)

    # ========================================================================
    # Realtime
    # ========================================================================

    app.state.sio = None
    app.state.realtime = None
    if settings.FEATURE_REALTIME_ENABLED:
        sio = create_socket_server(settings, AsyncSessionLocal)
        app.state.sio = sio
        app.state.realtime = RealtimeGateway(sio)

    # ========================================================================
    # Health Check Endpoints
    # ========================================================================

    @app.get(
        "/",
        summary="Root endpoint",
        description="Welcome message and API information",
        include_in_schema=False,
    )
    async def root() -> dict:
        """Root endpoint - API information."""
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "operational",
            "documentation": "/docs",
            "timestamp": utcnow().isoformat(),
        }

    @app.get(
        "/health",
        summary="Health check",
        description="Check API and database health status",
        tags=["Health"],
    )
    async def health_check() -> dict:
        """Health check endpoint."""
        db_health = await check_database_health()
        return {
            "status": "healthy" if db_health["status"] == "healthy" else "unhealthy",
            "timestamp": utcnow().isoformat(),
            "database": db_health,
            "api": {"version": settings.APP_VERSION},
        }

    @app.get(
        "/ready",
        summary="Readiness check",
        description="Check if API is ready to serve traffic",
        tags=["Health"],
    )
    async def readiness_check():
        """Readiness check for Kubernetes."""
        db_health = await check_database_health()
        if db_health["status"] == "healthy":
            return {"status": "ready", "timestamp": utcnow().isoformat()}

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "error": db_health.get("error"),
                "timestamp": utcnow().isoformat(),
            },
        )

    return app


app = create_app()

# REST and Socket.IO on one ASGI entry point
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app) if app.state.sio is not None else app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "famconomy.api.main:asgi_app",
        host="0.0.0.0",
        port=8000,
        reload=not get_settings().is_production,
        log_level="info",
        access_log=False,
    )
