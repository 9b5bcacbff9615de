# vibe_api/main_fastapi.py

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from vibe_api.config import Settings, get_settings
from vibe_api.container import AppServices, build_services, close_services
from vibe_api.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from vibe_api.middleware.rate_limiter import RateLimitMiddleware
from vibe_api.observability.logger import configure_logging
from vibe_api.observability.tracing import init_tracing
from vibe_api.routers.chat_history import router as chat_history_router
from vibe_api.routers.credits import router as credits_router
from vibe_api.routers.domains import router as domains_router
from vibe_api.routers.gallery import router as gallery_router
from vibe_api.routers.health import router as health_router
from vibe_api.routers.jobs import router as jobs_router
from vibe_api.routers.sandboxes import router as sandboxes_router
from vibe_api.routers.session_files import router as session_files_router
from vibe_api.routers.terminals import router as terminals_router
from vibe_api.utils.logger import log_info


def create_app(settings: Optional[Settings] = None, services: Optional[AppServices] = None) -> FastAPI:
    """Build the application. Pass ``services`` to run against prepared (or fake) dependencies."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.services is None:
            owned = build_services(settings)
            app.state.services = owned
        log_info("Application started", service=settings.SERVICE_NAME)
        try:
            yield
        finally:
            if owned is not None:
                await close_services(owned)
            log_info("Application stopped")

    app = FastAPI(
        title="Vibe Coding Platform API",
        description="Chat sessions, sandbox terminals, file snapshots, domains, credits and gallery",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.settings = settings

    # Add middleware (order matters: last added = outermost)
    app.add_middleware(
        RateLimitMiddleware,
        billing_limit=settings.BILLING_RATE_LIMIT,
        api_limit=settings.API_RATE_LIMIT,
        general_limit=settings.GENERAL_RATE_LIMIT,
    )
    # Error handler should be outermost to catch all errors
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.DEBUG)

    setup_exception_handlers(app)

    app.include_router(health_router)  # Health checks at root level
    for router in (
        chat_history_router,
        terminals_router,
        sandboxes_router,
        session_files_router,
        domains_router,
        credits_router,
        gallery_router,
        jobs_router,
    ):
        app.include_router(router, prefix="/api")

    if settings.TRACING_ENABLED:
        init_tracing(settings, app=app)

    return app


def get_app() -> FastAPI:
    return create_app()
