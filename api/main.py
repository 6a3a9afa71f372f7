from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api.config.logging import get_logger, setup_logging
from api.config.settings import Settings, get_settings, settings as default_settings
from api.infra.database import Database
from api.v1.core.exceptions import (
    NewsletterServiceException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    newsletter_service_exception_handler,
)
from api.v1.core.registries import JobRegistry
from api.v1.gifts.generator import GiftGenerator
from api.v1.gifts.routes import router as gifts_router
from api.v1.healthz import router as health_router
from api.v1.infra.jobs.registry_init import register_job_handlers
from api.v1.infra.jobs.worker import JobQueue
from api.v1.newsletter.emailer import create_email_sender
from api.v1.newsletter.routes import router as newsletter_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database, job registry and queue; tear them down on shutdown."""
    settings: Settings = app.state.settings

    database = Database(settings)
    if settings.db_create_tables:
        await database.create_all()

    http_client = httpx.AsyncClient(timeout=settings.job_call_timeout_s)
    email_sender = create_email_sender(settings, http_client)
    gift_generator = GiftGenerator(settings)

    job_registry = JobRegistry()
    register_job_handlers(job_registry, settings, email_sender, gift_generator)

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        job_registry.freeze()

    job_queue = JobQueue(job_registry, settings)

    app.state.database = database
    app.state.email_sender = email_sender
    app.state.gift_generator = gift_generator
    app.state.job_registry = job_registry
    app.state.job_queue = job_queue

    await job_queue.start()
    logger.info("Application started", environment=settings.environment)

    try:
        yield
    finally:
        await job_queue.stop()
        await http_client.aclose()
        await database.close()
        logger.info("Application stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Newsletter signup with confirmation and welcome gifts",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        # All endpoints will be under /v1 prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    if settings is not default_settings:
        app.dependency_overrides[get_settings] = lambda: settings

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(NewsletterServiceException, newsletter_service_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(newsletter_router, prefix="/v1")
    app.include_router(gifts_router, prefix="/v1", tags=["gifts"])

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )
