from collections.abc import AsyncGenerator, Generator

import pytest
import structlog
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings
from api.infra.database import Database
from api.main import create_app
from api.v1.core.registries import JobRegistry
from api.v1.infra.jobs.worker import JobQueue

# Import models to ensure they're registered
from api.v1.newsletter import models  # noqa: F401


@pytest.fixture(autouse=True)
def uncached_loggers(monkeypatch):
    """
    Keep structlog from caching loggers across tests.

    A cached logger holds the stdout pytest captured for the test that first
    used it, and that stream is closed once the test ends. Every later
    ``structlog.configure`` call (create_app runs setup_logging) is forced to
    leave caching off as well.
    """
    configure = structlog.configure

    def configure_uncached(**kwargs):
        kwargs["cache_logger_on_first_use"] = False
        configure(**kwargs)

    monkeypatch.setattr(structlog, "configure", configure_uncached)
    structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway sqlite database and gift directory."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        db_create_tables=True,
        gift_storage_dir=str(tmp_path / "gifts"),
        base_url="http://test",
        job_concurrency=2,
        job_timeout_s=2.0,
        job_call_timeout_s=1.0,
        job_backoff_base_ms=0,
        job_shutdown_timeout_s=2.0,
    )


@pytest.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with all tables."""
    database = Database(test_settings)
    await database.create_all()
    yield database
    await database.close()


@pytest.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with database.SessionLocal() as session:
        yield session


@pytest.fixture
def job_registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
async def job_queue(job_registry, test_settings) -> AsyncGenerator[JobQueue, None]:
    """A started job queue, stopped after the test."""
    queue = JobQueue(job_registry, test_settings)
    await queue.start()
    yield queue
    await queue.stop()


@pytest.fixture
def app(test_settings):
    """Create a test FastAPI application with a test database."""
    return create_app(test_settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client; entering it runs the lifespan."""
    with TestClient(app) as test_client:
        yield test_client
