from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import create_success_response
from api.v1.infra.jobs.schemas import QueueStats
from api.v1.infra.jobs.worker import JobQueue, get_job_queue

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Health response with database and job queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    queue: QueueStats


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep,
    session: AsyncSession = Depends(get_session),
    queue: JobQueue = Depends(get_job_queue),
):
    """Health check endpoint with database and job queue status."""

    db_health = await _check_database_health(session)
    queue_stats = queue.stats()

    health = HealthResponse(
        ok=db_health.connected and queue_stats.running,
        version=settings.version,
        environment=settings.environment,
        timestamp=datetime.now(UTC).isoformat(),
        database=db_health,
        queue=queue_stats,
    )

    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        # Simple query to test database connectivity
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))
