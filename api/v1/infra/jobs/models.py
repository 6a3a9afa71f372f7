"""
In-memory job records for the queue.

Jobs live only as long as the process; nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from api.v1.infra.jobs.schemas import Message


class JobStatus(str, Enum):
    """Job status enumeration."""

    ENQUEUED = "enqueued"
    DISPATCHING = "dispatching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class QueuedJob:
    """A message plus the bookkeeping the queue needs to run it."""

    message: Message
    id: UUID = field(default_factory=uuid4)
    status: JobStatus = JobStatus.ENQUEUED
    attempts: int = 0
    last_error: str | None = None
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def type(self) -> str | None:
        return self.message.job

    def can_retry(self, max_attempts: int) -> bool:
        """Check if job can be retried based on attempts and status."""
        return self.status == JobStatus.FAILED and self.attempts < max_attempts

    def retry(self) -> "QueuedJob":
        """A fresh enqueue of the same message, keeping the attempt count."""
        return QueuedJob(message=self.message, id=self.id, attempts=self.attempts)

    def runtime_seconds(self) -> float | None:
        """Seconds spent in the last dispatch, once it finished."""
        if not self.started_at or not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()
