"""
In-process job queue with an asyncio worker pool.
"""

import asyncio
import os
import random
import socket
from datetime import UTC, datetime
from uuid import UUID

from fastapi import Request

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import (
    MessageError,
    QueueClosedError,
    QueueFullError,
    UnknownJobError,
)
from api.v1.core.registries import JobRegistry
from api.v1.infra.jobs.models import JobStatus, QueuedJob
from api.v1.infra.jobs.schemas import Message, QueueStats

logger = get_logger(__name__)

# Malformed or unroutable messages fail the same way on every attempt
_NON_RETRYABLE = (UnknownJobError, MessageError)


class JobQueue:
    """
    Accepts messages from producers and dispatches them through the job
    registry on a pool of worker tasks.

    Features:
    - send() never waits on handler execution
    - Each dispatch runs under its own deadline, detached from the request
      that enqueued it
    - Optional bounded retries with exponential backoff and jitter
    - Graceful drain on shutdown
    """

    def __init__(self, registry: JobRegistry, settings: Settings):
        self.registry = registry
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self.accepting = False
        self.active_jobs: set[UUID] = set()
        self.succeeded = 0
        self.failed = 0
        self.retried = 0

        self._queue: asyncio.Queue[QueuedJob] = asyncio.Queue(
            maxsize=settings.job_queue_max_size
        )
        self._workers: list[asyncio.Task] = []
        self._retry_tasks: set[asyncio.Task] = set()

    async def send(self, message: Message) -> UUID:
        """
        Enqueue a message for asynchronous dispatch.

        Raises QueueClosedError when the queue is not running, QueueFullError
        when the buffer is full and MessageError when the message names no job.
        """
        if not self.accepting:
            raise QueueClosedError("job queue is not accepting messages")

        if not message.job:
            raise MessageError("message has no job name")

        job = QueuedJob(message=message)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull as e:
            raise QueueFullError(
                f"job queue is full ({self._queue.maxsize} messages)"
            ) from e

        logger.debug("Job enqueued", job_id=str(job.id), job_type=job.type)
        return job.id

    async def start(self) -> None:
        """Spawn the worker tasks."""
        if self.running:
            raise RuntimeError("Job queue is already running")

        self.running = True
        self.accepting = True
        self._workers = [
            asyncio.create_task(self._worker_loop(), name=f"job-worker-{n}")
            for n in range(self.settings.job_concurrency)
        ]

        logger.info(
            "Started job queue",
            worker_id=self.worker_id,
            concurrency=self.settings.job_concurrency,
            registered_jobs=self.registry.list(),
        )

    async def join(self) -> None:
        """Wait until every buffered job has been processed."""
        await self._queue.join()

    async def stop(self, timeout: float | None = None) -> None:
        """Stop accepting messages, drain the buffer, then cancel the workers."""
        if not self.running:
            return

        if timeout is None:
            timeout = self.settings.job_shutdown_timeout_s

        logger.info("Stopping job queue", worker_id=self.worker_id)
        self.accepting = False

        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except TimeoutError:
            logger.warning(
                "Job queue stopped with unfinished jobs",
                worker_id=self.worker_id,
                queue_depth=self._queue.qsize(),
                active_jobs=len(self.active_jobs),
            )

        if self._retry_tasks:
            logger.warning(
                "Dropping pending job retries",
                worker_id=self.worker_id,
                pending_retries=len(self._retry_tasks),
            )

        tasks = [*self._workers, *self._retry_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._workers = []
        self._retry_tasks.clear()
        self.running = False

    def stats(self) -> QueueStats:
        return QueueStats(
            running=self.running,
            queue_depth=self._queue.qsize(),
            active_jobs=len(self.active_jobs),
            pending_retries=len(self._retry_tasks),
            succeeded=self.succeeded,
            failed=self.failed,
            retried=self.retried,
            registered_jobs=self.registry.list(),
        )

    async def _worker_loop(self) -> None:
        """Pull jobs off the buffer forever; stopped by cancellation."""
        while True:
            job = await self._queue.get()
            try:
                await self._process_job(job)
            finally:
                self._queue.task_done()

    async def _process_job(self, job: QueuedJob) -> None:
        """Dispatch a single job and record the outcome. Never raises handler errors."""
        job.attempts += 1
        job.status = JobStatus.DISPATCHING
        job.started_at = datetime.now(UTC)
        self.active_jobs.add(job.id)

        job_logger = logger.bind(
            job_id=str(job.id), job_type=job.type, attempt=job.attempts
        )

        try:
            job_logger.debug("Processing job started")

            async with asyncio.timeout(self.settings.job_timeout_s):
                await self.registry.dispatch(job.message)

        except asyncio.CancelledError:
            job.status = JobStatus.FAILED
            job.last_error = "cancelled"
            job.finished_at = datetime.now(UTC)
            job_logger.warning("Job processing cancelled")
            raise

        except Exception as e:
            job.status = JobStatus.FAILED
            job.last_error = str(e) or e.__class__.__name__
            job.finished_at = datetime.now(UTC)
            self.failed += 1

            if isinstance(e, TimeoutError):
                job_logger.error(
                    "Job timed out",
                    timeout_s=self.settings.job_timeout_s,
                    runtime_s=job.runtime_seconds(),
                )
            else:
                job_logger.exception(
                    "Job processing failed",
                    error=job.last_error,
                    runtime_s=job.runtime_seconds(),
                )

            if not isinstance(e, _NON_RETRYABLE) and job.can_retry(
                self.settings.job_max_attempts
            ):
                self._schedule_retry(job)

        else:
            job.status = JobStatus.SUCCEEDED
            job.finished_at = datetime.now(UTC)
            self.succeeded += 1
            job_logger.info(
                "Processing job completed successfully",
                runtime_s=job.runtime_seconds(),
            )

        finally:
            self.active_jobs.discard(job.id)

    def _schedule_retry(self, job: QueuedJob) -> None:
        """Re-enqueue the job after a backoff delay."""
        delay = self._calculate_retry_delay(job.attempts)
        task = asyncio.create_task(self._requeue_later(job.retry(), delay))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)
        self.retried += 1

        logger.info(
            "Job scheduled for retry",
            job_id=str(job.id),
            job_type=job.type,
            attempt=job.attempts,
            delay_s=round(delay, 3),
        )

    async def _requeue_later(self, job: QueuedJob, delay: float) -> None:
        await asyncio.sleep(delay)

        if not self.accepting:
            logger.warning("Dropping job retry, queue stopped", job_id=str(job.id))
            return

        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error("Dropping job retry, queue full", job_id=str(job.id))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate retry delay in seconds with exponential backoff and jitter."""
        base_delay = self.settings.job_backoff_base_ms / 1000  # Convert to seconds
        max_delay = self.settings.job_max_backoff_s

        # Exponential backoff: base * 2^(attempt - 1)
        delay = min(max_delay, base_delay * (2 ** (attempt - 1)))

        # Add jitter (±25% random variation)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(0.0, delay + jitter)


def get_job_queue(request: Request) -> JobQueue:
    """Get the job queue created in the application lifespan."""
    return request.app.state.job_queue
