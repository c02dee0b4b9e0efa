"""Report generation job queue and its bounded in-process worker pool."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from time import perf_counter
from typing import Protocol

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(slots=True)
class Job:
    report_id: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    kind: str = "generate"
    status: JobStatus = JobStatus.WAITING
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None


@dataclass(slots=True)
class QueueStats:
    active: int
    waiting: int
    completed: int
    failed: int
    concurrency: int


class JobQueue(Protocol):
    """enqueue / dequeue-with-ack contract; an in-process pool or an external broker both satisfy it."""

    concurrency: int

    def enqueue(self, report_id: int, *, job_id: str | None = None, kind: str = "generate") -> Job:
        """Add a job, or return the job still waiting for ``report_id``."""

    def dequeue(self, timeout: float | None = None) -> Job | None:
        """Take the oldest waiting job and mark it active."""

    def ack(self, job: Job, *, success: bool, error: str | None = None) -> None:
        """Finish an active job. Failed jobs are recorded, never requeued."""

    def find(self, report_id: int) -> Job | None:
        """Return the newest waiting or active job for a report, if any."""

    def stats(self) -> QueueStats:
        """Aggregate counts for observability."""


JobHandler = Callable[[Job], bool]


class InProcessJobQueue:
    """FIFO queue consumed by ``concurrency`` worker threads.

    Each job runs to completion on the worker that dequeued it, so one report's
    phases never interleave across workers.
    """

    def __init__(self, concurrency: int = 2) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._waiting: deque[Job] = deque()
        self._live: dict[int, Job] = {}
        self._active = 0
        self._completed = 0
        self._failed = 0
        self._condition = threading.Condition()
        self._workers: list[threading.Thread] = []
        self._stopping = False

    def enqueue(self, report_id: int, *, job_id: str | None = None, kind: str = "generate") -> Job:
        with self._condition:
            # An active job may already have released its report; only a waiting one absorbs the request.
            existing = self._live.get(report_id)
            if existing is not None and existing.status is JobStatus.WAITING:
                return existing
            job = Job(report_id=report_id, kind=kind) if job_id is None else Job(report_id=report_id, id=job_id, kind=kind)
            self._waiting.append(job)
            self._live[report_id] = job
            self._condition.notify()
        logger.info("queue.job_enqueued job_id=%s report_id=%s kind=%s", job.id, report_id, kind)
        return job

    def dequeue(self, timeout: float | None = None) -> Job | None:
        with self._condition:
            if not self._waiting and not self._stopping:
                self._condition.wait(timeout)
            if not self._waiting or self._stopping:
                return None
            job = self._waiting.popleft()
            job.status = JobStatus.ACTIVE
            self._active += 1
            return job

    def ack(self, job: Job, *, success: bool, error: str | None = None) -> None:
        with self._condition:
            if job.status is not JobStatus.ACTIVE:
                raise ValueError(f"Job {job.id} is not active")
            self._active -= 1
            if success:
                job.status = JobStatus.COMPLETED
                self._completed += 1
            else:
                job.status = JobStatus.FAILED
                job.error = error
                self._failed += 1
            if self._live.get(job.report_id) is job:
                del self._live[job.report_id]

    def find(self, report_id: int) -> Job | None:
        with self._condition:
            return self._live.get(report_id)

    def stats(self) -> QueueStats:
        with self._condition:
            return QueueStats(
                active=self._active,
                waiting=len(self._waiting),
                completed=self._completed,
                failed=self._failed,
                concurrency=self.concurrency,
            )

    def start(self, handler: JobHandler) -> None:
        """Start the worker threads. ``handler`` returns False when the job failed."""

        with self._condition:
            if self._workers:
                return
            self._stopping = False
            for index in range(self.concurrency):
                worker = threading.Thread(
                    target=self._work,
                    args=(handler,),
                    name=f"report-worker-{index}",
                    daemon=True,
                )
                self._workers.append(worker)
        for worker in self._workers:
            worker.start()
        logger.info("queue.started concurrency=%d", self.concurrency)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop accepting work; in-flight jobs finish on their worker."""

        with self._condition:
            self._stopping = True
            self._condition.notify_all()
            workers = list(self._workers)
            self._workers.clear()
        for worker in workers:
            worker.join(timeout)
        logger.info("queue.stopped")

    def _work(self, handler: JobHandler) -> None:
        while True:
            with self._condition:
                if self._stopping:
                    return
            job = self.dequeue(timeout=0.5)
            if job is None:
                continue
            started = perf_counter()
            try:
                succeeded = handler(job)
            except Exception as exc:
                logger.exception("queue.job_crashed job_id=%s report_id=%s", job.id, job.report_id)
                self.ack(job, success=False, error=type(exc).__name__)
                continue
            self.ack(job, success=succeeded, error=None if succeeded else "job reported failure")
            log = logger.info if succeeded else logger.warning
            log(
                "queue.job_finished job_id=%s report_id=%s success=%s total_ms=%.2f",
                job.id,
                job.report_id,
                succeeded,
                (perf_counter() - started) * 1000.0,
            )
