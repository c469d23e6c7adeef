"""
In-process background job queue.

Named handlers, a fixed pool of asyncio worker tasks, and singleton keys:
while a job holding a singleton key is queued or running, a second send with
the same key is refused (send returns None).

Built once by the application lifespan and shared through app.state; there
is no module-level instance.
"""

import asyncio
import enum
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from adsync.utils import utcnow

logger = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Job:
    id: str
    name: str
    data: dict[str, Any]
    singleton_key: Optional[str] = None
    state: JobState = JobState.CREATED
    output: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_finished(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)


JobHandler = Callable[[Job], Awaitable[Any]]


class JobQueueError(RuntimeError):
    pass


class JobQueue:
    def __init__(self, concurrency: int = 2, retention: int = 500):
        self.concurrency = max(1, concurrency)
        self.retention = retention
        self._handlers: dict[str, JobHandler] = {}
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._singletons: dict[tuple[str, str], str] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    def register(self, name: str, handler: JobHandler) -> None:
        self._handlers[name] = handler
        logger.info(f"Registered job handler: {name}")

    async def start(self) -> None:
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"job-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Job queue started with {self.concurrency} worker(s)")

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._queue = None
        logger.info("Job queue stopped")

    async def send(self, name: str, data: dict[str, Any], singleton_key: Optional[str] = None) -> Optional[str]:
        """
        Queue a job and return its id, or None when the singleton key is
        already held by an unfinished job.
        """
        if not self.is_running or self._queue is None:
            raise JobQueueError("Job queue is not running")
        if name not in self._handlers:
            raise JobQueueError(f"No handler registered for job '{name}'")

        if singleton_key is not None:
            holder = self._singletons.get((name, singleton_key))
            if holder is not None:
                logger.info(f"Job {name} with singleton key {singleton_key} already in flight ({holder})")
                return None

        job = Job(id=str(uuid.uuid4()), name=name, data=dict(data), singleton_key=singleton_key)
        self._jobs[job.id] = job
        if singleton_key is not None:
            self._singletons[(name, singleton_key)] = job.id
        await self._queue.put(job.id)
        logger.info(f"Queued job {name} ({job.id})")
        return job.id

    def get_job(self, name: str, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is None or job.name != name:
            return None
        return job

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            job = self._jobs.get(job_id)
            try:
                if job is not None:
                    await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: Job) -> None:
        handler = self._handlers[job.name]
        job.state = JobState.ACTIVE
        job.started_at = utcnow()
        try:
            job.output = await handler(job)
            job.state = JobState.COMPLETED
        except asyncio.CancelledError:
            job.state = JobState.FAILED
            job.error = "Job cancelled"
            raise
        except Exception as e:
            job.state = JobState.FAILED
            job.error = str(e)
            logger.error(f"Job {job.name} ({job.id}) failed: {e}", exc_info=True)
        finally:
            job.completed_at = utcnow()
            if job.singleton_key is not None:
                self._singletons.pop((job.name, job.singleton_key), None)
            self._prune()

    def _prune(self) -> None:
        finished = [jid for jid, j in self._jobs.items() if j.is_finished]
        for jid in finished[: max(0, len(finished) - self.retention)]:
            del self._jobs[jid]
