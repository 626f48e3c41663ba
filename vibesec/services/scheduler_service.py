"""Job scheduler and bounded worker pool.

``submit`` persists a pending job and enqueues its id. ``N`` worker tasks
pull ids off an ``asyncio.Queue`` and run the scan pipeline; retries are
re-enqueued after their backoff delay instead of sleeping inside a worker,
so a backing-off job never holds a slot.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable

from vibesec.core.config import settings
from vibesec.core.errors import NotFoundError, ValidationError, VibeSecError
from vibesec.domain.models import ScanJob, ScanResult, by_severity, utcnow
from vibesec.scm.repo_ref import RepoRef
from vibesec.services.pipeline_service import ScanPipeline
from vibesec.services.progress_service import ProgressChannel, error_event
from vibesec.services.store_service import StoreService

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number ``attempt`` (1-based): base * 2^(attempt-1), capped."""
    return min(cap, base * (2 ** (attempt - 1)))


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, VibeSecError):
        return exc.retryable
    # unexpected infrastructure exceptions are treated as transient
    return isinstance(exc, Exception)


class JobScheduler:
    def __init__(
        self,
        store: StoreService,
        pipeline: ScanPipeline,
        progress: ProgressChannel,
        concurrency: int | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        backoff_cap: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._progress = progress
        self.concurrency = concurrency or settings.SCAN_CONCURRENCY
        self.max_attempts = max_attempts or settings.JOB_MAX_ATTEMPTS
        self._backoff_base = settings.JOB_BACKOFF_BASE if backoff_base is None else backoff_base
        self._backoff_cap = settings.JOB_BACKOFF_CAP if backoff_cap is None else backoff_cap
        self._sleep = sleep

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._retries: set[asyncio.Task] = set()
        self._active: set[str] = set()
        self._enqueued: set[str] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    # ── lifecycle ────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return

        self._loop = asyncio.get_running_loop()

        # the store is the source of truth: rebuild the queue from every
        # non-terminal job, including ones interrupted by a restart
        self._queue = asyncio.Queue()
        self._enqueued.clear()
        for job in sorted(self._store.list_jobs(limit=10_000), key=lambda j: j.created_at):
            if not job.is_terminal:
                self._enqueue(job.id)

        self._workers = [asyncio.create_task(self._worker(i), name=f"scan-worker-{i}") for i in range(self.concurrency)]
        logger.info("Scheduler started with %d workers", self.concurrency)

    async def stop(self) -> None:
        tasks = self._workers + list(self._retries)
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._retries.clear()
        self._loop = None
        logger.info("Scheduler stopped")

    # ── public operations ────────────────────────────────────────

    def submit(self, repo_ref: str, caller_id: str) -> str:
        repo = RepoRef.parse(repo_ref)
        job = ScanJob(id=str(uuid.uuid4()), repository_url=repo.url, owner_id=caller_id)
        self._store.create_job(job)
        self._enqueue(job.id)
        logger.info("Scan job submitted for %s", repo.full_name, extra={"job_id": job.id})
        return job.id

    def _require(self, job_id: str, owner_id: str | None = None) -> ScanJob:
        job = self._store.get_job(job_id)
        # someone else's job is indistinguishable from a missing one
        if job is None or (owner_id is not None and job.owner_id != owner_id):
            raise NotFoundError(f"Scan job {job_id} not found")
        return job

    def get_status(self, job_id: str, owner_id: str | None = None) -> dict:
        job = self._require(job_id, owner_id)
        return {"status": job.status, "progress": job.progress}

    def get_result(self, job_id: str, owner_id: str | None = None) -> ScanResult:
        job = self._require(job_id, owner_id)
        if not job.is_terminal:
            raise NotFoundError(f"Scan job {job_id} has not finished yet")

        if job.status == "failed":
            findings, score = [], 0
        else:
            findings, score = by_severity(self._store.get_findings(job_id)), job.score or 0
        return ScanResult(
            job_id=job.id,
            repository_url=job.repository_url,
            status=job.status,
            score=score,
            tech_stack=job.tech_stack,
            findings=findings,
            completed_at=job.completed_at,
            error=job.error,
        )

    def list_jobs(self, owner_id: str, limit: int = 50) -> list[ScanJob]:
        return self._store.list_jobs(owner_id=owner_id, limit=limit)

    async def wait_for_terminal(self, job_id: str, interval: float = 1.0, timeout: float | None = None) -> dict:
        """Polling fallback for clients without a live progress subscription."""

        async def _poll() -> dict:
            while True:
                status = self.get_status(job_id)
                if status["status"] in ("completed", "failed"):
                    return status
                await asyncio.sleep(interval)

        return await asyncio.wait_for(_poll(), timeout=timeout)

    # ── workers ──────────────────────────────────────────────────

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            self._enqueued.discard(job_id)
            try:
                if job_id in self._active:
                    # job id is the lock key; a duplicate dequeue is dropped
                    logger.warning("Job already executing, skipping duplicate", extra={"job_id": job_id})
                    continue
                self._active.add(job_id)
                try:
                    await self._execute(job_id)
                finally:
                    self._active.discard(job_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Worker %d crashed on job", index, extra={"job_id": job_id})
            finally:
                self._queue.task_done()

    async def _execute(self, job_id: str) -> None:
        job = self._store.get_job(job_id)
        if job is None or job.is_terminal:
            return

        attempt = job.attempts + 1
        self._store.update_job(
            job_id,
            status="scanning",
            attempts=attempt,
            started_at=job.started_at or utcnow(),
        )
        logger.info("Scan attempt %d/%d", attempt, self.max_attempts, extra={"job_id": job_id, "attempt": attempt})

        try:
            await self._pipeline.run(job_id, job.repository_url)
        except ValidationError as e:
            self._fail(job_id, str(e))
        except Exception as e:
            if is_retryable(e) and attempt < self.max_attempts:
                delay = backoff_delay(attempt, self._backoff_base, self._backoff_cap)
                logger.warning(
                    "Scan attempt failed, retrying in %.1fs: %s",
                    delay,
                    e,
                    extra={"job_id": job_id, "attempt": attempt},
                )
                self._store.update_job(job_id, status="pending", error=str(e))
                self._schedule_retry(job_id, delay)
            else:
                self._fail(job_id, str(e))

    def _enqueue(self, job_id: str) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed() and not self._on_loop(loop):
            # asyncio queues are not thread-safe; hop onto the scheduler's loop
            loop.call_soon_threadsafe(self._enqueue_now, job_id)
            return
        self._enqueue_now(job_id)

    @staticmethod
    def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def _enqueue_now(self, job_id: str) -> None:
        if job_id in self._enqueued:
            return
        self._enqueued.add(job_id)
        self._queue.put_nowait(job_id)

    def _schedule_retry(self, job_id: str, delay: float) -> None:
        async def _requeue() -> None:
            await self._sleep(delay)
            self._enqueue(job_id)

        task = asyncio.create_task(_requeue())
        self._retries.add(task)
        task.add_done_callback(self._retries.discard)

    def _fail(self, job_id: str, error: str) -> None:
        logger.error("Scan failed: %s", error, extra={"job_id": job_id})
        self._store.update_job(job_id, status="failed", error=error, score=0, completed_at=utcnow())
        self._progress.publish(job_id, error_event(error))
