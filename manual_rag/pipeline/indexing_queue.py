"""Background indexing with observable job state.

Acquisition hands a manual to :meth:`IndexingQueue.submit` and returns
immediately.  The queue runs the work as an asyncio task (at most
``concurrency`` at a time) and records each job's status, so callers and
tests can await :meth:`IndexingQueue.wait` or :meth:`IndexingQueue.join`
instead of racing a detached coroutine.  Job failures are logged and
recorded on the job; they are never raised to the submitter.  Finished jobs
are kept in an LRU of ``max_finished_jobs`` entries; running jobs are
never evicted.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from cachetools import LRUCache

from manual_rag.models.indexing import IndexingJob, IndexingResult, IndexingStatus
from manual_rag.models.manual import Manual
from manual_rag.services.acquisition.pdf_fetcher import PdfFetcher
from manual_rag.services.indexing.indexing_service import IndexingService
from manual_rag.utils.logging import get_logger


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


_DEFAULT_MAX_FINISHED_JOBS = 1000


@dataclass(frozen=True)
class IndexingRequest:
    """What to index for a manual.

    Exactly one source is used, in this order: ``text``, ``pdf_bytes``,
    then a download of ``pdf_url``.
    """

    manual: Manual
    pdf_url: str | None = None
    pdf_bytes: bytes | None = None
    text: str | None = None
    require_vehicle_mention: bool = False


class IndexingQueue:
    """Runs :class:`IndexingService` jobs as bounded background tasks."""

    def __init__(
        self,
        indexing_service: IndexingService,
        fetcher: PdfFetcher | None = None,
        concurrency: int = 2,
        max_finished_jobs: int = _DEFAULT_MAX_FINISHED_JOBS,
    ) -> None:
        self._service = indexing_service
        self._fetcher = fetcher
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._active: dict[str, IndexingJob] = {}
        self._finished: LRUCache[str, IndexingJob] = LRUCache(maxsize=max(1, max_finished_jobs))
        self._tasks: dict[str, asyncio.Task] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, request: IndexingRequest) -> IndexingJob:
        """Schedule *request* and return its pending job.  Needs a running loop."""
        job = IndexingJob(
            job_id=str(uuid.uuid4()),
            manual_id=request.manual.manual_id,
            submitted_at=_utc_now(),
        )
        self._active[job.job_id] = job
        task = asyncio.create_task(self._run(job.job_id, request), name=f"index-{job.manual_id}")
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _task, job_id=job.job_id: self._tasks.pop(job_id, None))
        self._logger.info("indexing_job_submitted", job_id=job.job_id, manual_id=job.manual_id)
        return job

    def get_job(self, job_id: str) -> IndexingJob | None:
        job = self._active.get(job_id)
        return job if job is not None else self._finished.get(job_id)

    def list_jobs(self) -> list[IndexingJob]:
        """Return running and retained finished jobs, oldest submission first."""
        jobs = [*self._finished.values(), *self._active.values()]
        return sorted(jobs, key=lambda job: job.submitted_at)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def wait(self, job_id: str) -> IndexingJob:
        """Wait for *job_id* to finish and return its final state."""
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            return await asyncio.shield(task)
        return job

    async def join(self) -> list[IndexingJob]:
        """Wait for every job submitted so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()))
        return self.list_jobs()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def _run(self, job_id: str, request: IndexingRequest) -> IndexingJob:
        async with self._semaphore:
            self._update(job_id, status=IndexingStatus.RUNNING)
            try:
                result = await self._index(request)
            except Exception as exc:
                job = self._finish(
                    job_id,
                    status=IndexingStatus.FAILED,
                    error=str(exc),
                    finished_at=_utc_now(),
                )
                self._logger.error(
                    "indexing_job_failed",
                    job_id=job_id,
                    manual_id=request.manual.manual_id,
                    error=str(exc),
                )
                return job

        job = self._finish(
            job_id,
            status=IndexingStatus.COMPLETED,
            chunks_created=result.chunks_created,
            chunks_stored=result.chunks_stored,
            finished_at=_utc_now(),
        )
        self._logger.info(
            "indexing_job_completed",
            job_id=job_id,
            manual_id=request.manual.manual_id,
            chunks_stored=result.chunks_stored,
        )
        return job

    async def _index(self, request: IndexingRequest) -> IndexingResult:
        if request.text is not None:
            return await self._service.index_text(
                request.manual,
                request.text,
                require_vehicle_mention=request.require_vehicle_mention,
            )

        pdf_bytes = request.pdf_bytes
        if pdf_bytes is None:
            if not request.pdf_url or self._fetcher is None:
                await self._service.mark_failed(request.manual.manual_id)
                raise ValueError(f"Nothing to index for manual {request.manual.manual_id}")
            try:
                pdf_bytes = await self._fetcher.download(request.pdf_url)
            except Exception:
                await self._service.mark_failed(request.manual.manual_id)
                raise

        return await self._service.index_pdf(
            request.manual,
            pdf_bytes,
            require_vehicle_mention=request.require_vehicle_mention,
        )

    def _update(self, job_id: str, **changes) -> None:
        self._active[job_id] = self._active[job_id].model_copy(update=changes)

    def _finish(self, job_id: str, **changes) -> IndexingJob:
        """Move *job_id* from the running set into the finished LRU."""
        job = self._active.pop(job_id).model_copy(update=changes)
        self._finished[job_id] = job
        return job
