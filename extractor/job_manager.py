"""Job lifecycle: admission, dispatch, progress aggregation and cancellation."""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from extractor import activity
from extractor.core.logging import release_job_logger, setup_job_logger
from extractor.errors import Forbidden, InvalidRequest, NotFound, QuotaExceeded, UpgradeRequired
from extractor.export import export_results
from extractor.job_store import JobStore
from extractor.models.job import ExtractionType, Job, JobStatus, ProgressEntry, ProgressStatus, Step, UrlResult, utcnow
from extractor.quota import QuotaGuard
from extractor.urls import normalize_urls
from extractor.workflow.nodes import CANCELLED
from extractor.workflow.runner import PipelineRunner

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _ms_between(start: Optional[datetime], end: datetime) -> Optional[int]:
    if start is None:
        return None
    return int((end - start).total_seconds() * 1000)


def refresh_aggregates(job: Job) -> None:
    """Recompute total_emails and the job status from its Results.

    completed_at and duration are set once, when the last Result turns terminal.
    """
    unique = set()
    for result in job.results:
        unique.update(result.emails)
    job.total_emails = len(unique)

    if job.status.is_terminal:
        return
    if job.results and all(r.status.is_terminal for r in job.results):
        failed = all(r.status == ProgressStatus.FAILED for r in job.results)
        job.status = JobStatus.FAILED if failed else JobStatus.COMPLETED
        job.completed_at = utcnow()
        job.duration = _ms_between(job.created_at, job.completed_at)
    elif any(r.status != ProgressStatus.PENDING for r in job.results):
        job.status = JobStatus.PROCESSING


def close_cancelled_result(result: UrlResult, now: datetime) -> None:
    """Fail a Result that was cut off before its pipeline could record an outcome."""
    if result.status.is_terminal:
        return
    for entry in result.progress:
        if entry.status == ProgressStatus.RUNNING:
            entry.status = ProgressStatus.FAILED
            entry.message = "Cancelled"
            entry.error_kind = CANCELLED
            entry.duration = _ms_between(entry.started_at, now)
    result.progress.append(
        ProgressEntry(
            step=Step.EXTRACTION_COMPLETE,
            status=ProgressStatus.FAILED,
            message="Extraction cancelled",
            duration=0,
            started_at=now,
        )
    )
    result.status = ProgressStatus.FAILED
    result.error = CANCELLED
    result.completed_at = now
    result.duration = _ms_between(result.started_at, now)


class ResultRecorder:
    """Progress reporter for one Result; every write goes through the job store."""

    def __init__(self, store: JobStore, job_id: str, index: int, job_logger: Optional[logging.Logger] = None):
        self.store = store
        self.job_id = job_id
        self.index = index
        self.logger = job_logger or logger

    def _apply(self, mutate) -> Optional[Job]:
        def wrapped(job: Job) -> None:
            mutate(job.results[self.index])
            refresh_aggregates(job)
        return self.store.apply(self.job_id, wrapped)

    def stage_started(self, step: Step) -> None:
        def mutate(result: UrlResult) -> None:
            if result.status == ProgressStatus.PENDING:
                result.status = ProgressStatus.RUNNING
                result.started_at = utcnow()
            result.progress.append(ProgressEntry(step=step, status=ProgressStatus.RUNNING))
        self._apply(mutate)
        self.logger.info("Stage started", extra={"job_id": self.job_id, "url_index": self.index, "step": str(step)})

    def stage_finished(self, step, ok, message, duration_ms, emails, error_kind=None) -> None:
        def mutate(result: UrlResult) -> None:
            entry = next(
                (e for e in reversed(result.progress) if e.step == step and e.status == ProgressStatus.RUNNING),
                None,
            )
            if entry is None:
                return
            entry.status = ProgressStatus.COMPLETED if ok else ProgressStatus.FAILED
            entry.message = message
            entry.duration = duration_ms
            entry.error_kind = error_kind
            result.emails = list(emails)
        self._apply(mutate)
        self.logger.info(
            "Stage finished",
            extra={
                "job_id": self.job_id,
                "url_index": self.index,
                "step": str(step),
                "ok": ok,
                "error_kind": error_kind,
                "emails": len(emails),
                "duration_ms": duration_ms,
            },
        )

    def result_finished(self, emails, failed, message, error=None) -> None:
        def mutate(result: UrlResult) -> None:
            if result.status.is_terminal:
                return
            now = utcnow()
            result.progress.append(
                ProgressEntry(
                    step=Step.EXTRACTION_COMPLETE,
                    status=ProgressStatus.FAILED if failed else ProgressStatus.COMPLETED,
                    message=message,
                    duration=0,
                    started_at=now,
                )
            )
            result.emails = list(emails)
            result.status = ProgressStatus.FAILED if failed else ProgressStatus.COMPLETED
            result.error = error
            result.completed_at = now
            result.duration = _ms_between(result.started_at, now)
        self._apply(mutate)
        self.logger.info(
            "Result finished",
            extra={"job_id": self.job_id, "url_index": self.index, "failed": failed, "error": error, "emails": len(emails)},
        )


class JobManager:
    """Owns Job records from admission to a terminal state.

    Each job's URLs run as asyncio tasks, at most `worker_pool_size` at a time;
    the stages of one URL run sequentially inside its pipeline.
    """

    def __init__(
        self,
        store: JobStore,
        quota_guard: QuotaGuard,
        runner: PipelineRunner,
        worker_pool_size: int = 5,
        max_urls_per_request: int = 50,
    ):
        self.store = store
        self.quota_guard = quota_guard
        self.runner = runner
        self.worker_pool_size = worker_pool_size
        self.max_urls_per_request = max_urls_per_request
        self._tasks: Dict[str, asyncio.Task] = {}

    def ensure_csv_allowed(self, owner_id: str) -> None:
        tier = self.quota_guard.tier_for(owner_id)
        if not tier.can_use_csv_upload:
            raise UpgradeRequired(
                "CSV upload is not available on your plan",
                {"feature": "csv_upload", "plan": tier.plan_name},
            )

    async def create_job(
        self,
        owner_id: str,
        raw_urls: Iterable[str],
        source: ExtractionType = ExtractionType.MULTIPLE,
    ) -> Job:
        """Admit, record and dispatch a new job. Raises before any Job exists on rejection."""
        urls = normalize_urls(raw_urls)
        if not urls:
            raise InvalidRequest("No valid URLs provided")
        if source != ExtractionType.CSV and len(urls) > self.max_urls_per_request:
            raise InvalidRequest(
                f"At most {self.max_urls_per_request} URLs can be submitted at once; use a CSV upload for more",
                {"count": len(urls), "max": self.max_urls_per_request},
            )
        if source == ExtractionType.CSV:
            self.ensure_csv_allowed(owner_id)

        admission = self.quota_guard.admit(owner_id, len(urls))
        if not admission.allowed:
            record = admission.record
            activity.limit_reached(owner_id, len(urls), admission.reason, record)
            if record.remaining is not None and record.remaining > 0:
                message = f"Only {record.remaining} extractions remain today, {len(urls)} requested"
            else:
                message = "Daily extraction limit reached"
            raise QuotaExceeded(admission.reason, message, {"requested": len(urls), "quota": record.to_api()})

        job = self.store.create_job(owner_id, urls, source)
        activity.extraction_started(job)
        self._tasks[job.job_id] = asyncio.get_running_loop().create_task(
            self._run_job(job.job_id), name=f"job-{job.job_id}"
        )
        return job

    async def _run_url(self, job_id: str, index: int, url: str, slots: asyncio.Semaphore, job_logger) -> None:
        async with slots:
            await self.runner.run(url, ResultRecorder(self.store, job_id, index, job_logger))

    async def _run_job(self, job_id: str) -> None:
        job = self.store.update_job(job_id, status=JobStatus.PROCESSING, started_at=utcnow())
        job_logger = setup_job_logger(job_id)
        job_logger.info("Dispatching job", extra={"job_id": job_id, "urls": len(job.urls)})
        slots = asyncio.Semaphore(self.worker_pool_size)
        try:
            await asyncio.gather(
                *(self._run_url(job_id, i, url, slots, job_logger) for i, url in enumerate(job.urls))
            )
        finally:
            self._tasks.pop(job_id, None)
            final = self.store.get_job(job_id)
            if final is not None and final.status.is_terminal and not final.cancelled:
                activity.extraction_finished(final)
            release_job_logger(job_id)

    async def join(self, job_id: str) -> Job:
        """Wait for a job's pipelines to finish and return the final snapshot."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._require(job_id)

    def _require(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFound(f"Job {job_id} not found", {"jobId": job_id})
        return job

    def get_job(self, job_id: str, owner_id: Optional[str] = None) -> Job:
        job = self._require(job_id)
        if owner_id is not None and job.owner_id != owner_id:
            raise Forbidden("You do not have access to this job", {"jobId": job_id})
        return job

    def list_jobs(self, owner_id: str, limit: int = 20, offset: int = 0) -> List[Job]:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidRequest(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise InvalidRequest("offset must not be negative")
        return self.store.list_jobs(owner_id, limit=limit, offset=offset)

    def _close_cancelled(self, job_id: str) -> Optional[Job]:
        def mutate(job: Job) -> None:
            now = utcnow()
            job.cancelled = True
            for result in job.results:
                close_cancelled_result(result, now)
            refresh_aggregates(job)
        return self.store.apply(job_id, mutate)

    async def cancel_job(self, job_id: str, owner_id: Optional[str] = None) -> Job:
        """Cancel a running job. Cancelling a terminal job is a no-op."""
        job = self.get_job(job_id, owner_id)
        if job.status.is_terminal:
            return job

        self.store.update_job(job_id, cancelled=True)
        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._tasks.pop(job_id, None)

        job = self._close_cancelled(job_id)
        activity.extraction_finished(job)
        logger.info("Job cancelled", extra={"job_id": job_id, "owner_id": job.owner_id})
        return job

    def export(self, job_id: str, owner_id: Optional[str] = None) -> bytes:
        job = self.get_job(job_id, owner_id)
        data = export_results(job)
        activity.results_downloaded(job, len(data))
        return data

    async def shutdown(self) -> None:
        """Cancel every in-flight job, e.g. on application shutdown."""
        for job_id in list(self._tasks):
            await self.cancel_job(job_id)
