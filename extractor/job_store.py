from typing import Callable, Dict, List, Optional
from threading import Lock
import uuid
from datetime import datetime
from extractor.models.job import ExtractionType, Job, JobStatus, UrlResult


class JobStore:
    """Thread-safe in-memory job store.

    Reads return deep copies so callers never observe a record mid-update;
    all writes go through `apply`, which mutates the stored record under the lock.
    """
    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = Lock()

    def create_job(self, owner_id: str, urls: List[str], source: ExtractionType = ExtractionType.MULTIPLE) -> Job:
        """Create a new job with one pending result per URL."""
        job_id = str(uuid.uuid4())
        job = Job(
            job_id=job_id,
            owner_id=owner_id,
            source=source,
            urls=list(urls),
            status=JobStatus.QUEUED,
            results=[UrlResult(url=url) for url in urls],
            created_at=datetime.utcnow(),
        )
        with self._lock:
            self._jobs[job_id] = job
            return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a snapshot of a job by ID."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def list_jobs(self, owner_id: str, limit: int = 20, offset: int = 0) -> List[Job]:
        """List an owner's jobs, newest first."""
        with self._lock:
            jobs = [j for j in self._jobs.values() if j.owner_id == owner_id]
            jobs.sort(key=lambda j: j.created_at, reverse=True)
            return [j.model_copy(deep=True) for j in jobs[offset:offset + limit]]

    def apply(self, job_id: str, mutate: Callable[[Job], None]) -> Optional[Job]:
        """Run `mutate` on the stored job atomically and return a snapshot."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            mutate(job)
            job.updated_at = datetime.utcnow()
            return job.model_copy(deep=True)

    def update_job(self, job_id: str, **fields) -> Optional[Job]:
        """Update top-level job fields."""
        def mutate(job: Job) -> None:
            for key, value in fields.items():
                setattr(job, key, value)
        return self.apply(job_id, mutate)
