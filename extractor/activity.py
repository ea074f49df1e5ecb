"""Structured activity events for extraction jobs."""

import logging
from typing import Optional

from extractor.models.job import Job
from extractor.models.quota import QuotaRecord

logger = logging.getLogger("extractor.activity")


def _job_fields(job: Job) -> dict:
    return {
        "job_id": job.job_id,
        "owner_id": job.owner_id,
        "source": str(job.source),
        "url_count": len(job.urls),
    }


def extraction_started(job: Job) -> None:
    logger.info("Extraction started", extra={"event": "extraction_started", **_job_fields(job)})


def extraction_finished(job: Job) -> None:
    if job.cancelled:
        event = "extraction_cancelled"
    elif str(job.status) == "failed":
        event = "extraction_failed"
    else:
        event = "extraction_completed"
    logger.info(
        event.replace("_", " ").capitalize(),
        extra={
            "event": event,
            "status": str(job.status),
            "total_emails": job.total_emails,
            "duration_ms": job.duration,
            **_job_fields(job),
        },
    )


def limit_reached(owner_id: str, requested: int, reason: Optional[str], record: QuotaRecord) -> None:
    logger.warning(
        "Extraction limit reached",
        extra={
            "event": "limit_reached",
            "owner_id": owner_id,
            "requested": requested,
            "reason": reason,
            "used": record.used,
            "limit": record.limit,
            "plan": record.plan_name,
        },
    )


def results_downloaded(job: Job, size: int) -> None:
    logger.info("Results downloaded", extra={"event": "results_downloaded", "bytes": size, **_job_fields(job)})
