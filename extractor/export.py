import csv
import io

from extractor.errors import NotReady
from extractor.models.job import Job

EXPORT_COLUMNS = ("url", "email")


def export_filename(job: Job) -> str:
    return f"email-extraction-{job.job_id}.csv"


def export_results(job: Job) -> bytes:
    """Render a terminal job as CSV: one `url,email` row per pair.

    Rows follow URL order, then email discovery order, so the output is
    byte-identical across calls.
    """
    if not job.status.is_terminal:
        raise NotReady(
            f"Job {job.job_id} is still {job.status}",
            {"jobId": job.job_id, "status": str(job.status)},
        )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for result in job.results:
        for email in result.emails:
            writer.writerow((result.url, email))
    return buffer.getvalue().encode("utf-8")
