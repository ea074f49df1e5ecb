from enum import Enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.utcnow()


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ProgressStatus(str, Enum):
    """Status shared by Results and their Progress Entries."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)


class Step(str, Enum):
    HOMEPAGE_SCAN = "homepage_scan"
    HOMEPAGE_EMAIL_EXTRACTION = "homepage_email_extraction"
    CONTACT_PAGES = "contact_pages"
    PUPPETEER_SCAN = "puppeteer_scan"
    WHOIS_LOOKUP = "whois_lookup"
    EXTRACTION_COMPLETE = "extraction_complete"

    def __str__(self):
        return self.value


STEP_ORDER = list(Step)


class ExtractionType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    CSV = "csv"

    def __str__(self):
        return self.value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProgressEntry(CamelModel):
    """One stage's execution record for one Result."""
    step: Step
    status: ProgressStatus = ProgressStatus.RUNNING
    message: str = ""
    duration: Optional[int] = None  # milliseconds
    started_at: datetime = Field(default_factory=utcnow)
    error_kind: Optional[str] = None


class UrlResult(CamelModel):
    url: str
    emails: List[str] = Field(default_factory=list)
    progress: List[ProgressEntry] = Field(default_factory=list)
    status: ProgressStatus = ProgressStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None


class Job(CamelModel):
    """Job model for one extraction request over one or more URLs."""
    job_id: str
    owner_id: str
    source: ExtractionType = ExtractionType.MULTIPLE
    urls: List[str]
    status: JobStatus = JobStatus.QUEUED
    results: List[UrlResult] = Field(default_factory=list)
    total_emails: int = 0
    cancelled: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
