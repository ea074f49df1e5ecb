"""Fakes and builders shared by the test suites."""

import asyncio
from datetime import datetime
from typing import Iterable, List, Optional

import httpx

from extractor.errors import StageError
from extractor.job_manager import JobManager
from extractor.job_store import JobStore
from extractor.models.job import Step
from extractor.quota import QuotaGuard, StaticTierResolver
from extractor.stages.base import Page, StageContext, StageExecutor, StageOutcome
from extractor.stages.fetch import PageFetcher
from extractor.workflow import PipelineRunner, SufficiencyThreshold


class FakeExecutor(StageExecutor):
    """Scripted stage: returns fixed emails, raises a StageError kind, or hangs."""

    def __init__(
        self,
        step: Step,
        emails: Iterable[str] = (),
        error: Optional[str] = None,
        delay: float = 0.0,
        timeout: float = 5.0,
        exception: Optional[Exception] = None,
    ):
        self.step = step
        self.emails = list(emails)
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.exception = exception
        self.calls: List[StageContext] = []

    async def run(self, ctx: StageContext) -> StageOutcome:
        self.calls.append(ctx)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exception is not None:
            raise self.exception
        if self.error:
            raise StageError(self.error, f"scripted {self.error}")
        homepage = None
        if self.step == Step.HOMEPAGE_SCAN:
            homepage = Page(url=ctx.url, status=200, content_type="text/html", body="<html></html>")
        return StageOutcome(emails=list(self.emails), message=f"{len(self.emails)} scripted", homepage=homepage)


def make_executors(**overrides) -> List[FakeExecutor]:
    """One FakeExecutor per stage; keyword overrides are keyed by step value."""
    executors = []
    for step in (
        Step.HOMEPAGE_SCAN,
        Step.HOMEPAGE_EMAIL_EXTRACTION,
        Step.CONTACT_PAGES,
        Step.PUPPETEER_SCAN,
        Step.WHOIS_LOOKUP,
    ):
        options = overrides.get(step.value, {})
        executors.append(FakeExecutor(step, **options))
    return executors


def by_step(executors: List[FakeExecutor]) -> dict:
    return {e.step: e for e in executors}


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_manager(executors, plan: str = "basic", threshold: int = 1, worker_pool_size: int = 5, guard=None) -> JobManager:
    return JobManager(
        store=JobStore(),
        quota_guard=guard or QuotaGuard(StaticTierResolver(default_plan=plan)),
        runner=PipelineRunner(executors, SufficiencyThreshold(threshold)),
        worker_pool_size=worker_pool_size,
        max_urls_per_request=50,
    )


def site_transport(pages: dict, default_status: int = 404) -> httpx.MockTransport:
    """Serve `pages` (url -> html, or url -> (status, html)) from memory."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        entry = pages.get(url, pages.get(url.rstrip("/")))
        if entry is None:
            return httpx.Response(default_status, text="", headers={"content-type": "text/html"})
        status, body = entry if isinstance(entry, tuple) else (200, entry)
        return httpx.Response(status, text=body, headers={"content-type": "text/html; charset=utf-8"})

    return httpx.MockTransport(handler)


def make_fetcher(transport: httpx.MockTransport, retries: int = 0, respect_robots: bool = False) -> PageFetcher:
    return PageFetcher(
        user_agent="test-agent",
        timeout=2.0,
        retries=retries,
        backoff_base=0.0,
        respect_robots=respect_robots,
        transport=transport,
    )


