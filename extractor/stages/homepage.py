import logging

from extractor.errors import StageError
from extractor.models.job import Step
from extractor.stages.base import StageContext, StageExecutor, StageOutcome, plural
from extractor.stages.fetch import PageFetcher
from extractor.stages.parser import extract_emails

logger = logging.getLogger(__name__)


class HomepageScanExecutor(StageExecutor):
    """Fetch the target URL and hand the page to the following stages."""

    step = Step.HOMEPAGE_SCAN

    def __init__(self, fetcher: PageFetcher, timeout: float = 20.0):
        self.fetcher = fetcher
        self.timeout = timeout

    async def run(self, ctx: StageContext) -> StageOutcome:
        page = await self.fetcher.fetch(ctx.url)
        if "html" not in page.content_type and "text" not in page.content_type and page.content_type:
            raise StageError(StageError.PARSE_FAILURE, f"Unsupported content type {page.content_type}")
        return StageOutcome(
            message=f"Homepage fetched (HTTP {page.status}, {len(page.body)} bytes)",
            homepage=page,
        )


class HomepageExtractionExecutor(StageExecutor):
    step = Step.HOMEPAGE_EMAIL_EXTRACTION

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def run(self, ctx: StageContext) -> StageOutcome:
        if ctx.homepage is None:
            raise StageError(StageError.PARSE_FAILURE, "No homepage content to scan")
        emails = extract_emails(ctx.homepage.body)
        return StageOutcome(emails=emails, message=f"{plural(len(emails))} found on homepage")
