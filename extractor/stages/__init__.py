from typing import List

from extractor.config import Settings
from extractor.stages.base import StageContext, StageExecutor, StageOutcome
from extractor.stages.browser import BrowserScanExecutor
from extractor.stages.contact_pages import ContactPagesExecutor
from extractor.stages.fetch import PageFetcher
from extractor.stages.homepage import HomepageExtractionExecutor, HomepageScanExecutor
from extractor.stages.whois import WhoisClient, WhoisLookupExecutor


def default_executors(settings: Settings) -> List[StageExecutor]:
    """Build the production executors in canonical step order."""
    fetcher = PageFetcher(
        user_agent=settings.USER_AGENT,
        timeout=settings.REQUEST_TIMEOUT,
        retries=settings.STAGE_RETRIES,
        backoff_base=settings.RETRY_BACKOFF_BASE,
        respect_robots=settings.RESPECT_ROBOTS,
    )
    return [
        HomepageScanExecutor(fetcher, timeout=settings.HOMEPAGE_TIMEOUT),
        HomepageExtractionExecutor(),
        ContactPagesExecutor(fetcher, max_pages=settings.MAX_CONTACT_PAGES, timeout=settings.CONTACT_PAGES_TIMEOUT),
        BrowserScanExecutor(
            user_agent=settings.USER_AGENT,
            enabled=settings.BROWSER_ENABLED,
            extra_paths=settings.BROWSER_EXTRA_PATHS,
            timeout=settings.BROWSER_TIMEOUT,
        ),
        WhoisLookupExecutor(
            WhoisClient(
                timeout=settings.REQUEST_TIMEOUT,
                retries=settings.STAGE_RETRIES,
                backoff_base=settings.RETRY_BACKOFF_BASE,
            ),
            timeout=settings.WHOIS_TIMEOUT,
        ),
    ]


__all__ = ["StageContext", "StageExecutor", "StageOutcome", "default_executors"]
