import logging
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from extractor.core.config import CONTACT_LINK_KEYWORDS, CONTACT_PATHS
from extractor.errors import StageError
from extractor.models.job import Step
from extractor.stages.base import StageContext, StageExecutor, StageOutcome, plural
from extractor.stages.fetch import PageFetcher
from extractor.stages.parser import extract_emails, merge_emails
from extractor.urls import join_path, same_host, strip_fragment

logger = logging.getLogger(__name__)


def _matches_keyword(value: str) -> bool:
    value = (value or "").lower()
    return any(keyword in value for keyword in CONTACT_LINK_KEYWORDS)


def discover_contact_links(base_url: str, markup: str) -> List[str]:
    """Same-host links whose href or anchor text looks like a contact/about page."""
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    links = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:", "#")):
            continue
        if not (_matches_keyword(href) or _matches_keyword(a.get_text(" "))):
            continue
        url = strip_fragment(urljoin(base_url, href))
        if urlsplit(url).scheme in ("http", "https") and same_host(url, base_url):
            links.append(url)
    return links


def candidate_pages(url: str, markup: Optional[str], limit: int, seed_paths: Sequence[str] = CONTACT_PATHS) -> List[str]:
    """Discovered links first, then well-known paths; unique, excluding the page itself."""
    seen = {strip_fragment(url).rstrip("/")}
    candidates = []
    for link in discover_contact_links(url, markup or "") + [join_path(url, p) for p in seed_paths]:
        key = link.rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        candidates.append(link)
        if len(candidates) >= limit:
            break
    return candidates


class ContactPagesExecutor(StageExecutor):
    """Scan likely contact/about pages with plain HTTP fetches."""

    step = Step.CONTACT_PAGES

    def __init__(self, fetcher: PageFetcher, max_pages: int = 5, timeout: float = 45.0):
        self.fetcher = fetcher
        self.max_pages = max_pages
        self.timeout = timeout

    async def run(self, ctx: StageContext) -> StageOutcome:
        markup = ctx.homepage.body if ctx.homepage else None
        base = ctx.homepage.url if ctx.homepage else ctx.url
        candidates = candidate_pages(base, markup, self.max_pages)

        emails: List[str] = []
        scanned = 0
        last_error: Optional[StageError] = None
        for page_url in candidates:
            if not await self.fetcher.allowed(page_url):
                logger.info("Skipping page disallowed by robots.txt", extra={"url": page_url})
                continue
            try:
                page = await self.fetcher.fetch(page_url)
            except StageError as e:
                last_error = e
                continue
            scanned += 1
            emails = merge_emails(emails, extract_emails(page.body))

        if scanned == 0 and last_error is not None:
            raise StageError(last_error.kind, f"None of {len(candidates)} contact pages could be fetched")

        return StageOutcome(
            emails=emails,
            message=f"{plural(len(emails))} found on {plural(scanned, 'contact page')}",
        )
