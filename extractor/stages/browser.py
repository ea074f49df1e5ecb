"""Headless-browser stage for client-rendered sites."""

import logging
from typing import List

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from extractor.core.config import CONTACT_PATHS
from extractor.errors import StageError
from extractor.models.job import Step
from extractor.stages.base import StageContext, StageExecutor, StageOutcome, plural
from extractor.stages.parser import extract_emails, merge_emails
from extractor.urls import join_path

logger = logging.getLogger(__name__)

BLOCKED_RESOURCES = ("image", "media", "font", "stylesheet")


async def _drop_heavy_assets(route, request):
    if request.resource_type in BLOCKED_RESOURCES:
        await route.abort()
    else:
        await route.continue_()


class BrowserScanExecutor(StageExecutor):
    """Render the site in headless Chromium and scan the resulting DOM."""

    step = Step.PUPPETEER_SCAN

    def __init__(
        self,
        user_agent: str,
        enabled: bool = True,
        extra_paths: int = 3,
        page_timeout: float = 15.0,
        timeout: float = 60.0,
    ):
        self.user_agent = user_agent
        self.enabled = enabled
        self.extra_paths = extra_paths
        self.page_timeout = page_timeout
        self.timeout = timeout

    async def _render(self, context, url: str) -> str:
        page = await context.new_page()
        try:
            await page.route("**/*", _drop_heavy_assets)
            await page.goto(url, wait_until="domcontentloaded", timeout=self.page_timeout * 1000)
            try:
                await page.wait_for_load_state("networkidle", timeout=3000)
            except PlaywrightTimeoutError:
                pass
            return await page.content()
        finally:
            await page.close()

    async def run(self, ctx: StageContext) -> StageOutcome:
        if not self.enabled:
            raise StageError(StageError.UNAVAILABLE, "Headless browser disabled")

        async with async_playwright() as pw:
            try:
                browser = await pw.chromium.launch(headless=True, args=["--no-sandbox"])
            except PlaywrightError as e:
                raise StageError(StageError.UNAVAILABLE, f"Browser could not start: {e}") from e

            try:
                context = await browser.new_context(user_agent=self.user_agent)
                try:
                    markup = await self._render(context, ctx.url)
                except PlaywrightTimeoutError as e:
                    raise StageError(StageError.TIMEOUT, f"Rendering {ctx.url} timed out") from e
                except PlaywrightError as e:
                    raise StageError(StageError.UNREACHABLE, f"Rendering {ctx.url} failed: {e}") from e

                emails: List[str] = extract_emails(markup)
                rendered = 1
                for path in CONTACT_PATHS[: self.extra_paths]:
                    try:
                        markup = await self._render(context, join_path(ctx.url, path))
                    except PlaywrightError as e:
                        logger.debug("Rendered contact path failed", extra={"url": ctx.url, "path": path, "error": str(e)})
                        continue
                    rendered += 1
                    emails = merge_emails(emails, extract_emails(markup))
            finally:
                await browser.close()

        return StageOutcome(emails=emails, message=f"{plural(len(emails))} found in {plural(rendered, 'rendered page')}")
