import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from extractor.errors import StageError
from extractor.models.job import Step

logger = logging.getLogger(__name__)


@dataclass
class Page:
    url: str
    status: int
    content_type: str
    body: str


@dataclass
class StageContext:
    """What a stage gets to see: the target and the partial results so far."""
    url: str
    emails: Tuple[str, ...] = ()
    homepage: Optional[Page] = None


@dataclass
class StageOutcome:
    emails: List[str] = field(default_factory=list)
    message: str = ""
    homepage: Optional[Page] = None


class StageExecutor:
    """One extraction technique. Subclasses implement `run` and raise StageError on failure."""

    step: Step
    timeout: float = 30.0

    async def run(self, ctx: StageContext) -> StageOutcome:
        raise NotImplementedError


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, StageError) and exc.retryable


def retrying(retries: int, backoff_base: float) -> AsyncRetrying:
    """Retry policy for transient StageErrors: `retries` extra attempts, exponential wait capped at 10s."""
    return AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=backoff_base, max=10),
        retry=retry_if_exception(_is_transient),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )



def plural(count: int, word: str = "email") -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")
