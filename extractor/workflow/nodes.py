import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from langchain_core.runnables import RunnableConfig

from extractor.errors import StageError
from extractor.models.job import Step
from extractor.models.state import PipelineState
from extractor.stages.base import StageContext, StageExecutor
from extractor.stages.parser import merge_emails

logger = logging.getLogger(__name__)

ALL_STAGES_FAILED = "all stages failed"
CANCELLED = "cancelled"


class ProgressReporter(Protocol):
    """Write path for one Result's progress, supplied by the job manager."""

    def stage_started(self, step: Step) -> None: ...

    def stage_finished(
        self,
        step: Step,
        ok: bool,
        message: str,
        duration_ms: int,
        emails: List[str],
        error_kind: Optional[str] = None,
    ) -> None: ...

    def result_finished(self, emails: List[str], failed: bool, message: str, error: Optional[str] = None) -> None: ...


def get_reporter(config: RunnableConfig) -> ProgressReporter:
    return config["configurable"]["reporter"]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def finish_result(reporter: ProgressReporter, state: PipelineState, cancelled: bool = False) -> bool:
    """Record `extraction_complete` and return whether the Result failed."""
    run, failed_count = state["stages_run"], state["stages_failed"]
    failed = cancelled or (run > 0 and failed_count == run)
    if cancelled:
        message, error = "Extraction cancelled", CANCELLED
    elif failed:
        message, error = f"All {run} stages failed", ALL_STAGES_FAILED
    else:
        count = len(state["emails"])
        message, error = f"Extraction finished with {count} unique email{'' if count == 1 else 's'}", None
    reporter.result_finished(state["emails"], failed, message, error)
    return failed


def make_stage_node(executor: StageExecutor) -> Callable[..., Any]:
    """Wrap an executor as a graph node that records its own progress entry.

    Stage failures are recorded and absorbed; only cancellation propagates.
    """
    step = executor.step

    async def stage_node(state: PipelineState, config: RunnableConfig) -> Dict[str, Any]:
        reporter = get_reporter(config)
        reporter.stage_started(step)
        started = time.monotonic()
        ctx = StageContext(url=state["url"], emails=tuple(state["emails"]), homepage=state["homepage"])

        update: Dict[str, Any] = {"stages_run": state["stages_run"] + 1}
        try:
            outcome = await asyncio.wait_for(executor.run(ctx), executor.timeout)
        except asyncio.CancelledError:
            reporter.stage_finished(step, False, "Cancelled", _elapsed_ms(started), state["emails"], StageError.CANCELLED)
            finish_result(reporter, {**state, **update, "stages_failed": state["stages_failed"] + 1}, cancelled=True)
            raise
        except asyncio.TimeoutError:
            error = StageError(StageError.TIMEOUT, f"Stage exceeded {executor.timeout:g}s")
        except StageError as e:
            error = e
        except Exception as e:
            logger.exception("Unexpected stage error", extra={"url": state["url"], "step": str(step)})
            error = StageError(StageError.PARSE_FAILURE, f"{type(e).__name__}: {e}")
        else:
            emails = merge_emails(state["emails"], outcome.emails)
            reporter.stage_finished(step, True, outcome.message, _elapsed_ms(started), emails)
            update["emails"] = emails
            if outcome.homepage is not None:
                update["homepage"] = outcome.homepage
            return update

        logger.info(
            "Stage failed",
            extra={"url": state["url"], "step": str(step), "kind": error.kind, "detail": error.detail},
        )
        reporter.stage_finished(
            step, False, error.detail or error.kind, _elapsed_ms(started), state["emails"], error.kind
        )
        update["stages_failed"] = state["stages_failed"] + 1
        return update

    stage_node.__name__ = str(step)
    return stage_node


async def extraction_complete(state: PipelineState, config: RunnableConfig) -> Dict[str, Any]:
    """Terminal node: marks the Result completed, or failed when every stage failed."""
    finish_result(get_reporter(config), state)
    return {}
