import logging
from typing import Callable, Optional, Sequence

from extractor.models.state import PipelineState
from extractor.stages.base import StageExecutor
from extractor.workflow.graph import SufficiencyThreshold, create_pipeline
from extractor.workflow.nodes import ProgressReporter

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Runs the compiled stage graph for one URL at a time."""

    def __init__(
        self,
        executors: Sequence[StageExecutor],
        sufficient: Optional[Callable[[Sequence[str]], bool]] = None,
    ):
        self.sufficient = sufficient or SufficiencyThreshold(1)
        self.graph = create_pipeline(executors, self.sufficient)

    async def run(self, url: str, reporter: ProgressReporter) -> PipelineState:
        """Execute every applicable stage for `url`, reporting progress as it goes.

        Stage errors are absorbed by the graph; cancellation propagates to the caller.
        """
        state = PipelineState(url=url, emails=[], homepage=None, stages_run=0, stages_failed=0)
        try:
            return await self.graph.ainvoke(state, config={"configurable": {"reporter": reporter}})
        except Exception as e:
            # Graph-level bug, not a stage failure: close the Result so the job can finish
            logger.exception("Pipeline crashed", extra={"url": url})
            reporter.result_finished(state["emails"], True, f"Pipeline error: {e}", str(e))
            return state
