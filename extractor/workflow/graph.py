from typing import Callable, Dict, Sequence

from langgraph.graph import END, StateGraph

from extractor.models.job import STEP_ORDER, Step
from extractor.models.state import PipelineState
from extractor.stages.base import StageExecutor
from extractor.workflow.nodes import extraction_complete, make_stage_node

# Stages after which enough emails let the expensive stages be skipped
EARLY_EXIT_AFTER = (Step.HOMEPAGE_EMAIL_EXTRACTION, Step.CONTACT_PAGES)


class SufficiencyThreshold:
    """Early-termination predicate: at least `minimum` emails found so far.

    A minimum of zero or less disables early termination.
    """

    def __init__(self, minimum: int = 1):
        self.minimum = minimum

    def __call__(self, emails: Sequence[str]) -> bool:
        return self.minimum > 0 and len(emails) >= self.minimum

    def __repr__(self):
        return f"SufficiencyThreshold({self.minimum})"


def create_pipeline(executors: Sequence[StageExecutor], sufficient: Callable[[Sequence[str]], bool]):
    """Compile the per-URL stage graph.

    Stages run in canonical order; after homepage extraction and the contact
    pages the `sufficient` predicate may route straight to extraction_complete.
    """
    by_step: Dict[Step, StageExecutor] = {e.step: e for e in executors}
    stage_steps = [s for s in STEP_ORDER if s != Step.EXTRACTION_COMPLETE]
    missing = [str(s) for s in stage_steps if s not in by_step]
    if missing:
        raise ValueError(f"No executor for steps: {', '.join(missing)}")

    workflow = StateGraph(PipelineState)
    for step in stage_steps:
        workflow.add_node(str(step), make_stage_node(by_step[step]))
    workflow.add_node(str(Step.EXTRACTION_COMPLETE), extraction_complete)

    workflow.set_entry_point(str(stage_steps[0]))
    done = str(Step.EXTRACTION_COMPLETE)

    def route_after(next_name: str):
        def route(state: PipelineState) -> str:
            return done if sufficient(state["emails"]) else next_name
        return route

    for step, next_step in zip(stage_steps, stage_steps[1:] + [Step.EXTRACTION_COMPLETE]):
        if step in EARLY_EXIT_AFTER:
            workflow.add_conditional_edges(
                str(step),
                route_after(str(next_step)),
                {done: done, str(next_step): str(next_step)},
            )
        else:
            workflow.add_edge(str(step), str(next_step))
    workflow.add_edge(done, END)

    return workflow.compile()
