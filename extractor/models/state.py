from typing import List, Optional, TypedDict

from extractor.stages.base import Page


class PipelineState(TypedDict):
    """State carried through the per-URL extraction graph."""
    url: str
    emails: List[str]
    homepage: Optional[Page]
    stages_run: int
    stages_failed: int
