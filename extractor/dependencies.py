from functools import lru_cache
from typing import Optional

from fastapi import Header

from extractor.config import settings
from extractor.errors import Unauthorized
from extractor.job_manager import JobManager
from extractor.job_store import JobStore
from extractor.quota import QuotaGuard, StaticTierResolver
from extractor.stages import default_executors
from extractor.workflow import PipelineRunner, SufficiencyThreshold


@lru_cache
def get_job_store() -> JobStore:
    return JobStore()


@lru_cache
def get_quota_guard() -> QuotaGuard:
    return QuotaGuard(StaticTierResolver(settings.DEFAULT_PLAN, settings.PLAN_OVERRIDES))


@lru_cache
def get_pipeline_runner() -> PipelineRunner:
    return PipelineRunner(default_executors(settings), SufficiencyThreshold(settings.SUFFICIENCY_THRESHOLD))


@lru_cache
def get_job_manager() -> JobManager:
    return JobManager(
        store=get_job_store(),
        quota_guard=get_quota_guard(),
        runner=get_pipeline_runner(),
        worker_pool_size=settings.WORKER_POOL_SIZE,
        max_urls_per_request=settings.MAX_URLS_PER_REQUEST,
    )


def get_caller(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, forwarded by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise Unauthorized("Missing X-User-Id header")
    return x_user_id.strip()
