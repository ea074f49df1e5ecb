from datetime import datetime
from typing import Optional
from pydantic import Field

from extractor.models.job import CamelModel


class SubscriptionTier(CamelModel):
    """Opaque quota inputs supplied by the billing collaborator."""
    plan_name: str = "free"
    daily_extraction_limit: int = 100
    can_use_csv_upload: bool = False
    is_unlimited: bool = False


class QuotaRecord(CamelModel):
    owner_id: str
    plan_name: str
    used: int = 0
    limit: Optional[int] = Field(None, description="None means unlimited")
    remaining: Optional[int] = None
    reset_time: datetime
    can_use_csv_upload: bool = False
    needs_upgrade: bool = False
    recommended_plan: Optional[str] = None

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Admission(CamelModel):
    allowed: bool
    reason: Optional[str] = None
    record: QuotaRecord
