"""Per-owner daily extraction quota with atomic check-and-increment."""

import logging
from datetime import date, datetime, time, timedelta
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from extractor.core.config import PLAN_LIMITS, UPGRADE_HINT_RATIO, UPGRADE_PATH
from extractor.models.quota import Admission, QuotaRecord, SubscriptionTier

logger = logging.getLogger(__name__)

EXHAUSTED = "exhausted"
INSUFFICIENT = "insufficient"


def next_reset(now: datetime) -> datetime:
    """Next UTC day boundary after `now`."""
    return datetime.combine(now.date() + timedelta(days=1), time.min)


class InMemoryQuotaStore:
    """Thread-safe daily usage counters keyed by (owner, UTC date)."""

    def __init__(self):
        self._used: Dict[Tuple[str, date], int] = {}
        self._lock = Lock()

    def get_used(self, owner_id: str, day: date) -> int:
        with self._lock:
            return self._used.get((owner_id, day), 0)

    def check_and_increment(self, owner_id: str, day: date, count: int, limit: Optional[int]) -> Tuple[bool, int]:
        """Add `count` only if the result stays within `limit` (None = unlimited).

        Returns (admitted, used_after).
        """
        with self._lock:
            key = (owner_id, day)
            used = self._used.get(key, 0)
            if limit is not None and used + count > limit:
                return False, used
            self._used[key] = used + count
            # Drop counters from previous days
            for stale in [k for k in self._used if k[1] < day]:
                del self._used[stale]
            return True, used + count


class StaticTierResolver:
    """Maps owners to built-in plans; unknown owners get the default plan."""

    def __init__(self, default_plan: str = "free", overrides: Optional[Dict[str, str]] = None):
        self.default_plan = default_plan
        self.overrides = overrides or {}

    def __call__(self, owner_id: str) -> SubscriptionTier:
        plan = self.overrides.get(owner_id, self.default_plan)
        if plan not in PLAN_LIMITS:
            logger.warning("Unknown plan, falling back to free", extra={"owner_id": owner_id, "plan": plan})
            plan = "free"
        return SubscriptionTier(plan_name=plan, **PLAN_LIMITS[plan])


class QuotaGuard:
    """Admits or denies extraction batches against the owner's daily allowance.

    Admission is all-or-nothing: a batch larger than the remaining allowance is
    rejected as a whole and nothing is counted.
    """

    def __init__(
        self,
        tier_resolver: Callable[[str], SubscriptionTier],
        store: Optional[InMemoryQuotaStore] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.tier_resolver = tier_resolver
        self.store = store or InMemoryQuotaStore()
        self.clock = clock

    def tier_for(self, owner_id: str) -> SubscriptionTier:
        return self.tier_resolver(owner_id)

    def _record(self, owner_id: str, tier: SubscriptionTier, used: int, now: datetime) -> QuotaRecord:
        limit = None if tier.is_unlimited else tier.daily_extraction_limit
        remaining = None if limit is None else max(0, limit - used)
        needs_upgrade = (
            limit is not None
            and tier.plan_name in UPGRADE_PATH
            and used > limit * UPGRADE_HINT_RATIO
        )
        return QuotaRecord(
            owner_id=owner_id,
            plan_name=tier.plan_name,
            used=used,
            limit=limit,
            remaining=remaining,
            reset_time=next_reset(now),
            can_use_csv_upload=tier.can_use_csv_upload,
            needs_upgrade=needs_upgrade,
            recommended_plan=UPGRADE_PATH.get(tier.plan_name) if needs_upgrade else None,
        )

    def status(self, owner_id: str) -> QuotaRecord:
        now = self.clock()
        tier = self.tier_for(owner_id)
        return self._record(owner_id, tier, self.store.get_used(owner_id, now.date()), now)

    def admit(self, owner_id: str, requested_url_count: int) -> Admission:
        if requested_url_count < 1:
            raise ValueError("requested_url_count must be at least 1")

        now = self.clock()
        tier = self.tier_for(owner_id)
        limit = None if tier.is_unlimited else tier.daily_extraction_limit
        admitted, used = self.store.check_and_increment(owner_id, now.date(), requested_url_count, limit)
        record = self._record(owner_id, tier, used, now)

        if admitted:
            logger.info(
                "Quota admitted",
                extra={"owner_id": owner_id, "count": requested_url_count, "used": used, "limit": limit},
            )
            return Admission(allowed=True, record=record)

        reason = EXHAUSTED if record.remaining is not None and record.remaining <= 0 else INSUFFICIENT
        logger.info(
            "Quota denied",
            extra={"owner_id": owner_id, "count": requested_url_count, "used": used, "limit": limit, "reason": reason},
        )
        return Admission(allowed=False, reason=reason, record=record)
