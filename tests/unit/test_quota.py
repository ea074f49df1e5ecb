import threading
from datetime import datetime, timedelta

import pytest

from extractor.models.quota import SubscriptionTier
from extractor.quota import EXHAUSTED, INSUFFICIENT, InMemoryQuotaStore, QuotaGuard, StaticTierResolver, next_reset
from tests.helpers import FixedClock


def tier(limit=10, unlimited=False, csv=True, plan="basic"):
    return SubscriptionTier(plan_name=plan, daily_extraction_limit=limit, can_use_csv_upload=csv, is_unlimited=unlimited)


@pytest.mark.unit
class TestQuotaGuard:
    @pytest.fixture
    def clock(self):
        return FixedClock(datetime(2024, 3, 10, 15, 30))

    def test_admits_and_counts(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=10), clock=clock)
        admission = guard.admit("alice", 3)
        assert admission.allowed
        assert admission.record.used == 3
        assert admission.record.remaining == 7
        assert guard.status("alice").used == 3

    def test_owner_at_limit_is_denied_without_counting(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=5), clock=clock)
        assert guard.admit("alice", 5).allowed

        admission = guard.admit("alice", 1)
        assert not admission.allowed
        assert admission.reason == EXHAUSTED
        assert guard.status("alice").used == 5

    def test_batch_larger_than_remaining_is_rejected_whole(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=5), clock=clock)
        guard.admit("alice", 3)

        admission = guard.admit("alice", 3)
        assert not admission.allowed
        assert admission.reason == INSUFFICIENT
        assert admission.record.remaining == 2
        assert guard.status("alice").used == 3

    def test_unlimited_tier_always_admits(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=1, unlimited=True, plan="premium"), clock=clock)
        for _ in range(5):
            assert guard.admit("alice", 100).allowed
        record = guard.status("alice")
        assert record.limit is None
        assert record.remaining is None
        assert record.used == 500

    def test_owners_are_counted_separately(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=2), clock=clock)
        assert guard.admit("alice", 2).allowed
        assert guard.admit("bob", 2).allowed
        assert not guard.admit("alice", 1).allowed

    def test_counter_resets_on_next_utc_day(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=2), clock=clock)
        assert guard.admit("alice", 2).allowed
        assert not guard.admit("alice", 1).allowed

        clock.now = clock.now + timedelta(days=1)
        assert guard.admit("alice", 1).allowed
        assert guard.status("alice").used == 1

    def test_reset_time_is_next_midnight(self, clock):
        guard = QuotaGuard(lambda owner: tier(limit=2), clock=clock)
        assert guard.status("alice").reset_time == datetime(2024, 3, 11)
        assert next_reset(datetime(2024, 12, 31, 23, 59)) == datetime(2025, 1, 1)

    def test_rejects_empty_request(self, clock):
        guard = QuotaGuard(lambda owner: tier(), clock=clock)
        with pytest.raises(ValueError):
            guard.admit("alice", 0)

    def test_upgrade_hint_above_eighty_percent(self, clock):
        guard = QuotaGuard(StaticTierResolver("free"), clock=clock)
        guard.admit("alice", 80)
        assert not guard.status("alice").needs_upgrade

        guard.admit("alice", 1)
        record = guard.status("alice")
        assert record.needs_upgrade
        assert record.recommended_plan == "basic"

    def test_concurrent_admissions_never_exceed_limit(self):
        guard = QuotaGuard(lambda owner: tier(limit=50))
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                admission = guard.admit("alice", 1)
                with lock:
                    results.append(admission.allowed)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 50
        assert guard.status("alice").used == 50


@pytest.mark.unit
class TestTierResolver:
    def test_default_and_overrides(self):
        resolver = StaticTierResolver("free", {"vip": "premium"})
        assert resolver("someone").plan_name == "free"
        assert not resolver("someone").can_use_csv_upload
        assert resolver("vip").is_unlimited

    def test_unknown_plan_falls_back_to_free(self):
        resolver = StaticTierResolver("platinum")
        assert resolver("someone").plan_name == "free"


@pytest.mark.unit
def test_store_purges_previous_days():
    store = InMemoryQuotaStore()
    day = datetime(2024, 1, 1).date()
    store.check_and_increment("alice", day, 2, 10)
    store.check_and_increment("alice", day + timedelta(days=1), 1, 10)
    assert store.get_used("alice", day) == 0
    assert store.get_used("alice", day + timedelta(days=1)) == 1
