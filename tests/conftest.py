import os
import sys

import pytest
from rich.console import Console
from rich.live import Live
from rich.table import Table

# Add the project root directory to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from extractor.core.config import ROBOTS_CACHE, WHOIS_CACHE
from extractor.job_store import JobStore


@pytest.fixture(autouse=True)
def clear_caches():
    WHOIS_CACHE.clear()
    ROBOTS_CACHE.clear()
    yield

def pytest_configure(config):
    """Add custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "api: API tests")

CATEGORIES = ("unit", "integration", "e2e", "api")


class SuiteProgress:
    """Live per-category pass/fail table shown while the suite runs."""

    def __init__(self):
        self.console = Console()
        self.stats = {c: {"total": 0, "passed": 0, "failed": 0, "duration": 0.0} for c in CATEGORIES}
        self.live = None

    def render(self) -> Table:
        table = Table(show_header=True, header_style="bold magenta")
        for column in ("Category", "Total", "Passed", "Failed", "Duration"):
            table.add_column(column)
        for category, stats in self.stats.items():
            table.add_row(
                category,
                str(stats["total"]),
                f"[green]{stats['passed']}[/]",
                f"[red]{stats['failed']}[/]",
                f"{stats['duration']:.2f}s",
            )
        return table

    def start(self):
        try:
            self.live = Live(self.render(), refresh_per_second=4, console=self.console)
            self.live.start()
        except Exception:
            self.live = None

    def stop(self):
        if self.live:
            try:
                self.live.update(self.render())
                self.live.stop()
            finally:
                self.live = None

    def record(self, category: str, passed: bool, duration: float):
        stats = self.stats.get(category)
        if stats is None:
            return
        stats["total"] += 1
        stats["passed" if passed else "failed"] += 1
        stats["duration"] += duration
        if self.live:
            self.live.update(self.render())


suite_progress = SuiteProgress()


@pytest.fixture(scope="session", autouse=True)
def progress_tracker():
    suite_progress.start()
    yield suite_progress
    suite_progress.stop()


def pytest_runtest_logreport(report):
    """Update progress after each test"""
    if report.when != "call":
        return
    category = next((c for c in CATEGORIES if f"/{c}/" in report.nodeid), "unit")
    suite_progress.record(category, report.passed, report.duration)


@pytest.fixture
def job_store():
    return JobStore()
