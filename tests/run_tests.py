#!/usr/bin/env python3
import sys
import time

import pytest
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

CATEGORIES = [
    ("Unit Tests", "unit"),
    ("Integration Tests", "integration"),
    ("End-to-End Tests", "e2e"),
    ("API Tests", "api"),
]


def run_test_category(console, name, marker):
    """Run one marker's tests and return (passed, seconds)."""
    console.print(f"\n[bold blue]Running {name}[/]")
    started = time.monotonic()
    code = pytest.main(["-v", "-m", marker, "--disable-warnings", "tests"])
    # 5 means nothing was collected for the marker
    return code in (0, 5), time.monotonic() - started


def main(argv=None):
    console = Console()
    console.print(Panel.fit("[bold magenta]Email Extractor Test Suite[/]", border_style="blue"))

    wanted = set(argv or [])
    summary = Table(title="Summary")
    summary.add_column("Category")
    summary.add_column("Result")
    summary.add_column("Time", justify="right")

    success = True
    for name, marker in CATEGORIES:
        if wanted and marker not in wanted:
            continue
        passed, seconds = run_test_category(console, name, marker)
        success = success and passed
        summary.add_row(name, "[green]passed[/]" if passed else "[red]failed[/]", f"{seconds:.1f}s")

    console.print(summary)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
