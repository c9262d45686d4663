from __future__ import annotations

import logging

import pytest

from autoimpl.generation import format_statistics, log_statistics
from autoimpl.generation.statistics import categorize_performance
from autoimpl.models import FileStats, GenerationResult, TargetStatus


@pytest.fixture()
def result() -> GenerationResult:
    return GenerationResult(
        success=False,
        file_stats=[
            FileStats("DB", TargetStatus.GENERATED, duration=2.0),
            FileStats("UserService", TargetStatus.GENERATED, duration=12.0),
            FileStats("Cache", TargetStatus.SKIPPED),
            FileStats("Mailer", TargetStatus.LOCKED),
            FileStats("Clock", TargetStatus.ERROR, duration=5.0, error="ollama request timed out"),
        ],
        total_duration=19.5,
    )


@pytest.mark.parametrize(
    ("duration", "label"),
    [(0.5, "Fast"), (5, "Normal"), (14.9, "Normal"), (15, "Slow"), (30, "Very Slow")],
)
def test_categorize_performance(duration: float, label: str) -> None:
    assert categorize_performance(duration) == label


def test_summary_counts(result: GenerationResult) -> None:
    summary = result.summary()

    assert (summary.total, summary.generated, summary.skipped, summary.locked, summary.errors) == (
        5,
        2,
        1,
        1,
        1,
    )
    assert summary.success_rate == 40.0


def test_format_statistics(result: GenerationResult) -> None:
    lines = format_statistics(result)

    assert "Generated: 2 files" in lines
    assert "Locked: 1 files" in lines
    assert "   Average per file: 7.00s" in lines
    assert "   Fastest: 2.00s" in lines
    assert "   Slowest: 12.00s" in lines
    assert "   Clock: ollama request timed out (5.00s)" in lines
    assert "Success rate: 40.0% of 5 target(s)" in lines
    assert "Total generation time: 19.50s" in lines
    assert "Individual File Times:" not in lines


def test_verbose_statistics_list_individual_times(result: GenerationResult) -> None:
    lines = format_statistics(result, verbose=True)

    assert "   DB: 2.00s (Fast)" in lines
    assert "   UserService: 12.00s (Normal)" in lines


def test_empty_run() -> None:
    lines = format_statistics(GenerationResult(success=True, file_stats=[], total_duration=0.0))

    assert "Success rate: 0.0% of 0 target(s)" in lines
    assert "Timing Details:" not in lines


def test_log_statistics(result: GenerationResult, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="autoimpl.generation.statistics"):
        log_statistics(result)

    assert "Generation Statistics:" in caplog.messages
