from __future__ import annotations

import logging
from datetime import datetime

from autoimpl.models import FileStats, GenerationResult, TargetStatus

logger = logging.getLogger(__name__)

_RULE = "=" * 50


def categorize_performance(duration: float) -> str:
    """Return a label for a per-target duration in seconds."""
    if duration < 5:
        return "Fast"
    if duration < 15:
        return "Normal"
    if duration < 30:
        return "Slow"
    return "Very Slow"


def format_statistics(result: GenerationResult, *, verbose: bool = False) -> list[str]:
    summary = result.summary()
    by_status: dict[TargetStatus, list[FileStats]] = {status: [] for status in TargetStatus}
    for stats in result.file_stats:
        by_status[stats.status].append(stats)

    lines = [
        "",
        "Generation Statistics:",
        _RULE,
        f"Generated: {summary.generated} files",
        f"Skipped: {summary.skipped} files",
        f"Locked: {summary.locked} files",
        f"Errors: {summary.errors} files",
    ]

    generated = by_status[TargetStatus.GENERATED]
    if generated:
        durations = [stats.duration for stats in generated]
        lines += [
            "",
            "Timing Details:",
            f"   Average per file: {sum(durations) / len(durations):.2f}s",
            f"   Fastest: {min(durations):.2f}s",
            f"   Slowest: {max(durations):.2f}s",
        ]
        if verbose:
            lines += ["", "Individual File Times:"]
            lines += [
                f"   {stats.interface_name}: {stats.duration:.2f}s "
                f"({categorize_performance(stats.duration)})"
                for stats in generated
            ]

    errors = by_status[TargetStatus.ERROR]
    if errors:
        lines += ["", "Error Details:"]
        lines += [
            f"   {stats.interface_name}: {stats.error} ({stats.duration:.2f}s)" for stats in errors
        ]

    lines += [
        _RULE,
        f"Success rate: {summary.success_rate:.1f}% of {summary.total} target(s)",
        f"Total generation time: {result.total_duration:.2f}s",
        f"Completed at {datetime.now():%H:%M:%S}",
    ]
    return lines


def log_statistics(result: GenerationResult, *, verbose: bool = False) -> None:
    for line in format_statistics(result, verbose=verbose):
        logger.info("%s", line)
