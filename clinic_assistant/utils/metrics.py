"""
Per-turn metrics for the resolution chain.
Tracks how long each stage took, how many store queries ran and which stage answered.
"""

import time
from typing import Any
from contextvars import ContextVar

from clinic_assistant.utils.logger import get_logger

logger = get_logger(__name__)

metrics_ctx: ContextVar[dict[str, Any] | None] = ContextVar("metrics", default=None)


class MetricsTracker:
    """
    Collects metrics for a single turn.
    Creating a tracker makes it current for the running context.
    """

    def __init__(self):
        self.metrics = {
            "stage_timings": {},
            "lookups": {"queries": 0, "rows": 0, "failures": 0},
            "model_calls": 0,
            "answered_by": None,
            "total_time": 0.0,
            "start_time": time.time(),
        }
        metrics_ctx.set(self.metrics)

    def finalize(self, answered_by: str | None = None) -> dict[str, Any]:
        """
        Finalize metrics and log the turn summary.

        Args:
            answered_by: Response source that produced the final text

        Returns:
            Dictionary with all collected metrics
        """
        self.metrics["total_time"] = time.time() - self.metrics["start_time"]
        self.metrics["answered_by"] = answered_by

        stage_summary = {}
        for stage, timings in self.metrics["stage_timings"].items():
            stage_summary[stage] = round(
                sum(t["end"] - t["start"] for t in timings if t["end"] is not None), 4
            )
        self.metrics["stage_summary"] = stage_summary

        logger.info(
            "turn_metrics",
            total_time=self.metrics["total_time"],
            answered_by=answered_by,
            lookups=self.metrics["lookups"],
            model_calls=self.metrics["model_calls"],
            stages=stage_summary,
        )
        return self.metrics


def start_stage_timing(stage: str) -> None:
    """Start timing a stage if a tracker is active."""
    metrics = metrics_ctx.get()
    if metrics is not None:
        metrics["stage_timings"].setdefault(stage, []).append(
            {"start": time.time(), "end": None}
        )


def end_stage_timing(stage: str) -> float | None:
    """
    End timing a stage if a tracker is active.

    Returns:
        Elapsed time or None if no tracker is active
    """
    metrics = metrics_ctx.get()
    if metrics is None:
        return None

    timings = metrics["stage_timings"].get(stage)
    if not timings or timings[-1]["end"] is not None:
        return None

    timings[-1]["end"] = time.time()
    return timings[-1]["end"] - timings[-1]["start"]


def record_lookup(rows: int, failed: bool = False) -> None:
    """Count a store query against the active tracker, if any."""
    metrics = metrics_ctx.get()
    if metrics is not None:
        metrics["lookups"]["queries"] += 1
        metrics["lookups"]["rows"] += rows
        if failed:
            metrics["lookups"]["failures"] += 1


def record_model_call() -> None:
    """Count an external model call against the active tracker, if any."""
    metrics = metrics_ctx.get()
    if metrics is not None:
        metrics["model_calls"] += 1
