"""Prometheus metrics for the spectrogram engine.

Metrics live on a private registry so embedding applications can expose
them next to their own without name collisions.

Metrics:
    spectrogram_analysis_runs_total         Counter by status (success/error/cancelled)
    spectrogram_analysis_latency_seconds    Histogram of end-to-end analysis time
    spectrogram_slices_processed_total      Slices turned into frames
    spectrogram_slice_failures_total        Slices replaced by a silent frame
    spectrogram_draw_requests_total         Counter by status (complete/error)
    spectrogram_draw_latency_seconds        Histogram of render time per draw

Usage::

    from infrastructure.metrics import LatencyTimer, record_analysis

    with LatencyTimer() as t:
        grid = await analyze(audio)
    record_analysis(status="success", latency_seconds=t.elapsed)
"""

from __future__ import annotations

import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_REGISTRY = CollectorRegistry()

analysis_runs_total = Counter(
    "spectrogram_analysis_runs_total",
    "Spectrogram analyses by terminal status",
    ["status"],
    registry=_REGISTRY,
)

analysis_latency_seconds = Histogram(
    "spectrogram_analysis_latency_seconds",
    "End-to-end spectrogram analysis latency in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=_REGISTRY,
)

slices_processed_total = Counter(
    "spectrogram_slices_processed_total",
    "Time slices turned into spectrogram frames",
    registry=_REGISTRY,
)

slice_failures_total = Counter(
    "spectrogram_slice_failures_total",
    "Time slices that failed and were replaced by a silent frame",
    registry=_REGISTRY,
)

draw_requests_total = Counter(
    "spectrogram_draw_requests_total",
    "Draw requests by acknowledgement status",
    ["status"],
    registry=_REGISTRY,
)

draw_latency_seconds = Histogram(
    "spectrogram_draw_latency_seconds",
    "Time spent rendering one spectrogram draw request",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=_REGISTRY,
)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_analysis(*, status: str, latency_seconds: float | None = None) -> None:
    """Record a finished analysis.

    Args:
        status: One of "success", "error", "cancelled".
        latency_seconds: Wall-clock time, when known.
    """
    analysis_runs_total.labels(status=status).inc()
    if latency_seconds is not None:
        analysis_latency_seconds.observe(latency_seconds)


def record_slices_processed(count: int) -> None:
    """Add ``count`` to the processed-slices counter."""
    slices_processed_total.inc(count)


def record_slice_failure() -> None:
    """Increment the recovered slice failure counter."""
    slice_failures_total.inc()


def record_draw(*, status: str, latency_seconds: float | None = None) -> None:
    """Record an acknowledged draw request.

    Args:
        status: "complete" or "error".
        latency_seconds: Render time, when the draw got that far.
    """
    draw_requests_total.labels(status=status).inc()
    if latency_seconds is not None:
        draw_latency_seconds.observe(latency_seconds)


def get_metrics_response() -> tuple[bytes, str]:
    """Generate Prometheus text exposition format.

    Returns:
        Tuple of (body_bytes, content_type_string).
    """
    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Context manager for measuring latency.

    Usage::

        with LatencyTimer() as t:
            render_spectrogram(surface, grid, config)
        record_draw(status="complete", latency_seconds=t.elapsed)
    """

    def __init__(self) -> None:
        """Initialize timer."""
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        """Start timing."""
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        """Stop timing and record elapsed."""
        self.elapsed = time.perf_counter() - self._start
