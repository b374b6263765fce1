"""Tests for infrastructure/metrics.py — Prometheus counter recording.

Verifies that:
- Every public record_*() helper increments the right series
- Histograms only observe when a latency is given
- get_metrics_response() exposes the private registry in text format
- LatencyTimer measures elapsed time

Counters are cumulative within a registry, so each test reads the value
before and after instead of asserting absolute numbers.
"""

from __future__ import annotations

import time

from infrastructure import metrics as metrics_module

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _value(name: str, **labels: str) -> float:
    return metrics_module._REGISTRY.get_sample_value(name, labels or None) or 0.0


# ---------------------------------------------------------------------------
# Analysis metrics
# ---------------------------------------------------------------------------


class TestAnalysisMetrics:
    def test_record_analysis_by_status(self) -> None:
        before = _value("spectrogram_analysis_runs_total", status="success")
        metrics_module.record_analysis(status="success")
        assert _value("spectrogram_analysis_runs_total", status="success") == before + 1

    def test_latency_observed_only_when_given(self) -> None:
        before = _value("spectrogram_analysis_latency_seconds_count")
        metrics_module.record_analysis(status="cancelled")
        assert _value("spectrogram_analysis_latency_seconds_count") == before
        metrics_module.record_analysis(status="success", latency_seconds=0.2)
        assert _value("spectrogram_analysis_latency_seconds_count") == before + 1

    def test_slices_processed(self) -> None:
        before = _value("spectrogram_slices_processed_total")
        metrics_module.record_slices_processed(20)
        assert _value("spectrogram_slices_processed_total") == before + 20

    def test_slice_failure(self) -> None:
        before = _value("spectrogram_slice_failures_total")
        metrics_module.record_slice_failure()
        metrics_module.record_slice_failure()
        assert _value("spectrogram_slice_failures_total") == before + 2


# ---------------------------------------------------------------------------
# Draw metrics
# ---------------------------------------------------------------------------


class TestDrawMetrics:
    def test_record_draw_complete(self) -> None:
        before = _value("spectrogram_draw_requests_total", status="complete")
        before_latency = _value("spectrogram_draw_latency_seconds_count")
        metrics_module.record_draw(status="complete", latency_seconds=0.01)
        assert _value("spectrogram_draw_requests_total", status="complete") == before + 1
        assert _value("spectrogram_draw_latency_seconds_count") == before_latency + 1

    def test_record_draw_error_labels_separately(self) -> None:
        complete = _value("spectrogram_draw_requests_total", status="complete")
        errors = _value("spectrogram_draw_requests_total", status="error")
        metrics_module.record_draw(status="error")
        assert _value("spectrogram_draw_requests_total", status="error") == errors + 1
        assert _value("spectrogram_draw_requests_total", status="complete") == complete


# ---------------------------------------------------------------------------
# Exposition
# ---------------------------------------------------------------------------


class TestMetricsResponse:
    def test_text_format(self) -> None:
        metrics_module.record_analysis(status="success")
        body, content_type = metrics_module.get_metrics_response()
        assert content_type.startswith("text/plain")
        assert b"spectrogram_analysis_runs_total" in body
        assert b"spectrogram_draw_latency_seconds" in body


class TestLatencyTimer:
    def test_measures_elapsed(self) -> None:
        with metrics_module.LatencyTimer() as timer:
            time.sleep(0.01)
        assert timer.elapsed >= 0.01

    def test_elapsed_zero_before_exit(self) -> None:
        timer = metrics_module.LatencyTimer()
        assert timer.elapsed == 0.0
