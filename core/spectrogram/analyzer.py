"""
core/spectrogram/analyzer.py — Slice a decoded buffer into a spectrogram grid.

Pipeline per slice:
    channel windows → downmix → zero-pad/truncate to fft_size → Hann window
    → magnitude spectrum → post-processing strategy → frame

Design:
    - The analyzer is a coroutine so it can share an event loop: every
      ``yield_every`` slices it awaits asyncio.sleep(0), a zero-delay yield.
      Cancellation of the hosting task lands on one of those yields.
    - Post-processing is an explicit strategy object (SpectrumPostProcessor).
      The default ABSOLUTE strategy keeps intensities comparable across frames.
    - One bad slice never aborts the run: it is logged, counted and replaced
      by an all-zero frame. InvalidInputSize is a programming error and
      propagates immediately.
    - Caller buffers are never written; every frame is a fresh read-only array.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Iterator, Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from core.config import DEFAULT_CONFIG, AnalysisConfig, NormalizationMode
from core.spectrogram.errors import InvalidInputSize, SliceAnalysisFailure
from core.spectrogram.fft import apply_hann_window, compute_magnitude_spectrum
from core.spectrogram.types import (
    AudioChannelSet,
    ProgressEvent,
    SpectrogramGrid,
    TimeSlice,
    freeze,
)
from infrastructure.metrics import record_slice_failure, record_slices_processed

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

# Tolerance for ceil(duration / slice) so 1.1 / 0.1 counts as 11 slices, not 12.
_SLICE_COUNT_EPS = 1e-9

_BAND_COUNT = 4


# ---------------------------------------------------------------------------
# Post-processing strategies
# ---------------------------------------------------------------------------


@runtime_checkable
class SpectrumPostProcessor(Protocol):
    """Turns raw magnitudes into display intensities. Must return values >= 0."""

    def __call__(self, magnitudes: np.ndarray) -> np.ndarray: ...


class AbsoluteLogCompression:
    """Uniform gain, then out(i) = log10(1 + magnitude(i) * k)."""

    def __init__(self, gain: float = 2.0, compression: float = 25.0) -> None:
        self.gain = gain
        self.compression = compression

    def __call__(self, magnitudes: np.ndarray) -> np.ndarray:
        weighted = magnitudes * self.gain
        return np.log10(1.0 + weighted * self.compression)

    def __repr__(self) -> str:
        return f"AbsoluteLogCompression(gain={self.gain}, compression={self.compression})"


class BandNormalizedLogCompression(AbsoluteLogCompression):
    """Uniform gain, per-quartile-band peak normalization, then log compression.

    Each quarter of the bins is divided by its own peak, so every band
    reaches log10(1 + k) at its loudest bin. Silent bands stay at zero.
    """

    def __call__(self, magnitudes: np.ndarray) -> np.ndarray:
        weighted = magnitudes * self.gain
        normalized = np.empty_like(weighted)
        for band in np.array_split(np.arange(weighted.size), _BAND_COUNT):
            values = weighted[band]
            peak = float(values.max()) if values.size else 0.0
            normalized[band] = values / peak if peak > 0 else values
        return np.log10(1.0 + normalized * self.compression)

    def __repr__(self) -> str:
        return f"BandNormalizedLogCompression(gain={self.gain}, compression={self.compression})"


def make_post_processor(config: AnalysisConfig) -> SpectrumPostProcessor:
    """Build the strategy named by ``config.normalization``."""
    if config.normalization is NormalizationMode.BAND_NORMALIZED:
        return BandNormalizedLogCompression(config.gain, config.compression)
    return AbsoluteLogCompression(config.gain, config.compression)


# ---------------------------------------------------------------------------
# Slicing and downmix
# ---------------------------------------------------------------------------


def samples_per_slice(sample_rate: int, time_slice_seconds: float) -> int:
    """floor(sample_rate * time_slice_seconds)."""
    return int(math.floor(sample_rate * time_slice_seconds))


def count_slices(audio: AudioChannelSet, time_slice_seconds: float) -> int:
    """Number of non-empty slices the analyzer will produce.

    ceil(duration / time_slice), capped where a trailing slice would hold no
    samples (a decoder-reported duration longer than the buffer).
    """
    nominal = max(0, math.ceil(audio.duration / time_slice_seconds - _SLICE_COUNT_EPS))
    sps = samples_per_slice(audio.sample_rate, time_slice_seconds)
    if sps <= 0:
        return 0
    available = math.ceil(audio.total_samples / sps)
    return min(nominal, available)


def iter_slices(audio: AudioChannelSet, time_slice_seconds: float) -> Iterator[TimeSlice]:
    """Yield consecutive TimeSlices; stops at the first empty slice.

    Raises:
        ValueError: The slice is shorter than one sample at this sample rate.
    """
    sps = samples_per_slice(audio.sample_rate, time_slice_seconds)
    if sps <= 0:
        raise ValueError(
            f"time slice {time_slice_seconds}s holds no samples at {audio.sample_rate} Hz"
        )
    num_slices = math.ceil(audio.duration / time_slice_seconds - _SLICE_COUNT_EPS)
    total = audio.total_samples

    for index in range(num_slices):
        start = index * sps
        end = min(start + sps, total)
        if end <= start:
            break
        yield TimeSlice(
            index=index,
            start_sample=start,
            end_sample=end,
            channels=tuple(c[start:end] for c in audio.channels),
        )


def downmix(channels: Sequence[np.ndarray]) -> np.ndarray:
    """Sample-wise mean across channels; a single channel passes through."""
    if len(channels) == 1:
        return channels[0]
    return np.mean(np.stack(channels), axis=0)


# ---------------------------------------------------------------------------
# Per-slice analysis
# ---------------------------------------------------------------------------


def analyze_slice(
    time_slice: TimeSlice,
    fft_size: int,
    post_processor: SpectrumPostProcessor,
) -> np.ndarray:
    """Compute one spectrogram frame.

    Returns:
        Read-only float32 array of fft_size // 2 non-negative intensities.

    Raises:
        InvalidInputSize: fft_size is not a power of two.
        SliceAnalysisFailure: Anything else went wrong for this slice.
    """
    try:
        mono = downmix(time_slice.channels)
        buffer = np.zeros(fft_size, dtype=np.float64)
        copy_length = min(len(mono), fft_size)
        buffer[:copy_length] = mono[:copy_length]

        magnitudes = compute_magnitude_spectrum(apply_hann_window(buffer))
        intensities = np.asarray(post_processor(magnitudes), dtype=np.float64)
    except InvalidInputSize:
        raise
    except Exception as exc:
        raise SliceAnalysisFailure(time_slice.index, str(exc)) from exc

    if intensities.shape != (fft_size // 2,) or not np.all(np.isfinite(intensities)):
        raise SliceAnalysisFailure(time_slice.index, "post-processor produced invalid output")
    return freeze(np.maximum(intensities, 0.0).astype(np.float32))


def _percentage(processed: int, total: int) -> int:
    # Round half-up
    return int(math.floor(processed / total * 100 + 0.5))


async def analyze(
    audio: AudioChannelSet,
    config: AnalysisConfig = DEFAULT_CONFIG,
    *,
    post_processor: SpectrumPostProcessor | None = None,
    on_progress: ProgressCallback | None = None,
) -> SpectrogramGrid:
    """Analyse ``audio`` into a SpectrogramGrid.

    Args:
        audio: Decoded channels. Only read.
        config: Slice length, FFT size and post-processing settings.
        post_processor: Custom strategy. Overrides ``config.normalization``.
        on_progress: Called with a ProgressEvent about 20 times per run,
            always including the final slice.

    Returns:
        Immutable grid with one frame per non-empty slice.

    Raises:
        InvalidInputSize: config.fft_size is not a power of two.
        ValueError: The slice length holds no samples at this sample rate.
    """
    processor = post_processor or make_post_processor(config)
    total_slices = count_slices(audio, config.time_slice_seconds)
    progress_interval = max(1, total_slices // config.progress_updates)
    zero_frame = freeze(np.zeros(config.fft_size // 2, dtype=np.float32))

    logger.info(
        "Analyzing %.2fs of %d-channel audio: %d slices of %.0f ms, fft_size=%d, %r",
        audio.duration,
        audio.channel_count,
        total_slices,
        config.time_slice_seconds * 1000,
        config.fft_size,
        processor,
    )

    frames: list[np.ndarray] = []
    for time_slice in iter_slices(audio, config.time_slice_seconds):
        index = time_slice.index
        if index >= total_slices:
            break

        try:
            frame = analyze_slice(time_slice, config.fft_size, processor)
        except SliceAnalysisFailure as exc:
            logger.warning("%s; substituting a silent frame", exc)
            record_slice_failure()
            frame = zero_frame
        frames.append(frame)

        if on_progress is not None and (
            index % progress_interval == 0 or index == total_slices - 1
        ):
            processed = index + 1
            on_progress(
                ProgressEvent(
                    processed_slices=processed,
                    total_slices=total_slices,
                    percentage_complete=_percentage(processed, total_slices),
                    frames=tuple(frames),
                )
            )

        if index % config.yield_every == 0:
            await asyncio.sleep(0)

    record_slices_processed(len(frames))
    logger.info("Analysis finished: %d frames", len(frames))

    return SpectrogramGrid(
        frames=tuple(frames),
        sample_rate=audio.sample_rate,
        fft_size=config.fft_size,
        time_slice_seconds=config.time_slice_seconds,
        duration=audio.duration,
    )
