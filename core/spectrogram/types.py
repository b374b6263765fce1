"""
core/spectrogram/types.py — Frozen data types for spectrogram analysis and rendering.

All types are frozen dataclasses — immutable value objects that can be
handed across task boundaries without locks.

Design principles:
    - Sample and magnitude arrays are stored as read-only numpy arrays, so a
      tuple of them is a safe snapshot: nobody can write through it.
    - Invariants are documented; validation happens at creation sites
      (AudioChannelSet.from_buffers, the analyzer, RenderConfig.__post_init__).
    - Bin frequencies are derived from the grid's real sample rate, never
      from an assumed 44.1 kHz.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def freeze(array: np.ndarray) -> np.ndarray:
    """Mark ``array`` read-only in place and return it."""
    array.flags.writeable = False
    return array


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AudioChannelSet:
    """Decoded audio handed to the analyzer.

    Invariants:
        len(channels) >= 1
        all channels have the same length
        sample_rate > 0
        duration >= 0
    """

    channels: tuple[np.ndarray, ...]
    """Per-channel float32 samples in [-1, 1]. Read-only."""

    sample_rate: int
    """Sample rate shared by every channel, in Hz."""

    duration: float
    """Duration in seconds as reported by the decoder."""

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def total_samples(self) -> int:
        return len(self.channels[0]) if self.channels else 0

    @classmethod
    def from_buffers(
        cls,
        buffers: Sequence[Sequence[float] | np.ndarray],
        sample_rate: int,
        duration: float | None = None,
    ) -> AudioChannelSet:
        """Copy caller buffers into a validated, read-only channel set.

        Args:
            buffers: One sample sequence per channel.
            sample_rate: Sample rate in Hz.
            duration: Duration in seconds. Defaults to ``len / sample_rate``.

        Raises:
            ValueError: No channels, mismatched lengths, or bad sample rate.
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        if len(buffers) == 0:
            raise ValueError("At least one channel is required")

        channels = tuple(freeze(np.array(b, dtype=np.float32, copy=True)) for b in buffers)
        lengths = {len(c) for c in channels}
        if len(lengths) != 1:
            raise ValueError(f"All channels must have the same length, got {sorted(lengths)}")
        for c in channels:
            if c.ndim != 1:
                raise ValueError(f"Channel buffers must be 1-D, got shape {c.shape}")

        if duration is None:
            duration = len(channels[0]) / sample_rate
        if duration < 0:
            raise ValueError(f"Duration must be non-negative, got {duration}")

        return cls(channels=channels, sample_rate=int(sample_rate), duration=float(duration))


@dataclass(frozen=True)
class TimeSlice:
    """A fixed-duration window of the input, analysed independently."""

    index: int
    start_sample: int
    end_sample: int
    """Exclusive end offset."""

    channels: tuple[np.ndarray, ...]
    """Per-channel views of [start_sample, end_sample). Never written."""

    @property
    def length(self) -> int:
        return self.end_sample - self.start_sample


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpectrogramGrid:
    """Time-ordered sequence of magnitude spectra, one frame per slice.

    Invariants:
        every frame has length fft_size // 2
        every magnitude >= 0
        frame i describes slice i
    """

    frames: tuple[np.ndarray, ...]
    sample_rate: int
    fft_size: int
    time_slice_seconds: float
    duration: float

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def nyquist(self) -> float:
        """Highest representable frequency, derived from the real sample rate."""
        return self.sample_rate / 2.0

    def bin_frequency(self, bin_index: int) -> float:
        """Nominal frequency of ``bin_index`` in Hz (bin 0 is DC)."""
        return bin_index * self.sample_rate / self.fft_size

    def as_array(self) -> np.ndarray:
        """Return the grid as a (frames, bins) float array (a fresh copy)."""
        if not self.frames:
            return np.zeros((0, self.bin_count), dtype=np.float32)
        return np.stack(self.frames)


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted while an analysis runs."""

    processed_slices: int
    total_slices: int
    percentage_complete: int
    """0–100, rounded half-up."""

    frames: tuple[np.ndarray, ...] = field(default_factory=tuple)
    """Snapshot of every frame produced so far. A new tuple per event."""


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Padding:
    """Space reserved around the plot area, in logical pixels."""

    top: float = 10.0
    right: float = 64.0
    bottom: float = 30.0
    left: float = 16.0


DEFAULT_PADDING = Padding()

DEFAULT_FREQUENCY_LABELS: tuple[float, ...] = (
    20,
    30,
    50,
    100,
    200,
    500,
    1000,
    2000,
    5000,
    10000,
    16000,
)


@dataclass(frozen=True)
class RenderConfig:
    """Everything the render mapper needs besides the grid itself.

    Invariants:
        pixel_width > 0, pixel_height > 0
        device_pixel_ratio > 0
        duration >= 0
    """

    pixel_width: int
    pixel_height: int
    duration: float
    device_pixel_ratio: float = 1.0
    padding: Padding = DEFAULT_PADDING
    frequency_labels: tuple[float, ...] = DEFAULT_FREQUENCY_LABELS
    current_time: float | None = None
    """Playhead position in seconds. None draws no playhead."""

    def __post_init__(self) -> None:
        if self.pixel_width <= 0 or self.pixel_height <= 0:
            raise ValueError(
                f"Render size must be positive, got {self.pixel_width}x{self.pixel_height}"
            )
        if self.device_pixel_ratio <= 0:
            raise ValueError(
                f"device_pixel_ratio must be positive, got {self.device_pixel_ratio}"
            )
        if self.duration < 0:
            raise ValueError(f"duration must be non-negative, got {self.duration}")
