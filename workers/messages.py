"""
workers/messages.py — Typed message protocol between the host and background tasks.

Analysis task:
    host → task   AnalysisRequest
    task → host   AnalysisProgress*  (slice order)
                  then exactly one of AnalysisResult | AnalysisError

Draw task:
    host → task   SurfaceTransfer          → SurfaceReady | DrawError
                  DrawRequest (repeated)   → DrawComplete | DrawError
                  StopDrawing              (no reply)

Every draw command carries a sequence number that its reply echoes, so the
host can drop a reply whose request it stopped waiting for.

Every payload is immutable or a private copy: sample buffers are copied into
the request, grids and frames are read-only. Nothing mutable is shared.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from core.spectrogram.surface import DrawSurface
from core.spectrogram.types import (
    DEFAULT_FREQUENCY_LABELS,
    DEFAULT_PADDING,
    AudioChannelSet,
    Padding,
    ProgressEvent,
    RenderConfig,
    SpectrogramGrid,
    freeze,
)

# ---------------------------------------------------------------------------
# Analysis protocol
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisRequest:
    channel_buffers: tuple[np.ndarray, ...]
    sample_rate: int
    duration: float
    time_slice: float
    channel_count: int

    @classmethod
    def from_audio(cls, audio: AudioChannelSet, time_slice: float) -> AnalysisRequest:
        """Build a request holding private copies of the channel buffers."""
        return cls(
            channel_buffers=copy_buffers(audio.channels),
            sample_rate=audio.sample_rate,
            duration=audio.duration,
            time_slice=time_slice,
            channel_count=audio.channel_count,
        )

    def to_audio(self) -> AudioChannelSet:
        return AudioChannelSet(
            channels=self.channel_buffers[: self.channel_count],
            sample_rate=self.sample_rate,
            duration=self.duration,
        )


@dataclass(frozen=True)
class AnalysisProgress:
    event: ProgressEvent


@dataclass(frozen=True)
class AnalysisResult:
    grid: SpectrogramGrid


@dataclass(frozen=True)
class AnalysisError:
    message: str


AnalysisEvent = AnalysisProgress | AnalysisResult | AnalysisError


# ---------------------------------------------------------------------------
# Draw protocol
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SurfaceTransfer:
    surface: DrawSurface
    seq: int = 0


@dataclass(frozen=True)
class SurfaceReady:
    width: int
    height: int
    seq: int = 0


@dataclass(frozen=True)
class DrawRequest:
    grid: SpectrogramGrid
    pixel_width: int
    pixel_height: int
    device_pixel_ratio: float
    duration: float
    padding: Padding = DEFAULT_PADDING
    frequency_labels: tuple[float, ...] = DEFAULT_FREQUENCY_LABELS
    current_time: float | None = None
    seq: int = 0

    @classmethod
    def from_config(
        cls, grid: SpectrogramGrid, config: RenderConfig, seq: int = 0
    ) -> DrawRequest:
        return cls(
            grid=grid,
            pixel_width=config.pixel_width,
            pixel_height=config.pixel_height,
            device_pixel_ratio=config.device_pixel_ratio,
            duration=config.duration,
            padding=config.padding,
            frequency_labels=tuple(config.frequency_labels),
            current_time=config.current_time,
            seq=seq,
        )

    def render_config(self) -> RenderConfig:
        return RenderConfig(
            pixel_width=self.pixel_width,
            pixel_height=self.pixel_height,
            duration=self.duration,
            device_pixel_ratio=self.device_pixel_ratio,
            padding=self.padding,
            frequency_labels=self.frequency_labels,
            current_time=self.current_time,
        )


@dataclass(frozen=True)
class StopDrawing:
    pass


@dataclass(frozen=True)
class DrawComplete:
    frames_drawn: int
    seq: int = 0


@dataclass(frozen=True)
class DrawError:
    message: str
    surface_unavailable: bool = False
    """True when the failure was a missing or unusable surface."""

    seq: int = 0


DrawCommand = SurfaceTransfer | DrawRequest | StopDrawing
DrawReply = SurfaceReady | DrawComplete | DrawError


def copy_buffers(buffers: Sequence[np.ndarray]) -> tuple[np.ndarray, ...]:
    """Private read-only copies of ``buffers`` for a message payload."""
    return tuple(freeze(np.array(b, dtype=np.float32, copy=True)) for b in buffers)
