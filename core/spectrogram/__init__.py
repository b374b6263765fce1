"""
core/spectrogram — Spectrogram analysis and rendering.

Turns decoded audio (per-channel float samples) into a time-ordered grid
of magnitude spectra, and maps that grid onto an owned RGBA surface.
No file I/O here; decoding lives in ingestion/audio_loader.py and the
background tasks that drive this package live in workers/.

Public API:
    Types:      AudioChannelSet, TimeSlice, SpectrogramGrid, ProgressEvent,
                Padding, RenderConfig
    Errors:     SpectrogramError and subclasses (core.spectrogram.errors)
    Kernel:     core.spectrogram.fft
    Analyzer:   core.spectrogram.analyzer.analyze
    Rendering:  core.spectrogram.render.render_spectrogram,
                core.spectrogram.surface.DrawSurface
"""

from core.spectrogram.errors import (
    AnalysisCancelled,
    AnalysisFailed,
    DrawFailed,
    DrawSurfaceUnavailable,
    InvalidInputSize,
    SliceAnalysisFailure,
    SpectrogramError,
    TaskSetupFailure,
)
from core.spectrogram.types import (
    AudioChannelSet,
    Padding,
    ProgressEvent,
    RenderConfig,
    SpectrogramGrid,
    TimeSlice,
)

__all__ = [
    "AudioChannelSet",
    "TimeSlice",
    "SpectrogramGrid",
    "ProgressEvent",
    "Padding",
    "RenderConfig",
    "SpectrogramError",
    "InvalidInputSize",
    "SliceAnalysisFailure",
    "TaskSetupFailure",
    "DrawSurfaceUnavailable",
    "DrawFailed",
    "AnalysisFailed",
    "AnalysisCancelled",
]
