"""
core/spectrogram/errors.py — Exception hierarchy for the spectrogram engine.

Taxonomy:
    InvalidInputSize        Non-power-of-two FFT length. Fatal caller error.
    SliceAnalysisFailure    One slice could not be analysed. Recovered by the
                            analyzer (zero frame substituted), never escapes.
    TaskSetupFailure        A background task could not be started or was
                            handed something it cannot own. Fatal.
    DrawSurfaceUnavailable  Draw attempted without a usable surface. Fatal
                            for that draw call only.
    AnalysisFailed          Host-side view of a terminal analysis error event.
    AnalysisCancelled       The analysis was terminated by its caller.
    DrawFailed              Host-side view of any other draw error acknowledgement.
"""

from __future__ import annotations


class SpectrogramError(Exception):
    """Base class for every error raised by the spectrogram engine."""


class InvalidInputSize(SpectrogramError, ValueError):
    """Raised when the FFT kernel receives a length that is not a power of two.

    Args:
        size: The offending signal length.
    """

    def __init__(self, size: int) -> None:
        self.size = size
        super().__init__(f"FFT size must be a power of 2, got {size}")


class SliceAnalysisFailure(SpectrogramError):
    """Raised while analysing a single time slice.

    The analyzer catches this, substitutes an all-zero frame and keeps going,
    so one corrupt slice never aborts a whole analysis.

    Args:
        slice_index: Index of the slice that failed.
        reason: Human-readable cause.
    """

    def __init__(self, slice_index: int, reason: str) -> None:
        self.slice_index = slice_index
        self.reason = reason
        super().__init__(f"Slice {slice_index} failed: {reason}")


class TaskSetupFailure(SpectrogramError):
    """Raised when a background task cannot be set up.

    Args:
        task: Name of the task ("analysis" or "draw").
        reason: Human-readable cause.
    """

    def __init__(self, task: str, reason: str) -> None:
        self.task = task
        self.reason = reason
        super().__init__(f"Could not start {task} task: {reason}")


class DrawSurfaceUnavailable(SpectrogramError):
    """Raised when drawing is attempted without an owned, usable surface."""


class AnalysisFailed(SpectrogramError):
    """Raised on the host when an analysis task reports a terminal error."""


class AnalysisCancelled(SpectrogramError):
    """Raised when awaiting the result of a terminated analysis."""


class DrawFailed(SpectrogramError):
    """Raised on the host when a draw request is acknowledged with an error
    that is not a surface problem (for example padding that leaves no plot)."""
