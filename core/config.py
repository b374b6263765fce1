"""
Configuration dataclasses for the spectrogram analyzer.

These immutable config objects decouple parameter passing from function signatures,
making it easier to define standard configurations and reuse them across runs.
"""

import os
from dataclasses import dataclass
from enum import Enum

from core.spectrogram.errors import InvalidInputSize
from core.spectrogram.fft import is_power_of_two


class NormalizationMode(Enum):
    """How raw FFT magnitudes are turned into displayable intensities."""

    ABSOLUTE = "absolute"
    """Uniform gain + log compression. Intensities comparable across frames."""

    BAND_NORMALIZED = "band_normalized"
    """Each quarter of the bins scaled to its own peak before compression."""


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for spectrogram analysis.

    Immutable configuration object that can be reused across multiple
    analyze() calls.

    Attributes:
        time_slice_seconds: Length of each analysed slice. Defaults to 0.05 s,
            one spectrogram column per 50 ms.
        fft_size: FFT length in samples. Must be a power of two. Defaults to
            4096, which gives ~10.8 Hz bins at 44.1 kHz for usable low-end detail.
        gain: Uniform gain applied to magnitudes before compression.
        compression: k in log10(1 + magnitude * k).
        normalization: Post-processing strategy. ABSOLUTE keeps colour
            intensity comparable between frames.
        progress_updates: Approximate number of progress events per run.
        yield_every: Slices between cooperative yields to the event loop.

    Example:
        >>> config = AnalysisConfig(time_slice_seconds=0.025, fft_size=8192)
        >>> grid = await analyze(audio, config)
    """

    time_slice_seconds: float = 0.05
    fft_size: int = 4096
    gain: float = 2.0
    compression: float = 25.0
    normalization: NormalizationMode = NormalizationMode.ABSOLUTE
    progress_updates: int = 20
    yield_every: int = 50

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.time_slice_seconds <= 0:
            raise ValueError(
                f"time_slice_seconds must be positive, got {self.time_slice_seconds}"
            )
        if not is_power_of_two(self.fft_size) or self.fft_size < 2:
            raise InvalidInputSize(self.fft_size)
        if self.gain <= 0:
            raise ValueError(f"gain must be positive, got {self.gain}")
        if self.compression <= 0:
            raise ValueError(f"compression must be positive, got {self.compression}")
        if self.progress_updates <= 0:
            raise ValueError(f"progress_updates must be positive, got {self.progress_updates}")
        if self.yield_every <= 0:
            raise ValueError(f"yield_every must be positive, got {self.yield_every}")

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Build a config from SPECTROGRAM_* environment variables.

        Unset variables fall back to the defaults above.

        Raises:
            ValueError: A variable is set to an unparseable or invalid value.
        """
        defaults = cls()
        mode = os.getenv("SPECTROGRAM_NORMALIZATION", defaults.normalization.value)
        try:
            normalization = NormalizationMode(mode.lower().strip())
        except ValueError:
            raise ValueError(
                f"Unknown SPECTROGRAM_NORMALIZATION {mode!r}, "
                f"valid options: {sorted(m.value for m in NormalizationMode)}"
            ) from None
        return cls(
            time_slice_seconds=float(
                os.getenv("SPECTROGRAM_TIME_SLICE", str(defaults.time_slice_seconds))
            ),
            fft_size=int(os.getenv("SPECTROGRAM_FFT_SIZE", str(defaults.fft_size))),
            normalization=normalization,
        )


# Pre-defined configurations for common use cases

DEFAULT_CONFIG = AnalysisConfig()
"""Default configuration: 50 ms slices, 4096-point FFT, absolute log intensities."""

HIGH_RESOLUTION_CONFIG = AnalysisConfig(time_slice_seconds=0.025, fft_size=8192)
"""Finer time columns and narrower bins, at roughly four times the cost."""

BAND_NORMALIZED_CONFIG = AnalysisConfig(normalization=NormalizationMode.BAND_NORMALIZED)
"""Per-band peak normalization; brings out quiet high bands at the cost of
cross-frame comparability."""
