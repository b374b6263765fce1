"""
ingestion/audio_loader.py — File I/O boundary for audio loading.

This is the ONLY module in the spectrogram pipeline that reads files from
disk. Everything downstream (core/spectrogram/analyzer.py, workers/) takes
an AudioChannelSet of decoded samples, never file paths.

Usage:
    from ingestion.audio_loader import load_audio_channels
    audio = load_audio_channels("/path/to/track.wav", duration=30.0)
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from core.spectrogram.types import AudioChannelSet

logger = logging.getLogger(__name__)

# Supported audio file extensions (must be loadable by librosa / soundfile)
AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".flac", ".aiff", ".aif", ".ogg", ".m4a", ".opus"}
)


def load_audio_channels(
    path: str | Path,
    *,
    duration: float | None = None,
    sr: int | None = None,
) -> AudioChannelSet:
    """Decode an audio file into per-channel float32 buffers.

    Channels are kept separate; the analyzer does its own down-mix.

    Args:
        path: Path to an audio file (mp3, wav, flac, aiff, ogg, m4a, opus).
        duration: Maximum seconds to load. None loads the whole file.
        sr: Target sample rate in Hz. None preserves the native rate.

    Returns:
        AudioChannelSet with one read-only buffer per channel.

    Raises:
        FileNotFoundError: File does not exist at the given path.
        ValueError: File extension is not a supported audio format.
        RuntimeError: librosa/soundfile could not decode the file.
    """
    import librosa  # deferred to allow testing without audio backend

    file_path = Path(path)

    if not file_path.exists():
        raise FileNotFoundError(f"Audio file not found: {file_path}")

    if file_path.suffix.lower() not in AUDIO_EXTENSIONS:
        raise ValueError(
            f"Unsupported audio format {file_path.suffix!r}. "
            f"Supported: {sorted(AUDIO_EXTENSIONS)}"
        )

    try:
        y, loaded_sr = librosa.load(
            file_path,
            sr=sr,
            mono=False,
            duration=duration,
            offset=0.0,
        )
    except Exception as exc:
        raise RuntimeError(
            f"Failed to decode audio file {file_path.name!r}: {exc}"
        ) from exc

    samples = np.atleast_2d(np.asarray(y, dtype=np.float32))
    audio = AudioChannelSet.from_buffers(list(samples), int(loaded_sr))
    logger.info(
        "Loaded %s: %d channel(s), %d Hz, %.2fs",
        file_path.name,
        audio.channel_count,
        audio.sample_rate,
        audio.duration,
    )
    return audio
