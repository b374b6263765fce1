"""
Tests for ingestion/audio_loader.py — file I/O boundary.

All tests mock librosa.load() via patch.dict("sys.modules", ...) to avoid
requiring real audio files or audio backend.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from core.spectrogram.types import AudioChannelSet
from ingestion.audio_loader import AUDIO_EXTENSIONS, load_audio_channels

# ---------------------------------------------------------------------------
# Mock helper
# ---------------------------------------------------------------------------


def _make_mock_librosa(y: np.ndarray, sr: int = 44100) -> MagicMock:
    """Return a mock librosa module that simulates a successful load."""
    mock = MagicMock()
    mock.load.return_value = (y, sr)
    return mock


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "track.wav"
    path.write_bytes(b"fake wav")
    return path


# ---------------------------------------------------------------------------
# Error conditions
# ---------------------------------------------------------------------------


class TestLoadAudioChannelsErrors:
    def test_raises_file_not_found(self):
        with patch.dict("sys.modules", {"librosa": MagicMock()}):
            with pytest.raises(FileNotFoundError, match="not found"):
                load_audio_channels("/nonexistent/track.mp3")

    def test_raises_value_error_for_unsupported_extension(self, tmp_path):
        doc = tmp_path / "notes.pdf"
        doc.write_bytes(b"not audio")
        with patch.dict("sys.modules", {"librosa": MagicMock()}):
            with pytest.raises(ValueError, match="Unsupported audio format"):
                load_audio_channels(doc)

    def test_raises_runtime_error_on_librosa_failure(self, audio_file):
        mock_librosa = _make_mock_librosa(np.zeros(10, dtype=np.float32))
        mock_librosa.load.side_effect = Exception("decode error")

        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            with pytest.raises(RuntimeError, match="Failed to decode"):
                load_audio_channels(audio_file)


# ---------------------------------------------------------------------------
# Successful loading
# ---------------------------------------------------------------------------


class TestLoadAudioChannelsSuccess:
    def test_mono_file_gives_one_channel(self, audio_file):
        mock_librosa = _make_mock_librosa(np.zeros(44100, dtype=np.float32), sr=44100)
        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            audio = load_audio_channels(audio_file)

        assert isinstance(audio, AudioChannelSet)
        assert audio.channel_count == 1
        assert audio.sample_rate == 44100
        assert audio.duration == pytest.approx(1.0)

    def test_stereo_file_keeps_channels_separate(self, audio_file):
        y = np.stack([np.ones(22050), -np.ones(22050)]).astype(np.float32)
        mock_librosa = _make_mock_librosa(y, sr=22050)
        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            audio = load_audio_channels(audio_file)

        assert audio.channel_count == 2
        assert audio.channels[0][0] == 1.0
        assert audio.channels[1][0] == -1.0

    def test_buffers_are_read_only(self, audio_file):
        mock_librosa = _make_mock_librosa(np.zeros(100, dtype=np.float32), sr=1000)
        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            audio = load_audio_channels(audio_file)
        assert not audio.channels[0].flags.writeable

    def test_passes_parameters_to_librosa(self, audio_file):
        mock_librosa = _make_mock_librosa(np.zeros(100, dtype=np.float32), sr=16000)
        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            load_audio_channels(audio_file, duration=12.5, sr=16000)

        kwargs = mock_librosa.load.call_args.kwargs
        assert kwargs["mono"] is False
        assert kwargs["duration"] == 12.5
        assert kwargs["sr"] == 16000

    def test_uppercase_extension_accepted(self, tmp_path):
        path = tmp_path / "TRACK.WAV"
        path.write_bytes(b"fake")
        mock_librosa = _make_mock_librosa(np.zeros(100, dtype=np.float32), sr=1000)
        with patch.dict("sys.modules", {"librosa": mock_librosa}):
            audio = load_audio_channels(path)
        assert audio.total_samples == 100


class TestAudioExtensions:
    @pytest.mark.parametrize("ext", [".mp3", ".wav", ".flac", ".aiff", ".ogg"])
    def test_common_formats_supported(self, ext):
        assert ext in AUDIO_EXTENSIONS
