"""
Tests for scripts/render_spectrogram.py — argument handling and an
end-to-end render with the decoder stubbed out.
"""

import asyncio

import numpy as np
import pytest
from PIL import Image

from core.config import NormalizationMode
from core.spectrogram.types import AudioChannelSet
from scripts import render_spectrogram as cli


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SPECTROGRAM_TIME_SLICE", "SPECTROGRAM_FFT_SIZE", "SPECTROGRAM_NORMALIZATION"):
        monkeypatch.delenv(name, raising=False)


def _fake_loader(path, *, duration=None, sr=None) -> AudioChannelSet:
    t = np.arange(4000) / 8000
    return AudioChannelSet.from_buffers([0.5 * np.sin(2 * np.pi * 440 * t)], 8000)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestBuildConfig:
    def test_defaults(self, clean_env, tmp_path):
        args = cli.parse_args([str(tmp_path / "in.wav"), str(tmp_path / "out.png")])
        config = cli.build_config(args)
        assert config.fft_size == 4096
        assert config.time_slice_seconds == 0.05

    def test_flags_override_environment(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("SPECTROGRAM_FFT_SIZE", "1024")
        args = cli.parse_args(
            [
                str(tmp_path / "in.wav"),
                str(tmp_path / "out.png"),
                "--fft-size",
                "512",
                "--normalization",
                "band_normalized",
            ]
        )
        config = cli.build_config(args)
        assert config.fft_size == 512
        assert config.normalization is NormalizationMode.BAND_NORMALIZED

    def test_environment_used_without_flags(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("SPECTROGRAM_TIME_SLICE", "0.025")
        args = cli.parse_args([str(tmp_path / "in.wav"), str(tmp_path / "out.png")])
        assert cli.build_config(args).time_slice_seconds == 0.025


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestRun:
    def test_writes_png(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setattr(cli, "load_audio_channels", _fake_loader)
        output = tmp_path / "out.png"
        args = cli.parse_args(
            [str(tmp_path / "in.wav"), str(output), "--fft-size", "256", "--width", "300", "--height", "120"]
        )

        assert asyncio.run(cli.run(args)) == 0
        with Image.open(output) as image:
            assert image.size == (300, 120)

    def test_missing_input_exits_1(self, clean_env, monkeypatch, tmp_path):
        def missing(path, **_):
            raise FileNotFoundError(f"Audio file not found: {path}")

        monkeypatch.setattr(cli, "load_audio_channels", missing)
        args = cli.parse_args([str(tmp_path / "nope.wav"), str(tmp_path / "out.png")])
        assert asyncio.run(cli.run(args)) == 1

    def test_bad_layout_exits_2(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setattr(cli, "load_audio_channels", _fake_loader)
        args = cli.parse_args(
            [str(tmp_path / "in.wav"), str(tmp_path / "out.png"), "--fft-size", "256", "--width", "40"]
        )
        assert asyncio.run(cli.run(args)) == 2

    def test_metrics_dump(self, clean_env, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "load_audio_channels", _fake_loader)
        args = cli.parse_args(
            [str(tmp_path / "in.wav"), str(tmp_path / "out.png"), "--fft-size", "256", "--metrics"]
        )
        assert asyncio.run(cli.run(args)) == 0
        assert "spectrogram_draw_requests_total" in capsys.readouterr().out
