"""
Tests for core/spectrogram/render.py — axis mapping, colour ramp, labels,
and full renders onto a DrawSurface.
"""

import math

import numpy as np
import pytest

from core.spectrogram.errors import DrawSurfaceUnavailable
from core.spectrogram.render import (
    BACKGROUND_COLOR,
    COLOR_STOPS,
    MAX_FREQUENCY,
    MIN_FREQUENCY,
    PLAYHEAD_COLOR,
    bin_to_frequency_range,
    column_width,
    format_frequency_label,
    format_time_label,
    frequency_to_y,
    magnitude_to_alpha,
    magnitude_to_color,
    render_spectrogram,
    time_to_x,
)
from core.spectrogram.surface import DrawSurface
from core.spectrogram.types import Padding, RenderConfig, SpectrogramGrid, freeze

PAD = Padding()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _grid(frames: list[np.ndarray], sample_rate: int = 44100, fft_size: int = 64) -> SpectrogramGrid:
    return SpectrogramGrid(
        frames=tuple(freeze(np.asarray(f, dtype=np.float32)) for f in frames),
        sample_rate=sample_rate,
        fft_size=fft_size,
        time_slice_seconds=0.05,
        duration=0.05 * len(frames),
    )


class _Capture:
    """Presenter that keeps every presented image."""

    def __init__(self):
        self.images = []

    def __call__(self, image):
        self.images.append(image)


# ---------------------------------------------------------------------------
# Frequency axis
# ---------------------------------------------------------------------------


class TestFrequencyToY:
    def test_min_frequency_at_plot_bottom(self):
        assert frequency_to_y(MIN_FREQUENCY, 300, PAD) == pytest.approx(300 - PAD.bottom)

    def test_max_frequency_at_plot_top(self):
        assert frequency_to_y(MAX_FREQUENCY, 300, PAD) == pytest.approx(PAD.top)

    def test_out_of_range_is_clamped(self):
        assert frequency_to_y(5, 300, PAD) == pytest.approx(frequency_to_y(20, 300, PAD))
        assert frequency_to_y(22050, 300, PAD) == pytest.approx(frequency_to_y(16000, 300, PAD))

    def test_monotone_decreasing(self):
        freqs = np.geomspace(20, 16000, 50)
        ys = frequency_to_y(freqs, 300, PAD)
        assert np.all(np.diff(ys) < 0)

    def test_logarithmic_spacing(self):
        """Equal frequency ratios map to equal pixel distances."""
        a = frequency_to_y(100, 300, PAD) - frequency_to_y(200, 300, PAD)
        b = frequency_to_y(1000, 300, PAD) - frequency_to_y(2000, 300, PAD)
        assert a == pytest.approx(b)


class TestBinRanges:
    def test_bins_are_contiguous(self):
        nyquist, bins = 22050.0, 2048
        for b in range(100, 110):
            _, end = bin_to_frequency_range(b, bins, nyquist)
            start, _ = bin_to_frequency_range(b + 1, bins, nyquist)
            assert end == pytest.approx(start)

    def test_dc_bin_floored_at_min_frequency(self):
        start, end = bin_to_frequency_range(0, 2048, 22050.0)
        assert start == MIN_FREQUENCY
        assert end == MIN_FREQUENCY

    def test_range_from_real_sample_rate(self):
        start, end = bin_to_frequency_range(10, 2048, 24000.0)
        assert start == pytest.approx(10 * 24000 / 2048)
        assert end == pytest.approx(11 * 24000 / 2048)


class TestTimeAxis:
    def test_column_width(self):
        assert column_width(20, 1000) == 50.0
        assert column_width(0, 1000) == 0.0

    def test_time_to_x(self):
        assert time_to_x(0, 20, 1000, PAD) == PAD.left
        assert time_to_x(3, 20, 1000, PAD) == PAD.left + 150.0


# ---------------------------------------------------------------------------
# Colour and alpha
# ---------------------------------------------------------------------------


class TestColor:
    def test_zero_is_deep_purple(self):
        assert magnitude_to_color(0.0) == COLOR_STOPS[0]

    def test_ceiling_is_orange(self):
        assert magnitude_to_color(0.3) == COLOR_STOPS[-1]
        assert magnitude_to_color(5.0) == COLOR_STOPS[-1]

    def test_stop_boundaries(self):
        assert magnitude_to_color(0.075) == COLOR_STOPS[1]
        assert magnitude_to_color(0.15) == COLOR_STOPS[2]

    def test_midpoint_between_first_stops(self):
        # Halfway between deep purple (59, 7, 100) and purple (126, 34, 206).
        r, g, b = magnitude_to_color(0.0375)
        assert r in (92, 93)
        assert g in (20, 21)
        assert b == 153

    def test_pink_to_red_interpolates_every_channel(self):
        r, g, b = magnitude_to_color(0.1875)
        assert 219 <= r <= 225
        assert 29 <= g <= 39
        assert 72 <= b <= 119

    def test_negative_treated_as_zero(self):
        assert magnitude_to_color(-1.0) == COLOR_STOPS[0]


class TestAlpha:
    def test_floor(self):
        assert magnitude_to_alpha(0.0) == pytest.approx(0.05)

    def test_linear_ramp(self):
        assert magnitude_to_alpha(0.1) == pytest.approx(0.4)

    def test_clamped_to_one(self):
        assert magnitude_to_alpha(0.5) == 1.0


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class TestLabels:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "00:00"), (5.9, "00:05"), (65, "01:05"), (600, "10:00")],
    )
    def test_time_label(self, seconds, expected):
        assert format_time_label(seconds) == expected

    @pytest.mark.parametrize(
        "freq, expected",
        [(20, "20Hz"), (500, "500Hz"), (1000, "1kHz"), (2500, "2.5kHz"), (16000, "16kHz")],
    )
    def test_frequency_label(self, freq, expected):
        assert format_frequency_label(freq) == expected


# ---------------------------------------------------------------------------
# Full render
# ---------------------------------------------------------------------------


class TestRenderSpectrogram:
    def test_resizes_surface_to_device_pixels(self):
        capture = _Capture()
        surface = DrawSurface(presenter=capture)
        config = RenderConfig(pixel_width=200, pixel_height=120, duration=1.0, device_pixel_ratio=2.0)

        render_spectrogram(surface, _grid([np.zeros(32)] * 4), config)

        assert surface.size == (400, 240)
        assert capture.images[-1].size == (400, 240)

    def test_presents_once_per_render(self):
        capture = _Capture()
        surface = DrawSurface(presenter=capture)
        config = RenderConfig(pixel_width=200, pixel_height=120, duration=1.0)
        grid = _grid([np.zeros(32)] * 4)

        render_spectrogram(surface, grid, config)
        render_spectrogram(surface, grid, config)

        assert len(capture.images) == 2

    def test_loud_bin_paints_its_band(self):
        fft_size = 64
        sr = 44100
        target_bin = 3
        frame = np.zeros(fft_size // 2)
        frame[target_bin] = 0.3
        surface = DrawSurface()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=0.2)

        render_spectrogram(surface, _grid([frame] * 4, sr, fft_size), config)

        nyquist = sr / 2
        start, end = bin_to_frequency_range(target_bin, fft_size // 2, nyquist)
        y = int((frequency_to_y(start, 200, PAD) + frequency_to_y(end, 200, PAD)) / 2)
        x = int(PAD.left + 10)
        r, g, b, a = surface.image.getpixel((x, y))
        assert (r, g, b) == COLOR_STOPS[-1]
        assert a == 255

    def test_quiet_grid_leaves_only_chrome(self):
        surface = DrawSurface()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=0.2)
        render_spectrogram(surface, _grid([np.zeros(32)] * 4), config)

        x, y = int(PAD.left + 50), 100
        assert surface.image.getpixel((x, y)) == BACKGROUND_COLOR

    def test_nothing_drawn_outside_plot_columns(self):
        surface = DrawSurface()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=0.2)
        render_spectrogram(surface, _grid([np.full(32, 0.3)] * 4), config)

        assert surface.image.getpixel((2, 100))[3] == 0

    def test_empty_grid_draws_chrome(self):
        capture = _Capture()
        surface = DrawSurface(presenter=capture)
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=0.0)

        render_spectrogram(surface, _grid([]), config)

        assert len(capture.images) == 1
        assert surface.image.getpixel((int(PAD.left + 50), 100)) == BACKGROUND_COLOR

    def test_playhead(self):
        surface = DrawSurface()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=1.0, current_time=0.5)
        render_spectrogram(surface, _grid([np.zeros(32)] * 4), config)

        draw_width = 200 - PAD.right
        x = int(round(PAD.left + 0.5 * draw_width))
        pixels = [surface.image.getpixel((x + dx, 100)) for dx in (-1, 0, 1)]
        assert PLAYHEAD_COLOR in pixels

    def test_low_sample_rate_warns(self, caplog):
        surface = DrawSurface()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=0.2)
        with caplog.at_level("WARNING", logger="core.spectrogram.render"):
            render_spectrogram(surface, _grid([np.zeros(32)] * 4, sample_rate=8000), config)
        assert "Nyquist" in caplog.text

    def test_padding_without_plot_area(self):
        config = RenderConfig(
            pixel_width=50, pixel_height=200, duration=1.0, padding=Padding(right=60)
        )
        with pytest.raises(ValueError, match="no plot area"):
            render_spectrogram(DrawSurface(), _grid([np.zeros(32)]), config)

    def test_transferred_handle_cannot_render(self):
        surface = DrawSurface()
        surface.transfer()
        config = RenderConfig(pixel_width=200, pixel_height=200, duration=1.0)
        with pytest.raises(DrawSurfaceUnavailable):
            render_spectrogram(surface, _grid([np.zeros(32)]), config)


def test_color_stop_count():
    assert len(COLOR_STOPS) == 5
    assert math.isclose(0.3 / (len(COLOR_STOPS) - 1), 0.075)
