"""
core/spectrogram/render.py — Map a spectrogram grid onto pixels.

Axes:
    - Frequency (y): logarithmic between 20 Hz (bottom) and 16 kHz (top).
    - Time (x): linear, one column per slice.

Colour:
    Intensity is scaled against 0.3 (the practical ceiling of the default
    log-compressed values) and interpolated across five stops, deep purple
    → purple → pink → red → orange. Alpha rises linearly from 0.05.

Rendering:
    Plot chrome (background, border, grid, labels) is drawn with Pillow's
    ImageDraw. The spectrum itself is rasterised with numpy: a bin's y span
    does not depend on the column, so each bin is composited across all
    columns at once, in increasing bin order (source-over).
"""

from __future__ import annotations

import logging
import math

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from core.spectrogram.surface import TRANSPARENT, DrawSurface
from core.spectrogram.types import Padding, RenderConfig, SpectrogramGrid

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_FREQUENCY = 20.0
MAX_FREQUENCY = 16000.0
_LOG_MIN = math.log10(MIN_FREQUENCY)
_LOG_MAX = math.log10(MAX_FREQUENCY)

COLOR_SCALE_CEILING = 0.3
VISIBILITY_THRESHOLD = 0.001
ALPHA_FLOOR = 0.05
ALPHA_SLOPE = 3.5
MAX_TIME_DIVISIONS = 10

COLOR_STOPS: tuple[tuple[int, int, int], ...] = (
    (59, 7, 100),  # deep purple #3B0764
    (126, 34, 206),  # purple #7E22CE
    (219, 39, 119),  # pink #DB2777
    (225, 29, 72),  # red #E11D48
    (249, 115, 22),  # orange #F97316
)
_STOP_WIDTH = 1.0 / (len(COLOR_STOPS) - 1)
_STOPS = np.array(COLOR_STOPS, dtype=np.float64)

BACKGROUND_COLOR = (0, 0, 0, 26)
BORDER_COLOR = (128, 128, 128, 77)
GRID_COLOR = (128, 128, 128, 26)
LABEL_COLOR = (128, 128, 128, 204)
PLAYHEAD_COLOR = (239, 68, 68, 255)

_FONT_SIZE = 10
_TICK_LENGTH = 5
_TIME_LABEL_OFFSET = 8
_FREQUENCY_LABEL_OFFSET = 5


# ---------------------------------------------------------------------------
# Axis mapping
# ---------------------------------------------------------------------------


def frequency_to_y(freq, draw_height: float, padding: Padding):
    """Logarithmic frequency → y coordinate. Higher frequency, smaller y.

    Frequencies are clamped to [20, 16000] Hz. Accepts a scalar or an array.
    ``draw_height`` is the full canvas height; padding is subtracted here.
    """
    clamped = np.clip(freq, MIN_FREQUENCY, MAX_FREQUENCY)
    ratio = 1.0 - (np.log10(clamped) - _LOG_MIN) / (_LOG_MAX - _LOG_MIN)
    return padding.top + ratio * (draw_height - padding.top - padding.bottom)


def bin_to_frequency_range(bin_index: int, bin_count: int, nyquist: float) -> tuple[float, float]:
    """Frequency span [start, end) covered by a bin, each end floored at 20 Hz."""
    start = bin_index * nyquist / bin_count
    end = (bin_index + 1) * nyquist / bin_count
    return max(MIN_FREQUENCY, start), max(MIN_FREQUENCY, end)


def column_width(total_slices: int, draw_width: float) -> float:
    return draw_width / total_slices if total_slices > 0 else 0.0


def time_to_x(slice_index: int, total_slices: int, draw_width: float, padding: Padding) -> float:
    """Left edge of the column for ``slice_index``."""
    return padding.left + slice_index * column_width(total_slices, draw_width)


# ---------------------------------------------------------------------------
# Colour mapping
# ---------------------------------------------------------------------------


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def magnitudes_to_rgb(magnitudes) -> np.ndarray:
    """Vectorised magnitude → RGB. Returns uint8 array of shape (..., 3)."""
    m = np.maximum(np.asarray(magnitudes, dtype=np.float64), 0.0)
    normalized = np.minimum(1.0, m / COLOR_SCALE_CEILING)
    segment = np.minimum((normalized / _STOP_WIDTH).astype(np.intp), len(COLOR_STOPS) - 2)
    t = (normalized - segment * _STOP_WIDTH) / _STOP_WIDTH
    low = _STOPS[segment]
    high = _STOPS[segment + 1]
    rgb = low + t[..., None] * (high - low)
    return _round_half_up(rgb).astype(np.uint8)


def magnitude_to_color(magnitude: float) -> tuple[int, int, int]:
    """Map an intensity to an (r, g, b) tuple on the purple → orange ramp.

    0 gives deep purple; anything >= 0.3 gives orange.
    """
    r, g, b = magnitudes_to_rgb(np.array([magnitude]))[0]
    return int(r), int(g), int(b)


def magnitudes_to_alpha(magnitudes) -> np.ndarray:
    """Vectorised clamp(0.05 + m * 3.5, 0.05, 1.0)."""
    m = np.asarray(magnitudes, dtype=np.float64)
    return np.clip(ALPHA_FLOOR + m * ALPHA_SLOPE, ALPHA_FLOOR, 1.0)


def magnitude_to_alpha(magnitude: float) -> float:
    """Opacity for an intensity: clamp(0.05 + m * 3.5, 0.05, 1.0)."""
    return float(magnitudes_to_alpha(magnitude))


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


def format_time_label(seconds: float) -> str:
    """Seconds → 'mm:ss'."""
    minutes = int(seconds // 60)
    remaining = int(math.floor(seconds % 60))
    return f"{minutes:02d}:{remaining:02d}"


def format_frequency_label(freq: float) -> str:
    """500 → '500Hz', 2000 → '2kHz', 2500 → '2.5kHz'."""
    if freq < 1000:
        return f"{freq:g}Hz"
    return f"{freq / 1000:g}kHz"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _load_font(device_pixel_ratio: float) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=_FONT_SIZE * device_pixel_ratio)


def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> tuple[float, float, float, float]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return left, top, right - left, bottom - top


def _draw_chrome(
    surface: DrawSurface,
    grid: SpectrogramGrid,
    config: RenderConfig,
    draw_width: float,
) -> None:
    """Background, border, frequency grid and time axis."""
    dpr = config.device_pixel_ratio
    pad = config.padding
    height = config.pixel_height
    plot_bottom = height - pad.bottom
    size = surface.size

    background = Image.new("RGBA", size, TRANSPARENT)
    bg_draw = ImageDraw.Draw(background)
    plot_box = [pad.left * dpr, pad.top * dpr, (pad.left + draw_width) * dpr, plot_bottom * dpr]
    bg_draw.rectangle(plot_box, fill=BACKGROUND_COLOR)
    bg_draw.rectangle(plot_box, outline=BORDER_COLOR, width=max(1, round(dpr)))
    surface.blit(background)

    chrome = Image.new("RGBA", size, TRANSPARENT)
    draw = ImageDraw.Draw(chrome)
    font = _load_font(dpr)
    line_width = max(1, round(dpr))

    for freq in config.frequency_labels:
        y = float(frequency_to_y(freq, height, pad))
        draw.line(
            [(pad.left * dpr, y * dpr), ((pad.left + draw_width) * dpr, y * dpr)],
            fill=GRID_COLOR,
            width=line_width,
        )
        label = format_frequency_label(freq)
        left, top, _, text_h = _text_size(draw, label, font)
        x = (pad.left + draw_width + _FREQUENCY_LABEL_OFFSET) * dpr
        draw.text((x - left, y * dpr - text_h / 2 - top), label, fill=LABEL_COLOR, font=font)

    if len(grid) > 0:
        divisions = min(MAX_TIME_DIVISIONS, len(grid))
        for i in range(divisions + 1):
            ratio = i / divisions
            x = pad.left + ratio * draw_width
            draw.line(
                [(x * dpr, plot_bottom * dpr), (x * dpr, (plot_bottom + _TICK_LENGTH) * dpr)],
                fill=GRID_COLOR,
                width=line_width,
            )
            label = format_time_label(ratio * config.duration)
            left, top, text_w, _ = _text_size(draw, label, font)
            draw.text(
                (x * dpr - text_w / 2 - left, (plot_bottom + _TIME_LABEL_OFFSET) * dpr - top),
                label,
                fill=LABEL_COLOR,
                font=font,
            )

    surface.blit(chrome)


def _rasterize_spectrum(
    grid: SpectrogramGrid,
    config: RenderConfig,
    size: tuple[int, int],
    draw_width: float,
) -> Image.Image:
    """Composite every visible bin rectangle into a transparent RGBA layer."""
    dpr = config.device_pixel_ratio
    pad = config.padding
    width_px, height_px = size
    total = len(grid)
    col_w = column_width(total, draw_width)

    # Device-pixel columns covered by the plot, and the slice each one shows.
    x_lo = max(0, int(math.floor(pad.left * dpr)))
    x_hi = min(width_px, int(math.ceil((pad.left + draw_width) * dpr)))
    centers = (np.arange(x_lo, x_hi) + 0.5) / dpr
    slice_of_px = np.floor((centers - pad.left) / col_w).astype(np.intp)
    in_plot = (slice_of_px >= 0) & (slice_of_px < total)
    slice_of_px = np.clip(slice_of_px, 0, total - 1)

    # Bin-major copy so each bin's column of intensities is contiguous.
    by_bin = np.ascontiguousarray(grid.as_array().T)  # (bins, slices)

    # Premultiplied accumulation buffer for the plot columns only.
    layer = np.zeros((height_px, x_hi - x_lo, 4), dtype=np.float64)
    bin_count = grid.bin_count
    nyquist = grid.nyquist

    for b in range(bin_count):
        start_freq, end_freq = bin_to_frequency_range(b, bin_count, nyquist)
        # Bins at or above the display ceiling would all collapse onto the top row.
        if start_freq >= MAX_FREQUENCY:
            break
        magnitudes = by_bin[b]
        visible = magnitudes >= VISIBILITY_THRESHOLD
        if not visible.any():
            continue

        y_start = float(frequency_to_y(start_freq, config.pixel_height, pad))
        y_end = float(frequency_to_y(end_freq, config.pixel_height, pad))
        rect_height = max(1.0, y_start - y_end)

        row_0 = max(0, int(round(y_end * dpr)))
        row_1 = min(height_px, max(row_0 + 1, int(round((y_end + rect_height) * dpr))))
        if row_0 >= height_px:
            continue

        alphas = np.where(visible, magnitudes_to_alpha(magnitudes), 0.0)
        colors = magnitudes_to_rgb(magnitudes).astype(np.float64)
        a = np.where(in_plot, alphas[slice_of_px], 0.0)[None, :, None]
        rgb = colors[slice_of_px][None, :, :]
        region = layer[row_0:row_1]
        region[..., :3] = rgb * a + region[..., :3] * (1.0 - a)
        region[..., 3:] = a + region[..., 3:] * (1.0 - a)

    out = np.zeros((height_px, width_px, 4), dtype=np.uint8)
    coverage = layer[..., 3:]
    straight = np.divide(layer[..., :3], coverage, out=np.zeros_like(layer[..., :3]), where=coverage > 0)
    out[:, x_lo:x_hi, :3] = np.clip(_round_half_up(straight), 0, 255).astype(np.uint8)
    out[:, x_lo:x_hi, 3] = np.clip(_round_half_up(coverage[..., 0] * 255), 0, 255).astype(np.uint8)
    return Image.fromarray(out)


def _draw_playhead(surface: DrawSurface, config: RenderConfig, draw_width: float) -> None:
    if config.current_time is None or config.duration <= 0:
        return
    dpr = config.device_pixel_ratio
    pad = config.padding
    ratio = min(1.0, max(0.0, config.current_time / config.duration))
    x = (pad.left + ratio * draw_width) * dpr

    overlay = Image.new("RGBA", surface.size, TRANSPARENT)
    ImageDraw.Draw(overlay).line(
        [(x, pad.top * dpr), (x, (config.pixel_height - pad.bottom) * dpr)],
        fill=PLAYHEAD_COLOR,
        width=max(1, round(2 * dpr)),
    )
    surface.blit(overlay)


def render_spectrogram(surface: DrawSurface, grid: SpectrogramGrid, config: RenderConfig) -> None:
    """Draw ``grid`` into ``surface`` and present it.

    The surface is resized to (width · dpr) × (height · dpr) and cleared
    first. Nothing is returned; pixels reach the outside world only through
    the surface's presenter.

    Raises:
        ValueError: Padding leaves no room for the plot.
        DrawSurfaceUnavailable: The surface handle is no longer owned.
    """
    pad = config.padding
    dpr = config.device_pixel_ratio
    draw_width = config.pixel_width - pad.right
    plot_height = config.pixel_height - pad.top - pad.bottom
    if draw_width <= 0 or plot_height <= 0:
        raise ValueError(
            f"Padding {pad} leaves no plot area in "
            f"{config.pixel_width}x{config.pixel_height}"
        )

    if len(grid) > 0 and grid.nyquist < MAX_FREQUENCY:
        logger.warning(
            "Nyquist %.0f Hz (sample rate %d) is below the %.0f Hz display ceiling; "
            "the top of the frequency axis will stay empty",
            grid.nyquist,
            grid.sample_rate,
            MAX_FREQUENCY,
        )

    surface.resize(
        max(1, int(round(config.pixel_width * dpr))),
        max(1, int(round(config.pixel_height * dpr))),
    )
    _draw_chrome(surface, grid, config, draw_width)

    if len(grid) > 0:
        surface.blit(_rasterize_spectrum(grid, config, surface.size, draw_width))

    _draw_playhead(surface, config, draw_width)
    surface.present()
