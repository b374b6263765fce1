#!/usr/bin/env python
"""Render an audio file's spectrogram to a PNG.

Usage
-----
    # Default: 50 ms columns, 4096-point FFT, 1200x300 image
    python scripts/render_spectrogram.py track.wav out.png

    # Finer columns, larger image at 2x device pixel ratio
    python scripts/render_spectrogram.py track.wav out.png \\
        --time-slice 0.025 --fft-size 8192 --width 1600 --height 400 --dpr 2

    # Per-band normalization, playhead at 12.5 s, dump Prometheus metrics
    python scripts/render_spectrogram.py track.wav out.png \\
        --normalization band_normalized --playhead 12.5 --metrics

Settings not given on the command line come from SPECTROGRAM_* environment
variables (a .env file is honoured), then from the built-in defaults.

Exit codes
----------
    0  — PNG written
    1  — input could not be loaded
    2  — analysis or drawing failed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from core.config import AnalysisConfig, NormalizationMode  # noqa: E402
from core.spectrogram.errors import SpectrogramError  # noqa: E402
from core.spectrogram.surface import DrawSurface, png_presenter  # noqa: E402
from core.spectrogram.types import ProgressEvent, RenderConfig  # noqa: E402
from infrastructure.metrics import get_metrics_response  # noqa: E402
from ingestion.audio_loader import load_audio_channels  # noqa: E402
from workers.orchestrator import SpectrogramOrchestrator  # noqa: E402

logger = logging.getLogger("render_spectrogram")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Render an audio spectrogram to PNG")
    p.add_argument("input", type=Path, help="Audio file (wav, mp3, flac, ...)")
    p.add_argument("output", type=Path, help="PNG file to write")
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Only analyse the first SECONDS of the file",
    )
    p.add_argument("--time-slice", type=float, default=None, help="Column length in seconds")
    p.add_argument("--fft-size", type=int, default=None, help="FFT length (power of two)")
    p.add_argument(
        "--normalization",
        choices=[m.value for m in NormalizationMode],
        default=None,
        help="Magnitude post-processing strategy",
    )
    p.add_argument("--width", type=int, default=1200, help="Logical width (default: 1200)")
    p.add_argument("--height", type=int, default=300, help="Logical height (default: 300)")
    p.add_argument("--dpr", type=float, default=1.0, help="Device pixel ratio (default: 1.0)")
    p.add_argument(
        "--playhead",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Draw a playhead at this time",
    )
    p.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics after rendering",
    )
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Environment config with command-line overrides applied."""
    config = AnalysisConfig.from_env()
    overrides: dict[str, object] = {}
    if args.time_slice is not None:
        overrides["time_slice_seconds"] = args.time_slice
    if args.fft_size is not None:
        overrides["fft_size"] = args.fft_size
    if args.normalization is not None:
        overrides["normalization"] = NormalizationMode(args.normalization)
    return replace(config, **overrides) if overrides else config


def _log_progress(event: ProgressEvent) -> None:
    logger.info(
        "Analysing... %3d%% (%d/%d slices)",
        event.percentage_complete,
        event.processed_slices,
        event.total_slices,
    )


async def run(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
        audio = load_audio_channels(args.input, duration=args.duration)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        logger.error("%s", exc)
        return 1

    render_config = RenderConfig(
        pixel_width=args.width,
        pixel_height=args.height,
        duration=audio.duration,
        device_pixel_ratio=args.dpr,
        current_time=args.playhead,
    )

    try:
        async with SpectrogramOrchestrator(config) as orchestrator:
            grid = await orchestrator.analyze(audio, on_progress=_log_progress)
            await orchestrator.attach_surface(DrawSurface(presenter=png_presenter(args.output)))
            done = await orchestrator.draw(grid, render_config)
    except (SpectrogramError, ValueError) as exc:
        logger.error("Rendering failed: %s", exc)
        return 2

    logger.info("Wrote %s (%d columns)", args.output, done.frames_drawn)
    if args.metrics:
        body, _ = get_metrics_response()
        print(body.decode())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
