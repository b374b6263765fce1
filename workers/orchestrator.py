"""
workers/orchestrator.py — Thin async front over the analysis and draw tasks.

The host (an asyncio application, a CLI, a UI bridge) only sends commands
and awaits events; it never runs the FFT or pixel loops itself.

Usage::

    async with SpectrogramOrchestrator() as orchestrator:
        grid = await orchestrator.analyze(audio, on_progress=show_progress)
        await orchestrator.attach_surface(DrawSurface(presenter=png_presenter("out.png")))
        await orchestrator.draw(grid, RenderConfig(pixel_width=1200, pixel_height=300,
                                                   duration=audio.duration))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace

from core.config import DEFAULT_CONFIG, AnalysisConfig
from core.spectrogram.errors import DrawFailed, DrawSurfaceUnavailable, TaskSetupFailure
from core.spectrogram.surface import DrawSurface
from core.spectrogram.types import AudioChannelSet, ProgressEvent, RenderConfig, SpectrogramGrid
from workers.analysis_task import AnalysisHandle, start_analysis_task
from workers.draw_task import DrawTask
from workers.messages import (
    AnalysisProgress,
    AnalysisRequest,
    DrawCommand,
    DrawComplete,
    DrawError,
    DrawReply,
    DrawRequest,
    StopDrawing,
    SurfaceReady,
    SurfaceTransfer,
)

logger = logging.getLogger(__name__)

_STOP_TIMEOUT_SECONDS = 5.0


class SpectrogramOrchestrator:
    """Runs analyses and draws on background tasks.

    Args:
        config: Analysis settings used for every request.
    """

    def __init__(self, config: AnalysisConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self._draw_task: DrawTask | None = None
        self._draw_replies: asyncio.Queue | None = None
        self._draw_lock = asyncio.Lock()
        self._draw_seq = 0
        self._analyses: set[AnalysisHandle] = set()

    async def __aenter__(self) -> SpectrogramOrchestrator:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def start_analysis(
        self,
        audio: AudioChannelSet,
        config: AnalysisConfig | None = None,
    ) -> AnalysisHandle:
        """Launch a background analysis and return its handle immediately.

        ``config`` defaults to the orchestrator's own.

        Raises:
            TaskSetupFailure: Called outside a running loop, or the task
                thread could not be started.
        """
        config = config or self.config
        request = AnalysisRequest.from_audio(audio, config.time_slice_seconds)
        handle = start_analysis_task(request, config)
        self._analyses.add(handle)
        handle.add_done_callback(self._analyses.discard)
        logger.info(
            "Started analysis of %.2fs, %d channel(s) at %d Hz",
            audio.duration,
            audio.channel_count,
            audio.sample_rate,
        )
        return handle

    async def analyze(
        self,
        audio: AudioChannelSet,
        config: AnalysisConfig | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> SpectrogramGrid:
        """Analyse ``audio`` in the background and return the grid.

        Raises:
            AnalysisFailed: The task reported an error.
            AnalysisCancelled: The analysis was cancelled (e.g. by close()).
        """
        handle = self.start_analysis(audio, config)
        try:
            async for event in handle:
                if isinstance(event, AnalysisProgress) and on_progress is not None:
                    on_progress(event.event)
            return await handle.result()
        except BaseException:
            # Covers task cancellation and a raising on_progress alike.
            handle.cancel()
            raise

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _ensure_draw_task(self) -> DrawTask:
        if self._draw_task is not None and not self._draw_task.alive:
            # The replacement starts without a surface; callers must attach again.
            logger.warning("Draw task is no longer running; starting a new one")
            self._draw_task = None
        if self._draw_task is None:
            self._draw_replies = asyncio.Queue()
            task = DrawTask(host_loop=asyncio.get_running_loop(), replies=self._draw_replies)
            task.start()
            self._draw_task = task
        return self._draw_task

    async def _exchange(self, command: DrawCommand) -> DrawReply:
        task = self._ensure_draw_task()
        assert self._draw_replies is not None
        self._draw_seq += 1
        seq = self._draw_seq
        task.send(replace(command, seq=seq))
        while True:
            reply = await self._draw_replies.get()
            if reply.seq == seq:
                return reply
            # Left behind by an exchange whose caller was cancelled.
            logger.debug("Discarding stale %s #%d", type(reply).__name__, reply.seq)

    async def attach_surface(self, surface: DrawSurface) -> SurfaceReady:
        """Transfer exclusive ownership of ``surface`` to the draw task.

        The caller's handle is invalidated; only the draw task can use the
        surface afterwards.

        Raises:
            TaskSetupFailure: ``surface`` is not a DrawSurface, or the draw
                task could not be started.
            DrawSurfaceUnavailable: ``surface`` was already transferred.
        """
        if not isinstance(surface, DrawSurface):
            raise TaskSetupFailure("draw", f"cannot transfer a {type(surface).__name__}")
        owned = surface.transfer()

        async with self._draw_lock:
            reply = await self._exchange(SurfaceTransfer(surface=owned))

        if isinstance(reply, DrawError):
            raise DrawSurfaceUnavailable(reply.message)
        assert isinstance(reply, SurfaceReady)
        return reply

    async def draw(self, grid: SpectrogramGrid, config: RenderConfig) -> DrawComplete:
        """Render ``grid`` into the owned surface.

        Raises:
            DrawSurfaceUnavailable: No surface was transferred, or it is unusable.
            DrawFailed: Any other error acknowledged by the draw task.
        """
        async with self._draw_lock:
            reply = await self._exchange(DrawRequest.from_config(grid, config))

        if isinstance(reply, DrawError):
            if reply.surface_unavailable:
                raise DrawSurfaceUnavailable(reply.message)
            raise DrawFailed(reply.message)
        assert isinstance(reply, DrawComplete)
        return reply

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel running analyses and stop the draw task."""
        for handle in list(self._analyses):
            handle.cancel()
        self._analyses.clear()

        task = self._draw_task
        self._draw_task = None
        if task is not None:
            task.send(StopDrawing())
            await asyncio.to_thread(task.join, _STOP_TIMEOUT_SECONDS)
