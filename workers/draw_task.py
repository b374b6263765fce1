"""
workers/draw_task.py — Background renderer that owns a drawable surface.

The draw task is stateful: it adopts one DrawSurface at setup and keeps it
for every later draw. Only the task's thread touches the surface after the
transfer. Commands arrive on a thread-safe inbox; every SurfaceTransfer and
DrawRequest produces exactly one reply on the host loop, tagged with the
command's sequence number.

Requests are not queued on the host side. The orchestrator serialises
request/reply pairs; sending a second draw before the first reply is the
caller's bug.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from dataclasses import replace

from core.spectrogram.errors import DrawSurfaceUnavailable, TaskSetupFailure
from core.spectrogram.render import render_spectrogram
from core.spectrogram.surface import DrawSurface
from infrastructure.metrics import LatencyTimer, record_draw
from workers.messages import (
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


class DrawTask:
    """Stateful draw worker.

    Args:
        host_loop: Loop that receives replies.
        replies: Host-side queue the replies are put on.
    """

    def __init__(
        self,
        *,
        host_loop: asyncio.AbstractEventLoop,
        replies: asyncio.Queue,
        name: str = "spectrogram-draw",
    ) -> None:
        self._host_loop = host_loop
        self._replies = replies
        self._inbox: queue.Queue[DrawCommand] = queue.Queue()
        self._surface: DrawSurface | None = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread.

        Raises:
            TaskSetupFailure: The thread could not be started.
        """
        try:
            self._thread.start()
        except RuntimeError as exc:
            raise TaskSetupFailure("draw", str(exc)) from exc

    def send(self, command: DrawCommand) -> None:
        self._inbox.put(command)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _run(self) -> None:
        seq = 0
        try:
            while True:
                command = self._inbox.get()
                if isinstance(command, StopDrawing):
                    logger.info("Draw task stopped")
                    return
                seq = getattr(command, "seq", 0)
                self._reply(replace(self._handle(command), seq=seq))
        except Exception as exc:
            logger.exception("Draw task crashed")
            self._reply(DrawError(message=f"Draw task crashed: {exc}", seq=seq))

    def _handle(self, command: DrawCommand) -> DrawReply:
        try:
            if isinstance(command, SurfaceTransfer):
                return self._adopt(command.surface)
            if isinstance(command, DrawRequest):
                return self._draw(command)
            return DrawError(message=f"Unknown draw command {type(command).__name__}")
        except DrawSurfaceUnavailable as exc:
            logger.warning("Draw surface unavailable: %s", exc)
            if isinstance(command, DrawRequest):
                record_draw(status="error")
            return DrawError(message=str(exc), surface_unavailable=True)
        except Exception as exc:
            logger.warning("Draw command %s failed: %s", type(command).__name__, exc)
            if isinstance(command, DrawRequest):
                record_draw(status="error")
            return DrawError(message=str(exc) or type(exc).__name__)

    def _adopt(self, surface: DrawSurface) -> SurfaceReady:
        if not isinstance(surface, DrawSurface):
            raise DrawSurfaceUnavailable(
                f"Expected a DrawSurface, got {type(surface).__name__}"
            )
        width, height = surface.size  # raises if the handle was invalidated
        self._surface = surface
        logger.info("Draw task owns a %dx%d surface", width, height)
        return SurfaceReady(width=width, height=height)

    def _draw(self, request: DrawRequest) -> DrawComplete:
        if self._surface is None:
            raise DrawSurfaceUnavailable(
                "No surface available. Transfer a surface before drawing."
            )
        config = request.render_config()
        with LatencyTimer() as timer:
            render_spectrogram(self._surface, request.grid, config)
        record_draw(status="complete", latency_seconds=timer.elapsed)
        logger.debug("Drew %d columns in %.3fs", len(request.grid), timer.elapsed)
        return DrawComplete(frames_drawn=len(request.grid))

    def _reply(self, reply: DrawReply) -> None:
        try:
            self._host_loop.call_soon_threadsafe(self._replies.put_nowait, reply)
        except RuntimeError:
            logger.debug("Host loop closed; dropping %s", type(reply).__name__)
