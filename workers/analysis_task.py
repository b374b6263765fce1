"""
workers/analysis_task.py — Background spectrogram analysis.

Each AnalysisTask is a dedicated thread running its own asyncio loop, so the
analyzer's zero-delay yields suspend to a scheduler that is not the host's,
and the host loop never executes the FFT. Events travel back to the host
loop with ``call_soon_threadsafe`` and are read from an asyncio.Queue by an
AnalysisHandle.

Lifecycle::

    host                                 analysis thread
    ────                                 ───────────────
    AnalysisTask.start() ─────────────→  analyze(...)
    await handle.result()   ←──────────  AnalysisProgress (×~20, slice order)
                            ←──────────  AnalysisResult | AnalysisError
    handle.cancel()         ─────────→   task cancelled at next yield point;
                                         undelivered events are discarded

Every fault in the thread becomes an AnalysisError event; the thread never
dies silently.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from dataclasses import replace

from core.config import DEFAULT_CONFIG, AnalysisConfig
from core.spectrogram.analyzer import analyze
from core.spectrogram.errors import AnalysisCancelled, AnalysisFailed, TaskSetupFailure
from core.spectrogram.types import ProgressEvent, SpectrogramGrid
from infrastructure.metrics import LatencyTimer, record_analysis
from workers.messages import (
    AnalysisError,
    AnalysisEvent,
    AnalysisProgress,
    AnalysisRequest,
    AnalysisResult,
)

logger = logging.getLogger(__name__)

_CANCELLED = object()


class AnalysisTask:
    """Stateless analysis worker: one request, one thread, one terminal event.

    Args:
        request: Copied channel buffers and slicing parameters.
        config: FFT size and post-processing settings. The request's
            time slice overrides ``config.time_slice_seconds``.
        host_loop: Loop that receives events.
        outbox: Host-side queue the events are put on.
    """

    def __init__(
        self,
        request: AnalysisRequest,
        config: AnalysisConfig,
        *,
        host_loop: asyncio.AbstractEventLoop,
        outbox: asyncio.Queue,
        name: str = "spectrogram-analysis",
    ) -> None:
        self._request = request
        self._config = replace(config, time_slice_seconds=request.time_slice)
        self._host_loop = host_loop
        self._outbox = outbox
        self.on_terminal: Callable[[], None] | None = None

        self._terminated = threading.Event()
        self._lock = threading.Lock()
        self._worker_loop: asyncio.AbstractEventLoop | None = None
        self._main_task: asyncio.Task | None = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def start(self) -> None:
        """Start the worker thread.

        Raises:
            TaskSetupFailure: The thread could not be started.
        """
        try:
            self._thread.start()
        except RuntimeError as exc:
            raise TaskSetupFailure("analysis", str(exc)) from exc

    def terminate(self) -> None:
        """Stop the analysis and discard anything it has not yet delivered."""
        self._terminated.set()
        with self._lock:
            if self._worker_loop is not None:
                self._worker_loop.call_soon_threadsafe(self._cancel_main)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        with self._lock:
            self._worker_loop = loop
        try:
            self._main_task = loop.create_task(self._process())
            if self._terminated.is_set():
                self._main_task.cancel()
            loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            logger.info("Analysis terminated by caller")
            record_analysis(status="cancelled")
        except Exception as exc:
            logger.exception("Analysis task crashed")
            self._post(AnalysisError(message=f"Analysis task crashed: {exc}"))
        finally:
            with self._lock:
                self._worker_loop = None
            loop.close()

    def _cancel_main(self) -> None:
        if self._main_task is not None:
            self._main_task.cancel()

    async def _process(self) -> None:
        audio = self._request.to_audio()
        try:
            with LatencyTimer() as timer:
                grid = await analyze(audio, self._config, on_progress=self._on_progress)
        except Exception as exc:
            logger.warning("Analysis failed: %s", exc)
            record_analysis(status="error")
            self._post(AnalysisError(message=str(exc) or type(exc).__name__))
            return

        record_analysis(status="success", latency_seconds=timer.elapsed)
        self._post(AnalysisResult(grid=grid))

    def _on_progress(self, event: ProgressEvent) -> None:
        logger.debug(
            "Analysis progress %d%% (%d/%d slices)",
            event.percentage_complete,
            event.processed_slices,
            event.total_slices,
        )
        self._post(AnalysisProgress(event=event))

    def _post(self, event: AnalysisEvent) -> None:
        if self._terminated.is_set():
            return
        try:
            self._host_loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            logger.debug("Host loop closed; dropping %s", type(event).__name__)

    def _deliver(self, event: AnalysisEvent) -> None:
        # Runs on the host loop. Termination may have happened after posting.
        if self._terminated.is_set():
            return
        self._outbox.put_nowait(event)
        if isinstance(event, (AnalysisResult, AnalysisError)) and self.on_terminal is not None:
            self.on_terminal()


class AnalysisHandle:
    """Host-side view of one running analysis.

    Iterate it for events, or ``await result()`` for the grid. Both consume
    the same event stream; progress is also tracked in ``latest_progress``.
    """

    def __init__(self, task: AnalysisTask, events: asyncio.Queue) -> None:
        self._task = task
        self._events = events
        self._terminal: AnalysisResult | AnalysisError | None = None
        self._cancelled = False
        self.latest_progress: ProgressEvent | None = None
        self._done_callbacks: list[Callable[[AnalysisHandle], None]] = []
        self._finished = False
        task.on_terminal = self._finish

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._cancelled or self._terminal is not None

    def cancel(self) -> None:
        """Terminate the analysis. Events not yet received are discarded."""
        if self.done:
            return
        self._cancelled = True
        self._task.terminate()
        while not self._events.empty():
            self._events.get_nowait()
        self._events.put_nowait(_CANCELLED)
        self._finish()

    def add_done_callback(self, callback: Callable[[AnalysisHandle], None]) -> None:
        """Call ``callback(handle)`` on the host loop once the task has finished.

        Fires when the terminal event arrives (before it is consumed) or on
        cancel(). A handle that has already finished calls it immediately.
        """
        if self._finished:
            callback(self)
        else:
            self._done_callbacks.append(callback)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        callbacks, self._done_callbacks = self._done_callbacks, []
        for callback in callbacks:
            callback(self)

    async def __aiter__(self) -> AsyncIterator[AnalysisEvent]:
        while not self.done:
            item = await self._events.get()
            if item is _CANCELLED:
                return
            if isinstance(item, AnalysisProgress):
                self.latest_progress = item.event
            else:
                self._terminal = item
            yield item

    async def result(self) -> SpectrogramGrid:
        """Wait for the terminal event.

        Raises:
            AnalysisFailed: The task reported an error.
            AnalysisCancelled: The analysis was cancelled.
        """
        async for _ in self:
            pass
        if isinstance(self._terminal, AnalysisResult):
            return self._terminal.grid
        if isinstance(self._terminal, AnalysisError):
            raise AnalysisFailed(self._terminal.message)
        raise AnalysisCancelled("Analysis was cancelled before it finished")


def start_analysis_task(
    request: AnalysisRequest,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> AnalysisHandle:
    """Launch an AnalysisTask bound to the running loop.

    Raises:
        TaskSetupFailure: No running event loop, or the thread failed to start.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError as exc:
        raise TaskSetupFailure("analysis", "no running event loop") from exc

    events: asyncio.Queue = asyncio.Queue()
    task = AnalysisTask(request, config, host_loop=loop, outbox=events)
    handle = AnalysisHandle(task, events)
    task.start()
    return handle
