"""Isolated trace execution: one worker process per run, at most one live.

A TraceSession is owned by its caller (no module-level worker slot). Each
start() terminates whatever run the session still has in flight and spawns
a fresh process running trace.iter_trace(); the worker forwards every event
over a multiprocessing queue. Cancellation is coarse: the process is
terminated, there is no cooperative mid-contour stop.

Message protocol (worker → parent), plain tuples so they pickle cheaply:
    ("progress", percent, message)
    ("result", path_data, [ring arrays], width, height)
    ("error", summary, traceback_text)

Failure handling:
    - An exception inside the worker arrives as ("error", ...)
    - A worker that dies without a terminal message (crash, kill, failed
      start) is detected by polling is_alive()
    Both surface as one FailureEvent carrying a TraceExecutionError; there
    is no automatic retry. An empty trace is a ResultEvent, never a failure.

Usage:
    session = TraceSession()
    session.start(buffer, params)
    for event in session.events():
        if isinstance(event, ProgressEvent):
            print(f"{event.percent:5.1f}% {event.message}")
    # or simply: result = session.result()
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import queue
import traceback
from typing import Any, Iterator, Optional

from ..utils.logging_config import setup_logging
from ..utils.validators import VectorParams
from .preprocess import PixelBuffer
from .trace import (
    FailureEvent,
    ProgressEvent,
    ResultEvent,
    TraceEvent,
    VectorResult,
    iter_trace,
)

logger = logging.getLogger(__name__)


class TraceExecutionError(RuntimeError):
    """The worker failed to start, raised, or exited without a result.

    Attributes
    ----------
    exitcode : int or None
        Worker process exit code, when known
    remote_traceback : str
        Traceback text from inside the worker, empty if it crashed silently
    """

    def __init__(self, message: str, exitcode: Optional[int] = None, remote_traceback: str = "") -> None:
        super().__init__(message)
        self.exitcode = exitcode
        self.remote_traceback = remote_traceback


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------


def _run_worker(
    out_queue: Any,
    buffer: PixelBuffer,
    params: VectorParams,
    log_queue: Optional[Any] = None,
) -> None:
    """Process entry point; must stay importable at module level."""
    if log_queue is not None:
        setup_logging(to_stderr=False, capture_warnings=False, queue=log_queue)
    try:
        for event in iter_trace(buffer, params):
            if isinstance(event, ProgressEvent):
                out_queue.put(("progress", event.percent, event.message))
            elif isinstance(event, ResultEvent):
                r = event.result
                out_queue.put(("result", r.path_data, list(r.polylines), r.width, r.height))
    except Exception as e:
        out_queue.put(("error", f"{type(e).__name__}: {e}", traceback.format_exc()))


# ---------------------------------------------------------------------------
# Parent side
# ---------------------------------------------------------------------------


class TraceSession:
    """Caller-owned handle for at most one live trace run.

    Parameters
    ----------
    start_method : str, optional
        multiprocessing start method ("spawn", "forkserver", "fork");
        None uses the platform default
    log_queue : multiprocessing.Queue, optional
        Forwarded to the worker's logging (see logging_config.setup_logging)

    Attributes
    ----------
    last_exitcode : int or None
        Exit code of the most recently reaped worker (negative signal
        number when it was terminated)
    """

    def __init__(self, start_method: Optional[str] = None, log_queue: Optional[Any] = None) -> None:
        self._ctx = mp.get_context(start_method)
        self._log_queue = log_queue
        self._process: Optional[mp.process.BaseProcess] = None
        self._queue: Optional[Any] = None
        self._finished = True
        self._run_id = 0
        self.last_exitcode: Optional[int] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True while a started run has not delivered its terminal event."""
        return not self._finished

    @property
    def run_id(self) -> int:
        """Number of runs started so far; identifies the live run."""
        return self._run_id

    def start(self, buffer: PixelBuffer, params: VectorParams) -> None:
        """Start a new run, terminating any run still in flight.

        Raises
        ------
        TraceExecutionError
            If the worker process cannot be started.
        """
        if self._process is not None:
            if not self._finished:
                logger.warning(f"Superseding trace run {self._run_id}")
            self._teardown()

        self._run_id += 1
        self._queue = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=_run_worker,
            args=(self._queue, buffer, params, self._log_queue),
            name=f"trace-run-{self._run_id}",
            daemon=True,
        )
        try:
            self._process.start()
        except (OSError, RuntimeError, ValueError) as e:
            self._teardown()
            raise TraceExecutionError(f"Failed to start trace worker: {e}") from e

        self._finished = False
        logger.debug(f"Started trace run {self._run_id} (pid={self._process.pid})")

    def cancel(self) -> None:
        """Terminate the live run, if any. Its events are discarded."""
        if self._process is not None and not self._finished:
            logger.info(f"Cancelled trace run {self._run_id}")
        self._teardown()

    def _teardown(self, grace_s: float = 0.0) -> None:
        proc, q = self._process, self._queue
        self._process = None
        self._queue = None
        self._finished = True
        if proc is not None:
            if grace_s > 0:
                proc.join(timeout=grace_s)
            if proc.is_alive():
                proc.terminate()
            proc.join(timeout=5.0)
            self.last_exitcode = proc.exitcode
            if proc.exitcode is not None:
                proc.close()
        if q is not None:
            q.close()
            q.cancel_join_thread()

    def __enter__(self) -> "TraceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def events(self, poll_s: float = 0.1) -> Iterator[TraceEvent]:
        """Yield the live run's events in emission order.

        Yields ProgressEvents, then exactly one terminal ResultEvent or
        FailureEvent, after which the worker has been reaped.

        Raises
        ------
        RuntimeError
            If no run is live (never started, already consumed, cancelled).
        """
        if self._process is None or self._finished:
            raise RuntimeError("No trace run in progress; call start() first")

        proc, q = self._process, self._queue
        while True:
            try:
                msg = q.get(timeout=poll_s)
            except queue.Empty:
                if proc.is_alive():
                    continue
                # Dead worker: anything it flushed before exiting is readable now
                try:
                    msg = q.get(timeout=poll_s)
                except queue.Empty:
                    exitcode = proc.exitcode
                    self._teardown()
                    err = TraceExecutionError(
                        f"Trace worker exited without a result (exitcode={exitcode})",
                        exitcode=exitcode,
                    )
                    logger.error(str(err))
                    yield FailureEvent(err)
                    return

            kind = msg[0]
            if kind == "progress":
                yield ProgressEvent(msg[1], msg[2])
            elif kind == "result":
                _, path_data, polylines, width, height = msg
                self._teardown(grace_s=1.0)
                yield ResultEvent(VectorResult(path_data, tuple(polylines), width, height))
                return
            elif kind == "error":
                _, summary, tb_text = msg
                exitcode = proc.exitcode
                self._teardown(grace_s=1.0)
                err = TraceExecutionError(
                    f"Trace worker failed: {summary}",
                    exitcode=exitcode,
                    remote_traceback=tb_text,
                )
                logger.error(f"{err}\n{tb_text}")
                yield FailureEvent(err)
                return
            else:
                raise TraceExecutionError(f"Unknown worker message: {kind!r}")

    def result(self, progress=None, poll_s: float = 0.1) -> VectorResult:
        """Drain events() and return the result.

        Parameters
        ----------
        progress : callable, optional
            Called as ``progress(percent, message)`` for each ProgressEvent
        poll_s : float
            Queue poll interval in seconds

        Raises
        ------
        TraceExecutionError
            If the run ends in a FailureEvent.
        """
        for event in self.events(poll_s=poll_s):
            if isinstance(event, ProgressEvent):
                if progress is not None:
                    progress(event.percent, event.message)
            elif isinstance(event, ResultEvent):
                return event.result
            elif isinstance(event, FailureEvent):
                raise event.error
        raise TraceExecutionError("Trace run ended without a terminal event")
