"""Trace orchestration: pixel buffer → VectorResult, with progress events.

Stages:
    1. binary_field.classify()              progress 10  "Building bit-grid..."
    2. contour_tracer.trace()               progress 30  "Calculating contours..."
    3. per polygon, per ring:               progress 40 → 90 every 50 polygons
         simplify.keep()     (area on the raw ring)
         simplify.simplify() (RDP)
         ring kept iff it still has more than 2 vertices
    4. VectorResult assembled               progress 100 "Tracing complete."

Ring order in the result is tracer discovery order; nothing is re-sorted.
A field without any iso-crossing is a successful run with an empty result,
not an error.

The run is exposed three ways:
    iter_trace(buffer, params)            lazy event stream (in-process)
    trace_pixels(buffer, params, cb)      blocking, progress via callback
    worker.TraceSession                   the same stream from a worker process

Arc segments are not produced; VectorResult has no arc field.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from ..utils.validators import VectorParams
from . import binary_field, contour_tracer, simplify
from .preprocess import PixelBuffer

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 50

ProgressCallback = Callable[[float, str], None]


# ---------------------------------------------------------------------------
# Result and events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VectorResult:
    """Immutable outcome of one trace run.

    Attributes
    ----------
    path_data : str
        All rings as ``M x y L x y ... Z`` fragments, pixel units, 2 decimals
    polylines : tuple of np.ndarray
        Kept rings in discovery order, each read-only, shape (N, 2), N > 2
    width, height : int
        Pixel size of the traced field (the rings' coordinate space)
    """
    path_data: str
    polylines: Tuple[np.ndarray, ...]
    width: int
    height: int

    def __post_init__(self) -> None:
        frozen = []
        for ring in self.polylines:
            arr = np.array(ring, dtype=np.float64, copy=True).reshape(-1, 2)
            arr.setflags(write=False)
            frozen.append(arr)
        object.__setattr__(self, 'polylines', tuple(frozen))

    @property
    def node_count(self) -> int:
        """Total vertex count across all polylines."""
        return sum(len(p) for p in self.polylines)

    @property
    def is_empty(self) -> bool:
        return not self.polylines

    @classmethod
    def empty(cls, width: int, height: int) -> 'VectorResult':
        return cls(path_data="", polylines=(), width=width, height=height)


@dataclass(frozen=True)
class ProgressEvent:
    """Progress checkpoint; ``percent`` is non-decreasing within one run."""
    percent: float
    message: str


@dataclass(frozen=True)
class ResultEvent:
    """Terminal event of a successful run."""
    result: VectorResult


@dataclass(frozen=True)
class FailureEvent:
    """Terminal event of a run whose execution context failed."""
    error: Exception = field(compare=False)


TraceEvent = Union[ProgressEvent, ResultEvent, FailureEvent]


# ---------------------------------------------------------------------------
# Path data
# ---------------------------------------------------------------------------


def _fmt(v: float) -> str:
    """Round half up to 2 decimals, drop a trailing ``.0``."""
    r = math.floor(v * 100.0 + 0.5) / 100.0
    if r == int(r):
        return str(int(r))
    return repr(r)


def ring_path(ring: np.ndarray) -> str:
    """Path fragment for one ring: move to the first vertex, line to the rest, close."""
    parts = [f"M{_fmt(ring[0][0])} {_fmt(ring[0][1])}"]
    parts.extend(f"L{_fmt(x)} {_fmt(y)}" for x, y in ring[1:])
    parts.append("Z")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def iter_trace(buffer: PixelBuffer, params: VectorParams) -> Iterator[TraceEvent]:
    """Run the trace pipeline as a lazy event stream.

    Parameters
    ----------
    buffer : PixelBuffer
        Binarized source pixels
    params : VectorParams
        Only noise_threshold and simplify_tolerance are used here

    Yields
    ------
    ProgressEvent
        In non-decreasing percent order, ending with 100
    ResultEvent
        Exactly once, last
    """
    t0 = time.perf_counter()
    width, height = buffer.width, buffer.height
    logger.info(
        f"Tracing {width}x{height} px (noise={params.noise_threshold}, "
        f"simplify={params.simplify_tolerance})"
    )

    yield ProgressEvent(10.0, "Building bit-grid...")
    field_ = binary_field.classify(buffer)

    yield ProgressEvent(30.0, "Calculating contours...")
    polygons = contour_tracer.trace(field_, width, height)

    if not polygons:
        logger.info("No contours found; returning empty result")
        yield ProgressEvent(100.0, "Tracing complete.")
        yield ResultEvent(VectorResult.empty(width, height))
        return

    polylines = []
    path_parts = []
    dropped_noise = 0
    dropped_short = 0
    total = len(polygons)

    for i, polygon in enumerate(polygons):
        if i % PROGRESS_EVERY == 0:
            yield ProgressEvent(40.0 + (i / total) * 50.0, f"Optimizing path {i}/{total}...")

        for ring in polygon:
            if not simplify.keep(ring, params.noise_threshold):
                dropped_noise += 1
                continue

            final_ring = simplify.simplify(ring, params.simplify_tolerance)
            if len(final_ring) <= 2:
                dropped_short += 1
                continue

            polylines.append(final_ring)
            path_parts.append(ring_path(final_ring))

    result = VectorResult(
        path_data="".join(path_parts),
        polylines=tuple(polylines),
        width=width,
        height=height,
    )

    logger.debug(f"Dropped {dropped_noise} noise rings, {dropped_short} degenerate rings")
    logger.info(
        f"Traced {len(result.polylines)} rings, {result.node_count} nodes "
        f"in {time.perf_counter() - t0:.2f}s"
    )
    yield ProgressEvent(100.0, "Tracing complete.")
    yield ResultEvent(result)


def trace_pixels(
    buffer: PixelBuffer,
    params: VectorParams,
    progress: Optional[ProgressCallback] = None
) -> VectorResult:
    """Blocking form of iter_trace().

    Parameters
    ----------
    buffer : PixelBuffer
        Binarized source pixels
    params : VectorParams
        Trace parameters
    progress : callable, optional
        Called as ``progress(percent, message)`` for every checkpoint

    Returns
    -------
    VectorResult
        Possibly empty (node_count == 0) when nothing was traced
    """
    result = None
    for event in iter_trace(buffer, params):
        if isinstance(event, ProgressEvent):
            if progress is not None:
                progress(event.percent, event.message)
        elif isinstance(event, ResultEvent):
            result = event.result
    return result


def trace_array(
    pixels: Union[np.ndarray, Sequence],
    params: VectorParams,
    progress: Optional[ProgressCallback] = None
) -> VectorResult:
    """Convenience wrapper: trace a raw (H, W[, C]) uint8 array."""
    return trace_pixels(PixelBuffer.from_array(np.asarray(pixels, dtype=np.uint8)), params, progress)
