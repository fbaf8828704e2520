"""Input checks and coordinate mapping shared by the exporters."""

from __future__ import annotations

from typing import Iterator

import numpy as np

from ..data_pipeline.trace import VectorResult
from ..utils.geometry import map_ring
from ..utils.validators import VectorParams


class ExportError(ValueError):
    """Raised when an exporter is handed a malformed polyline."""

    pass


def check_polyline(poly, index: int) -> np.ndarray:
    """Return ``poly`` as an (N, 2) float array with N >= 1.

    Raises
    ------
    ExportError
        If the polyline is empty or not an (N, 2) point array.
    """
    try:
        arr = np.asarray(poly, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ExportError(f"Polyline {index} is not a point array: {e}") from e
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ExportError(f"Polyline {index} must have shape (N, 2), got {arr.shape}")
    if arr.shape[0] == 0:
        raise ExportError(f"Polyline {index} is empty")
    return arr


def mapped_polylines(result: VectorResult, params: VectorParams) -> Iterator[np.ndarray]:
    """Yield every polyline of ``result`` in output units, in result order."""
    for i, poly in enumerate(result.polylines):
        yield map_ring(check_polyline(poly, i), params, result.width, result.height)
