"""Ring geometry and the image → output coordinate mapping.

Provides:
    - Shoelace ring area (signed, implicitly closed)
    - The point mapper shared by every exporter: scale, mirror, rotate, place
    - Origin offset on the material (stock) rectangle
    - Placement helpers: aspect-ratio lock, grid snapping, default design size

Coordinate frames:
    - Trace frame: pixels, top-left origin, +Y down
    - Output frame: VectorParams.units, +Y up, origin chosen by
      VectorParams.origin_position on the material rectangle

map_ring() is the single implementation of the projection; map_point() is
its one-point form. The DXF and G-code exporters both call map_ring(), so
their coordinates cannot diverge.

Nothing here validates trace dimensions: a zero trace width/height yields
IEEE inf/nan coordinates, which callers must treat as a configuration
error.
"""

import math
from typing import Optional, Tuple

import numpy as np

from .validators import OriginPosition, VectorParams


def ring_area(ring: np.ndarray) -> float:
    """Signed area of a ring via the shoelace formula.

    Parameters
    ----------
    ring : np.ndarray
        Vertices, shape (N, 2). Treated as closed; a duplicated closing
        vertex contributes a zero-length edge and does not change the area.

    Returns
    -------
    float
        Signed area (sign depends on winding), 0.0 for fewer than 3 points.
    """
    pts = np.asarray(ring, dtype=np.float64)
    if pts.shape[0] < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def origin_offset(params: VectorParams) -> Tuple[float, float]:
    """Position of the output origin on the material rectangle."""
    mw = params.material_width
    mh = params.material_height
    return {
        OriginPosition.BOTTOM_LEFT: (0.0, 0.0),
        OriginPosition.TOP_LEFT: (0.0, mh),
        OriginPosition.TOP_RIGHT: (mw, mh),
        OriginPosition.BOTTOM_RIGHT: (mw, 0.0),
        OriginPosition.CENTER: (mw / 2.0, mh / 2.0),
    }[OriginPosition(params.origin_position)]


def map_point(
    x_px: float,
    y_px: float,
    params: VectorParams,
    trace_width: float,
    trace_height: float
) -> Tuple[float, float]:
    """Map one trace-frame point to output units (see map_ring)."""
    x, y = map_ring(np.array([[x_px, y_px]], dtype=np.float64), params, trace_width, trace_height)[0]
    return float(x), float(y)


def map_ring(
    ring: np.ndarray,
    params: VectorParams,
    trace_width: float,
    trace_height: float
) -> np.ndarray:
    """Map trace-frame vertices to output units.

    Parameters
    ----------
    ring : np.ndarray
        Vertices in trace pixels (top-left origin, +Y down), shape (N, 2)
    params : VectorParams
        Placement parameters
    trace_width, trace_height : float
        Pixel size of the traced field

    Returns
    -------
    np.ndarray
        New array, shape (N, 2), in output units. The input is not modified.

    Notes
    -----
    Order is fixed:
        1. Scale to the physical design box, flipping Y (image → output)
        2. Mirror within the design box (flip_x, flip_y)
        3. Rotate CCW by rotation_deg about the design center
        4. Translate by (offset - origin_offset)
    """
    pts = np.asarray(ring, dtype=np.float64).reshape(-1, 2)
    pw = params.physical_width
    ph = params.physical_height

    with np.errstate(divide='ignore', invalid='ignore'):
        sx = np.divide(pw, trace_width)
        sy = np.divide(ph, trace_height)
        x = pts[:, 0] * sx
        y = (trace_height - pts[:, 1]) * sy

        if params.flip_x:
            x = pw - x
        if params.flip_y:
            y = ph - y

        rad = math.radians(params.rotation_deg)
        cos_a = math.cos(rad)
        sin_a = math.sin(rad)
        dx = x - pw / 2.0
        dy = y - ph / 2.0
        rx = dx * cos_a - dy * sin_a + pw / 2.0
        ry = dx * sin_a + dy * cos_a + ph / 2.0

    ox, oy = origin_offset(params)
    return np.column_stack([rx + (params.offset_x - ox), ry + (params.offset_y - oy)])


def locked_dimensions(
    params: VectorParams,
    aspect: float,
    *,
    width: Optional[float] = None,
    height: Optional[float] = None
) -> Tuple[float, float]:
    """Resolve a physical size edit under the aspect-ratio lock.

    Parameters
    ----------
    params : VectorParams
        Current parameters (supplies the unchanged dimension and the lock)
    aspect : float
        Image width / height
    width, height : float, optional
        The dimension being edited; pass exactly one to apply the lock

    Returns
    -------
    Tuple[float, float]
        (physical_width, physical_height)
    """
    new_w = params.physical_width if width is None else width
    new_h = params.physical_height if height is None else height
    if params.lock_aspect_ratio:
        if width is not None and width != params.physical_width:
            new_h = width / aspect
        elif height is not None and height != params.physical_height:
            new_w = height * aspect
    return new_w, new_h


def snap_offset(params: VectorParams, x: float, y: float) -> Tuple[float, float]:
    """Round an offset to the nearest grid multiple when snapping is on."""
    if not params.snap_to_grid:
        return x, y
    g = params.grid_size
    return round(x / g) * g, round(y / g) * g


def design_size_for_image(
    width_px: int,
    height_px: int,
    physical_width: float = 100.0
) -> Tuple[float, float]:
    """Default physical design size for a freshly loaded image (keeps aspect)."""
    aspect = width_px / height_px
    return physical_width, physical_width / aspect
