"""G-code exporter -- VectorResult to a multi-pass depth-stepped program.

Program layout::

    ( title )
    G21 / G20        units from VectorParams.units
    G90              absolute positioning
    M3 S<rpm>        spindle on
    G0 Z<safe>       retract
    <blank line>
    per polyline, per depth pass:
        G0 X Y           rapid to the first point
        G1 Z<pass> F     plunge
        G1 X Y F         one line per remaining point
        G0 Z<safe>       retract
    M5               spindle off
    G0 X0 Y0         return to origin
    M30              end

Coordinates are utils.geometry.map_ring outputs written with 3 decimals;
feeds and spindle speed are written as integers. No tool radius offset
is applied (GCodeParams.tool_diameter is informational).
"""

from __future__ import annotations

import logging
import math
from io import StringIO
from typing import List

import numpy as np

from ..data_pipeline.trace import VectorResult
from ..utils.validators import GCodeParams, VectorParams
from .common import mapped_polylines

logger = logging.getLogger(__name__)

PROGRAM_TITLE = "RASTER TOOLPATH - PRECISION G-CODE"
_PASS_EPS = 1e-9


def depth_passes(cut_depth: float, step_down: float) -> List[float]:
    """Z level of every pass, from the surface down to ``cut_depth``.

    Parameters
    ----------
    cut_depth : float
        Final depth, <= 0. Zero gives a single pass at the surface.
    step_down : float
        Depth per pass; its magnitude is used. Zero means one pass
        straight to ``cut_depth``.

    Returns
    -------
    List[float]
        Strictly decreasing levels; the last one is exactly ``cut_depth``.

    Examples
    --------
    >>> depth_passes(-6.0, 1.5)
    [-1.5, -3.0, -4.5, -6.0]
    >>> depth_passes(-1.0, 0.4)
    [-0.4, -0.8, -1.0]
    """
    if cut_depth == 0:
        return [0.0]

    step = abs(step_down) or abs(cut_depth) or 1.0
    # Each level from its index; a running sum drifts past cut_depth.
    n = max(1, math.ceil(abs(cut_depth) / step - _PASS_EPS))
    passes = [max(cut_depth, -(i + 1) * step) for i in range(n)]
    passes[-1] = cut_depth
    return passes


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------


def _write_header(buf: StringIO, vector_params: VectorParams, gcode_params: GCodeParams) -> None:
    buf.write(f"( {PROGRAM_TITLE} )\n")
    if vector_params.units == "in":
        buf.write("G20 (Inch)\n")
    else:
        buf.write("G21 (Metric)\n")
    buf.write("G90 (Absolute)\n")
    buf.write(f"M3 S{gcode_params.spindle_speed:.0f}\n")
    buf.write(f"G0 Z{gcode_params.safe_z:.3f}\n")
    buf.write("\n")


def _write_pass(buf: StringIO, pts: np.ndarray, z: float, gcode_params: GCodeParams) -> None:
    x0, y0 = pts[0]
    buf.write(f"G0 X{x0:.3f} Y{y0:.3f}\n")
    buf.write(f"G1 Z{z:.3f} F{gcode_params.plunge_rate:.0f}\n")
    feed = f"F{gcode_params.feed_rate:.0f}"
    for x, y in pts[1:]:
        buf.write(f"G1 X{x:.3f} Y{y:.3f} {feed}\n")
    buf.write(f"G0 Z{gcode_params.safe_z:.3f}\n")


def _write_footer(buf: StringIO) -> None:
    buf.write("M5\n")
    buf.write("G0 X0 Y0\n")
    buf.write("M30\n")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def emit(result: VectorResult, vector_params: VectorParams, gcode_params: GCodeParams) -> str:
    """Render ``result`` as a G-code program.

    Parameters
    ----------
    result : VectorResult
        Traced rings in pixel units; not modified.
    vector_params : VectorParams
        Placement and units.
    gcode_params : GCodeParams
        Feeds, spindle speed and depth passes.

    Returns
    -------
    str
        Complete program. A result without polylines gives header and
        footer only.

    Raises
    ------
    ExportError
        If a polyline is empty or not an (N, 2) array.
    """
    passes = depth_passes(gcode_params.cut_depth, gcode_params.step_down)

    buf = StringIO()
    _write_header(buf, vector_params, gcode_params)
    count = 0
    for pts in mapped_polylines(result, vector_params):
        for z in passes:
            _write_pass(buf, pts, z, gcode_params)
        count += 1
    _write_footer(buf)

    logger.info(
        "G-code: %d polylines x %d passes (final Z %.3f)",
        count, len(passes), passes[-1],
    )
    return buf.getvalue()
