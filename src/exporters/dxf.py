"""DXF exporter -- VectorResult to an R12 (AC1009) drawing.

Document layout::

    HEADER   section: $ACADVER = AC1009
    ENTITIES section: one closed polyline entity per ring
    EOF

Entity styles:
    LWPOLYLINE  one entity, vertex count (group 90), inline 10/20 pairs
    POLYLINE    parent entity, one VERTEX per point, then SEQEND

Every entity carries the configured layer (group 8) and the closed flag
(group 70 = 1). Coordinates are utils.geometry.map_ring outputs written
with 4 decimals.

DxfParams.mirror_y and DxfParams.flatten_arcs do not change the output:
Y mirroring is VectorParams.flip_y (applied by the mapper) and results
never contain arcs.
"""

from __future__ import annotations

import logging
from io import StringIO

import numpy as np

from ..data_pipeline.trace import VectorResult
from ..utils.validators import DxfParams, PolylineType, VectorParams
from .common import mapped_polylines

logger = logging.getLogger(__name__)

DXF_VERSION = "AC1009"
DEFAULT_LAYER = "CUT_PATH"
CLOSED_FLAG = 1


# ---------------------------------------------------------------------------
# Group writers
# ---------------------------------------------------------------------------


def _tag(buf: StringIO, code: int, value: object) -> None:
    """Write one group code / value pair."""
    buf.write(f"{code}\n{value}\n")


def _xy(buf: StringIO, x: float, y: float) -> None:
    _tag(buf, 10, f"{x:.4f}")
    _tag(buf, 20, f"{y:.4f}")


def _write_header(buf: StringIO) -> None:
    _tag(buf, 0, "SECTION")
    _tag(buf, 2, "HEADER")
    _tag(buf, 9, "$ACADVER")
    _tag(buf, 1, DXF_VERSION)
    _tag(buf, 0, "ENDSEC")
    _tag(buf, 0, "SECTION")
    _tag(buf, 2, "ENTITIES")


def _write_footer(buf: StringIO) -> None:
    _tag(buf, 0, "ENDSEC")
    _tag(buf, 0, "EOF")


def _write_lwpolyline(buf: StringIO, pts: np.ndarray, layer: str) -> None:
    _tag(buf, 0, "LWPOLYLINE")
    _tag(buf, 8, layer)
    _tag(buf, 90, len(pts))
    _tag(buf, 70, CLOSED_FLAG)
    for x, y in pts:
        _xy(buf, x, y)


def _write_polyline(buf: StringIO, pts: np.ndarray, layer: str) -> None:
    _tag(buf, 0, "POLYLINE")
    _tag(buf, 8, layer)
    _tag(buf, 66, 1)  # vertices follow
    _tag(buf, 70, CLOSED_FLAG)
    for x, y in pts:
        _tag(buf, 0, "VERTEX")
        _tag(buf, 8, layer)
        _xy(buf, x, y)
    _tag(buf, 0, "SEQEND")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def emit(result: VectorResult, dxf_params: DxfParams, vector_params: VectorParams) -> str:
    """Render ``result`` as a DXF document.

    Parameters
    ----------
    result : VectorResult
        Traced rings in pixel units; not modified.
    dxf_params : DxfParams
        Entity style and layer. An empty layer name falls back to
        ``CUT_PATH``.
    vector_params : VectorParams
        Placement used to map pixels to output units.

    Returns
    -------
    str
        Complete DXF text. A result without polylines gives a document
        with an empty ENTITIES section.

    Raises
    ------
    ExportError
        If a polyline is empty or not an (N, 2) array.
    """
    layer = dxf_params.layer_name or DEFAULT_LAYER
    style = PolylineType(dxf_params.polyline_type)
    write_entity = _write_lwpolyline if style is PolylineType.LWPOLYLINE else _write_polyline

    buf = StringIO()
    _write_header(buf)
    count = 0
    for pts in mapped_polylines(result, vector_params):
        write_entity(buf, pts, layer)
        count += 1
    _write_footer(buf)

    logger.info("DXF: %d %s entities on layer %s", count, style.value, layer)
    return buf.getvalue()
