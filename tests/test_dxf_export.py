"""Test the DXF exporter.

Validates document framing (HEADER / ENTITIES / EOF), both polyline
entity styles, layer tagging, coordinate mapping and rounding, and
malformed input rejection.
"""

from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from src.data_pipeline.trace import VectorResult
from src.exporters import ExportError, dxf
from src.utils.validators import DxfParams, PolylineType, VectorParams

HEADER = "0\nSECTION\n2\nHEADER\n9\n$ACADVER\n1\nAC1009\n0\nENDSEC\n0\nSECTION\n2\nENTITIES\n"
FOOTER = "0\nENDSEC\n0\nEOF\n"


def _pairs(doc: str) -> list[tuple[str, str]]:
    """Split a DXF document into (group code, value) pairs."""
    lines = doc.split("\n")
    assert lines[-1] == ""
    lines = lines[:-1]
    return list(zip(lines[0::2], lines[1::2]))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def square_result() -> VectorResult:
    ring = np.array([[0, 0], [10, 0], [10, 10], [0, 10]], dtype=np.float64)
    return VectorResult(path_data="", polylines=(ring,), width=10, height=10)


@pytest.fixture()
def vparams() -> VectorParams:
    return VectorParams(physical_width=10.0, physical_height=10.0)


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------


class TestFraming:
    def test_header_and_footer(self, square_result, vparams) -> None:
        doc = dxf.emit(square_result, DxfParams(), vparams)
        assert doc.startswith(HEADER)
        assert doc.endswith(FOOTER)

    def test_empty_result_has_no_entities(self, vparams) -> None:
        doc = dxf.emit(VectorResult.empty(10, 10), DxfParams(), vparams)
        assert doc == HEADER + FOOTER


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class TestLwPolyline:
    def test_four_point_ring(self, square_result, vparams) -> None:
        doc = dxf.emit(square_result, DxfParams(layer_name="CUTS"), vparams)
        pairs = _pairs(doc)
        assert ("0", "LWPOLYLINE") in pairs
        assert "0\nLWPOLYLINE\n8\nCUTS\n90\n4\n70\n1\n" in doc
        assert [v for c, v in pairs if c == "10"] == ["0.0000", "10.0000", "10.0000", "0.0000"]
        assert [v for c, v in pairs if c == "20"] == ["10.0000", "10.0000", "0.0000", "0.0000"]

    def test_one_entity_per_ring(self, vparams) -> None:
        rings = tuple(np.array([[i, 0], [i + 1, 0], [i + 1, 1]], dtype=np.float64) for i in range(3))
        doc = dxf.emit(VectorResult("", rings, 10, 10), DxfParams(), vparams)
        assert doc.count("LWPOLYLINE") == 3

    def test_coordinates_rounded_to_4_decimals(self, vparams) -> None:
        ring = np.array([[1.0 / 3.0, 0.0], [1.0, 0.0], [1.0, 1.0]])
        doc = dxf.emit(VectorResult("", (ring,), 10, 10), DxfParams(), vparams)
        xs = [v for c, v in _pairs(doc) if c == "10"]
        assert xs[0] == "0.3333"


class TestPolyline:
    def test_vertices_and_seqend(self, square_result, vparams) -> None:
        params = DxfParams(polyline_type=PolylineType.POLYLINE, layer_name="MILL")
        doc = dxf.emit(square_result, params, vparams)
        pairs = _pairs(doc)
        assert "0\nPOLYLINE\n8\nMILL\n66\n1\n70\n1\n" in doc
        assert pairs.count(("0", "VERTEX")) == 4
        assert pairs.count(("0", "SEQEND")) == 1
        assert pairs.count(("8", "MILL")) == 5
        assert "LWPOLYLINE" not in doc

    def test_string_style_accepted(self, square_result, vparams) -> None:
        doc = dxf.emit(square_result, DxfParams(polyline_type="POLYLINE"), vparams)
        assert "0\nSEQEND\n" in doc


class TestOptions:
    def test_empty_layer_falls_back_to_default(self, square_result, vparams) -> None:
        doc = dxf.emit(square_result, DxfParams(layer_name=""), vparams)
        assert "8\nCUT_PATH\n" in doc

    def test_mirror_y_and_flatten_arcs_are_inert(self, square_result, vparams) -> None:
        a = dxf.emit(square_result, DxfParams(mirror_y=True, flatten_arcs=False), vparams)
        b = dxf.emit(square_result, DxfParams(mirror_y=False, flatten_arcs=True), vparams)
        assert a == b

    def test_flip_y_is_applied(self, square_result) -> None:
        flipped = VectorParams(physical_width=10.0, physical_height=10.0, flip_y=True)
        ys = [v for c, v in _pairs(dxf.emit(square_result, DxfParams(), flipped)) if c == "20"]
        assert ys == ["0.0000", "0.0000", "10.0000", "10.0000"]

    def test_input_not_modified(self, square_result, vparams) -> None:
        before = [p.copy() for p in square_result.polylines]
        dxf.emit(square_result, DxfParams(), VectorParams(rotation_deg=45.0))
        for a, b in zip(before, square_result.polylines):
            np.testing.assert_array_equal(a, b)


class TestErrors:
    def test_empty_polyline_raises(self, vparams) -> None:
        result = VectorResult("", (np.zeros((0, 2)),), 10, 10)
        with pytest.raises(ExportError, match="empty"):
            dxf.emit(result, DxfParams(), vparams)

    def test_wrong_shape_raises(self, vparams) -> None:
        result = SimpleNamespace(polylines=[np.zeros((3, 3))], width=10, height=10)
        with pytest.raises(ExportError, match=r"\(N, 2\)"):
            dxf.emit(result, DxfParams(), vparams)

    def test_export_error_is_value_error(self) -> None:
        assert issubclass(ExportError, ValueError)
