"""Test trace orchestration: VectorResult contents and progress events.

Test cases:
    - End-to-end 40px square: one closed ring, area ≈ 1600 px²
    - Simplified square keeps only the corner region vertices
    - All-zero field: successful empty result
    - node_count equals the summed polyline lengths
    - Noise filter runs on the raw ring
    - Progress: 10 → 30 → periodic 40..90 → 100, then one ResultEvent
    - Path data formatting (2 decimals, trailing .0 dropped)
    - VectorResult immutability

Run:
    pytest tests/test_trace.py -v
"""

import dataclasses

import numpy as np
import pytest

from src.data_pipeline import trace
from src.data_pipeline.trace import ProgressEvent, ResultEvent, VectorResult
from src.utils.geometry import ring_area
from src.utils.validators import VectorParams


@pytest.fixture()
def speckle_grid_mask() -> np.ndarray:
    """64 separate 2x2 squares on a 4 px pitch."""
    mask = np.zeros((32, 32), dtype=bool)
    for r in range(8):
        for c in range(8):
            mask[r * 4:r * 4 + 2, c * 4:c * 4 + 2] = True
    return mask


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_square_gives_one_ring(self, square_buffer, raw_params) -> None:
        result = trace.trace_pixels(square_buffer, raw_params)
        assert len(result.polylines) == 1
        ring = result.polylines[0]
        assert abs(ring_area(ring)) == pytest.approx(1600.0, abs=1.0)
        assert (result.width, result.height) == (60, 60)

    def test_simplified_square_is_a_rectangle(self, square_buffer) -> None:
        params = VectorParams(noise_threshold=0, simplify_tolerance=0.5)
        result = trace.trace_pixels(square_buffer, params)
        assert len(result.polylines) == 1
        ring = result.polylines[0]
        assert 4 <= len(ring) <= 12
        assert abs(ring_area(ring)) == pytest.approx(1600.0, rel=0.05)

    def test_all_zero_field_is_empty_success(self, make_buffer, raw_params) -> None:
        result = trace.trace_pixels(make_buffer(np.zeros((20, 20), dtype=bool)), raw_params)
        assert result.is_empty
        assert result.node_count == 0
        assert result.path_data == ""
        assert result.polylines == ()

    def test_node_count_is_sum_of_lengths(self, make_buffer, speckle_grid_mask, raw_params) -> None:
        result = trace.trace_pixels(make_buffer(speckle_grid_mask), raw_params)
        assert len(result.polylines) == 64
        assert result.node_count == sum(len(p) for p in result.polylines)

    def test_noise_filter_drops_specks(self, square_mask, make_buffer) -> None:
        mask = square_mask.copy()
        mask[2:4, 2:4] = True
        params = VectorParams(noise_threshold=10, simplify_tolerance=0)
        result = trace.trace_pixels(make_buffer(mask), params)
        assert len(result.polylines) == 1
        assert abs(ring_area(result.polylines[0])) > 1000

    def test_every_kept_ring_has_more_than_two_points(self, make_buffer, speckle_grid_mask) -> None:
        params = VectorParams(noise_threshold=0, simplify_tolerance=10.0)
        result = trace.trace_pixels(make_buffer(speckle_grid_mask), params)
        assert all(len(p) > 2 for p in result.polylines)

    def test_trace_array_accepts_gray(self, square_mask, raw_params) -> None:
        gray = np.where(square_mask, 255, 0).astype(np.uint8)
        result = trace.trace_array(gray, raw_params)
        assert len(result.polylines) == 1


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------


class TestProgress:
    def test_event_order(self, square_buffer, raw_params) -> None:
        events = list(trace.iter_trace(square_buffer, raw_params))
        assert isinstance(events[-1], ResultEvent)
        progress = events[:-1]
        assert all(isinstance(e, ProgressEvent) for e in progress)
        percents = [e.percent for e in progress]
        assert percents == sorted(percents)
        assert percents[0] == 10.0
        assert 30.0 in percents
        assert progress[-1] == ProgressEvent(100.0, "Tracing complete.")

    def test_empty_run_still_completes(self, make_buffer, raw_params) -> None:
        events = list(trace.iter_trace(make_buffer(np.zeros((5, 5), dtype=bool)), raw_params))
        assert events[-2].percent == 100.0
        assert events[-1].result.is_empty

    def test_periodic_updates_every_50_polygons(self, make_buffer, speckle_grid_mask, raw_params) -> None:
        messages = []
        trace.trace_pixels(
            make_buffer(speckle_grid_mask), raw_params,
            progress=lambda pct, msg: messages.append((pct, msg)),
        )
        periodic = [m for m in messages if m[1].startswith("Optimizing path")]
        assert [m[1] for m in periodic] == ["Optimizing path 0/64...", "Optimizing path 50/64..."]
        assert periodic[0][0] == pytest.approx(40.0)
        assert periodic[1][0] == pytest.approx(40.0 + 50.0 / 64.0 * 50.0)


# ---------------------------------------------------------------------------
# Result object
# ---------------------------------------------------------------------------


class TestVectorResult:
    def test_path_data_one_fragment_per_ring(self, make_buffer, speckle_grid_mask, raw_params) -> None:
        result = trace.trace_pixels(make_buffer(speckle_grid_mask), raw_params)
        assert result.path_data.count("M") == 64
        assert result.path_data.count("Z") == 64
        assert result.path_data.startswith("M")

    def test_ring_path_formatting(self) -> None:
        ring = np.array([[1.0, 2.0], [3.456, 4.0], [5.125, 0.5]])
        assert trace.ring_path(ring) == "M1 2L3.46 4L5.13 0.5Z"

    def test_polylines_are_read_only(self, square_buffer, raw_params) -> None:
        result = trace.trace_pixels(square_buffer, raw_params)
        with pytest.raises(ValueError):
            result.polylines[0][0, 0] = 99.0

    def test_result_is_frozen(self) -> None:
        result = VectorResult.empty(10, 10)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.width = 20
