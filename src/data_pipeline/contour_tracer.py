"""Iso-level contour extraction (marching squares) from a density field.

Pipeline:
    1. Pad the field with a one-pixel border of zeros so every crossing
       closes inside the grid (shapes touching the image edge still give
       closed rings)
    2. skimage.measure.find_contours at level 0.5
    3. Convert (row, col) sample coordinates to pixel-edge (x, y)
       coordinates: pixel (i, j) covers [j, j+1] × [i, i+1], so a filled
       pixel block [c0, c1) × [r0, r1) traces along x = c0 … c1
    4. Group rings into polygons by nesting depth (shapely): rings at even
       depth are exteriors, odd depth are holes of the innermost enclosing
       exterior

Rings are closed with the first vertex repeated as the last. Winding is
whatever marching squares produced; nothing downstream relies on it.

All coordinates in trace pixels (top-left origin, +Y down).
"""

import logging
from typing import List

import numpy as np
import shapely
from shapely.geometry import Polygon
from skimage import measure

logger = logging.getLogger(__name__)

ISO_LEVEL = 0.5

Ring = np.ndarray
"""Closed ring, shape (N, 2), float64 (x, y) in trace pixels."""

PolygonRings = List[Ring]
"""One exterior ring followed by its holes."""


def _find_rings(field: np.ndarray) -> List[Ring]:
    padded = np.pad(field, 1, mode='constant', constant_values=0.0)
    rings = []
    for contour in measure.find_contours(padded, ISO_LEVEL):
        # (row, col) in padded samples → (x, y) on pixel edges
        ring = np.column_stack([contour[:, 1] - 0.5, contour[:, 0] - 0.5])
        rings.append(ring)
    return rings


def _group_by_nesting(rings: List[Ring]) -> List[PolygonRings]:
    """Attach every hole to the innermost exterior that encloses it."""
    if not rings:
        return []

    shapes = [Polygon(r) for r in rings]
    tree = shapely.STRtree(shapes)
    probes = shapely.points([r[0] for r in rings])
    probe_idx, owner_idx = tree.query(probes, predicate='within')

    containers: List[List[int]] = [[] for _ in rings]
    for i, j in zip(probe_idx.tolist(), owner_idx.tolist()):
        if i != j:
            containers[i].append(j)
    depth = [len(c) for c in containers]

    polygons: List[PolygonRings] = []
    slot_of = {}
    for i, ring in enumerate(rings):
        if depth[i] % 2 == 0:
            slot_of[i] = len(polygons)
            polygons.append([ring])

    for i, ring in enumerate(rings):
        if depth[i] % 2 == 1:
            parent = max(containers[i], key=lambda j: depth[j])
            polygons[slot_of[parent]].append(ring)

    return polygons


def trace(field: np.ndarray, width: int, height: int) -> List[PolygonRings]:
    """Extract the 0.5 iso-contours of a density field.

    Parameters
    ----------
    field : np.ndarray
        Density field, shape (height, width), values in {0, 1}
    width, height : int
        Field size in pixels

    Returns
    -------
    List[PolygonRings]
        Polygons in discovery order, each an exterior ring followed by its
        holes. Empty when the field has no crossing of the iso-level.

    Raises
    ------
    ValueError
        If ``field`` does not have shape (height, width).
    """
    field = np.asarray(field, dtype=np.float64)
    if field.shape != (height, width):
        raise ValueError(f"Field shape {field.shape} does not match ({height}, {width})")

    if field.size == 0 or not field.any():
        return []

    rings = _find_rings(field)
    polygons = _group_by_nesting(rings)
    logger.debug(f"Traced {len(rings)} rings in {len(polygons)} polygons ({width}x{height} px)")
    return polygons
