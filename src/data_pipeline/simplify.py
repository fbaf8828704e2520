"""Per-ring noise filtering and Ramer-Douglas-Peucker simplification.

Two stages, applied to every traced ring in this order:
    1. keep(): drop rings whose |shoelace area| is below noise_threshold
       (measured on the raw traced ring, before simplification)
    2. simplify(): RDP with a squared point-to-segment distance test

RDP details:
    - Anchors are the first and last vertex; both are always kept
    - A vertex becomes an anchor when its squared distance to the current
      chord exceeds tolerance², ties resolved in favour of the lowest index
    - Distance is to the segment, clamped at the endpoints (not the infinite
      line), so a closed ring whose first and last vertex coincide is
      handled as distance-to-point
    - Iterative (explicit span stack): no recursion limit on long rings

simplify() is idempotent for a fixed tolerance and never returns more
vertices than it was given.
"""

from typing import List, Tuple

import numpy as np

from ..utils.geometry import ring_area


def keep(ring: np.ndarray, noise_threshold: float) -> bool:
    """Return True if the ring survives the area noise filter."""
    if noise_threshold <= 0:
        return True
    return abs(ring_area(ring)) >= noise_threshold


def _seg_sq_dist(points: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Squared distance from each point to segment a-b (clamped)."""
    d = b - a
    denom = float(d @ d)
    if denom == 0.0:
        closest = np.broadcast_to(a, points.shape)
    else:
        t = ((points - a) @ d) / denom
        t = np.clip(t, 0.0, 1.0)
        closest = a + t[:, None] * d
    diff = points - closest
    return np.einsum('ij,ij->i', diff, diff)


def simplify(ring: np.ndarray, tolerance: float) -> np.ndarray:
    """Simplify a ring with Ramer-Douglas-Peucker.

    Parameters
    ----------
    ring : np.ndarray
        Vertices, shape (N, 2)
    tolerance : float
        Maximum allowed deviation in pixels; <= 0 disables simplification

    Returns
    -------
    np.ndarray
        Kept vertices in original order, shape (M, 2), 2 <= M <= N when
        N >= 2. The input is returned unchanged when tolerance <= 0 or
        N <= 2.
    """
    pts = np.asarray(ring, dtype=np.float64)
    n = pts.shape[0]
    if tolerance <= 0 or n <= 2:
        return ring

    sq_tol = tolerance * tolerance
    kept = np.zeros(n, dtype=bool)
    kept[0] = kept[n - 1] = True

    stack: List[Tuple[int, int]] = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        sq = _seg_sq_dist(pts[first + 1:last], pts[first], pts[last])
        k = int(np.argmax(sq))
        if sq[k] > sq_tol:
            index = first + 1 + k
            kept[index] = True
            stack.append((index, last))
            stack.append((first, index))

    return pts[kept]
