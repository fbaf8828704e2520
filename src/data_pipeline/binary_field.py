"""Pixel buffer → 0/1 density field for iso-level contouring.

Channel 0 of every pixel is compared against a fixed level of 128:
strictly greater → 1.0, otherwise 0.0. The level is a calibration point
for the contour tracer (which extracts the 0.5 crossing), not a user
setting; user thresholds live in preprocess.apply_filters().
"""

import numpy as np

from .preprocess import PixelBuffer

FIELD_LEVEL = 128


def classify(buffer: PixelBuffer) -> np.ndarray:
    """Build the density field.

    Parameters
    ----------
    buffer : PixelBuffer
        Source pixels; only channel 0 is read

    Returns
    -------
    np.ndarray
        Shape (height, width), float64, values in {0.0, 1.0}
    """
    return (buffer.data[:, :, 0] > FIELD_LEVEL).astype(np.float64)
