"""Shared fixtures: synthetic masks, pixel buffers and parameter blocks."""

import logging
import sys

import numpy as np
import pytest

from src.data_pipeline.preprocess import PixelBuffer
from src.utils import logging_config, validators


def _buffer(mask: np.ndarray) -> PixelBuffer:
    """Boolean mask → black/white PixelBuffer (True = white)."""
    gray = np.where(np.asarray(mask, dtype=bool), 255, 0).astype(np.uint8)
    return PixelBuffer.from_array(gray)


@pytest.fixture()
def make_buffer():
    return _buffer


@pytest.fixture()
def square_mask() -> np.ndarray:
    """60x60 mask with one filled 40x40 square at rows/cols 10..49."""
    mask = np.zeros((60, 60), dtype=bool)
    mask[10:50, 10:50] = True
    return mask


@pytest.fixture()
def square_buffer(square_mask) -> PixelBuffer:
    return _buffer(square_mask)


@pytest.fixture()
def raw_params() -> validators.VectorParams:
    """No noise filter, no simplification."""
    return validators.VectorParams(noise_threshold=0, simplify_tolerance=0)


@pytest.fixture()
def restore_logging():
    """Undo setup_logging() side effects on the root logger."""
    root = logging.getLogger()
    excepthook = sys.excepthook
    handlers = root.handlers[:]
    level = root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)
    logging_config.pop_context()
    sys.excepthook = excepthook
