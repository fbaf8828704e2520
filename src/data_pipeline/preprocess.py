"""Source image preprocessing: load, tone adjust, binarize.

Converts a user-provided image into the black/white RGBA pixel buffer the
tracer consumes:
    1. Load any PIL-readable file as RGBA (8-bit per channel)
    2. Contrast, then brightness, as percentage offsets around 100%
    3. Grayscale (Rec. 709 luma)
    4. Optional gaussian blur (radius in px)
    5. Threshold: gray > threshold → 255 else 0, optional invert

Alpha is carried through untouched. The tracer only reads channel 0 and
applies its own fixed 128 split, so the threshold here is the only
user-facing binarization control.

Public API:
    load_image(path) → np.ndarray (H, W, 4) uint8
    apply_filters(rgba, ProcessingParams) → np.ndarray (H, W, 4) uint8
    PixelBuffer.from_array(arr) → PixelBuffer
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageFilter

from ..utils.validators import ProcessingParams

logger = logging.getLogger(__name__)

_LUMA = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)


@dataclass(frozen=True)
class PixelBuffer:
    """Immutable RGBA pixel buffer.

    Attributes
    ----------
    width, height : int
        Size in pixels
    data : np.ndarray
        Read-only uint8 array, shape (height, width, 4)
    """
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.data.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel data shape {self.data.shape} does not match "
                f"({self.height}, {self.width}, 4)"
            )
        if self.data.dtype != np.uint8:
            raise ValueError(f"Pixel data must be uint8, got {self.data.dtype}")

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'PixelBuffer':
        """Wrap a (H, W), (H, W, 3) or (H, W, 4) uint8 array.

        Gray input is replicated to RGB; missing alpha is opaque. The data
        is copied and the copy marked read-only.
        """
        arr = np.asarray(arr)
        if arr.dtype != np.uint8:
            raise ValueError(f"Pixel data must be uint8, got {arr.dtype}")
        if arr.ndim == 2:
            arr = np.repeat(arr[:, :, None], 3, axis=2)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W), (H, W, 3) or (H, W, 4) array, got {arr.shape}")
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)

        data = np.array(arr, dtype=np.uint8, copy=True)
        data.setflags(write=False)
        h, w = data.shape[:2]
        return cls(width=w, height=h, data=data)


def load_image(path: Union[str, Path]) -> np.ndarray:
    """Load an image file as an RGBA uint8 array.

    Parameters
    ----------
    path : Union[str, Path]
        Path to image file (PNG, JPEG, BMP, ...)

    Returns
    -------
    np.ndarray
        Shape (H, W, 4), dtype uint8

    Raises
    ------
    ValueError
        If file cannot be loaded or is not an image
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Failed to load image {path}: {e}") from e

    logger.debug(f"Loaded {path.name}: {rgba.shape[1]}x{rgba.shape[0]} px")
    return rgba


def apply_filters(rgba: np.ndarray, params: ProcessingParams) -> np.ndarray:
    """Tone-adjust and binarize an RGBA image.

    Parameters
    ----------
    rgba : np.ndarray
        Source image, shape (H, W, 4), uint8
    params : ProcessingParams
        Filter settings

    Returns
    -------
    np.ndarray
        New (H, W, 4) uint8 array whose RGB channels are all 0 or 255
    """
    rgb = rgba[:, :, :3].astype(np.float64)

    contrast = (100.0 + params.contrast) / 100.0
    brightness = (100.0 + params.brightness) / 100.0
    rgb = np.clip((rgb - 127.5) * contrast + 127.5, 0.0, 255.0)
    rgb = np.clip(rgb * brightness, 0.0, 255.0)

    gray = np.clip(rgb @ _LUMA, 0.0, 255.0)

    if params.blur > 0:
        gray_img = Image.fromarray(np.round(gray).astype(np.uint8))
        gray_img = gray_img.filter(ImageFilter.GaussianBlur(radius=params.blur))
        gray = np.asarray(gray_img, dtype=np.float64)
    else:
        gray = np.round(gray)

    binary = np.where(gray > params.threshold, 255, 0).astype(np.uint8)
    if params.invert:
        binary = 255 - binary

    out = np.empty_like(rgba, dtype=np.uint8)
    out[:, :, 0] = binary
    out[:, :, 1] = binary
    out[:, :, 2] = binary
    out[:, :, 3] = rgba[:, :, 3]

    coverage = float(np.mean(binary > 0)) if binary.size else 0.0
    logger.debug(f"Filtered image: white coverage {coverage:.3f} (threshold={params.threshold})")
    return out
