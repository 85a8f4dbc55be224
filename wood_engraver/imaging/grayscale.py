"""Raster loading and grayscale reduction.

Rasters travel through the pipeline as numpy arrays:
    - RGBA raster: shape (H, W, 4), dtype uint8
    - Intensity buffer: shape (H, W), dtype uint8, 0 = black, 255 = white

Decoding image files is done with Pillow; everything downstream only sees
arrays.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from wood_engraver.errors import InvalidInputError

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def load_rgba(path: str | Path) -> np.ndarray:
    """Decode an image file into an RGBA array.

    Parameters
    ----------
    path : str | Path
        Any format Pillow can open (PNG, JPEG, BMP, WebP, ...).

    Returns
    -------
    np.ndarray
        Shape (H, W, 4), dtype uint8.

    Raises
    ------
    InvalidInputError
        If the file is missing or not a decodable raster.
    """
    path = Path(path)
    if not path.is_file():
        raise InvalidInputError(f"Image file not found: {path}")
    try:
        with Image.open(path) as img:
            rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8).copy()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidInputError(f"Unsupported raster file {path}: {exc}") from exc

    logger.info("Loaded %s (%dx%d)", path.name, rgba.shape[1], rgba.shape[0])
    return rgba


def validate_raster(rgba: np.ndarray) -> np.ndarray:
    """Check that *rgba* is an (H, W, 3|4) uint8 raster.

    Returns the array unchanged (or cast to uint8 when it is an integer
    array in range).

    Raises
    ------
    InvalidInputError
        On wrong rank, channel count, dtype or an empty raster.
    """
    rgba = np.asarray(rgba)
    if rgba.ndim != 3 or rgba.shape[2] not in (3, 4):
        raise InvalidInputError(
            f"Raster must have shape (H, W, 3|4), got {rgba.shape}"
        )
    if rgba.shape[0] == 0 or rgba.shape[1] == 0:
        raise InvalidInputError("Raster is empty")
    if rgba.dtype != np.uint8:
        if not np.issubdtype(rgba.dtype, np.integer):
            raise InvalidInputError(
                f"Raster dtype must be uint8, got {rgba.dtype}"
            )
        if rgba.min() < 0 or rgba.max() > 255:
            raise InvalidInputError("Raster values must be in [0, 255]")
        rgba = rgba.astype(np.uint8)
    return rgba


def rgba_to_gray(rgba: np.ndarray) -> np.ndarray:
    """Reduce an RGBA raster to a single intensity channel.

    ``gray = 0.299 R + 0.587 G + 0.114 B``; alpha is ignored.

    Parameters
    ----------
    rgba : np.ndarray
        Shape (H, W, 4) or (H, W, 3), dtype uint8.

    Returns
    -------
    np.ndarray
        Intensity buffer, shape (H, W), dtype uint8.
    """
    rgba = validate_raster(rgba)
    rgb = rgba[..., :3].astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    gray = wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2]
    return np.clip(np.rint(gray), 0, 255).astype(np.uint8)
