"""Binarization filters and the point-selection comparator.

Two filters turn the grayscale buffer into a processed buffer of the same
shape:
    - EDGE: 3x3 Sobel gradient magnitude, 1-pixel border left at zero
    - DITHER: Floyd-Steinberg error diffusion to {0, 255}

The comparator decides which processed intensities become burn points.  It is
a closed set of two frozen variants, each exposing a scalar ``accepts`` and a
vectorized ``mask``:

    mode      invert=False        invert=True
    standard  value <  threshold  value >= threshold
    edge      value <  threshold  value >= threshold
    dither    value == 0          value == 255
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ProcessingMode(str, Enum):
    """Pre-processing applied to the grayscale buffer before sampling."""

    STANDARD = "standard"
    EDGE = "edge"
    DITHER = "dither"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def sobel_edges(gray: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude, clamped to [0, 255].

    Kernels ``Gx = [-1,0,1,-2,0,2,-1,0,1]`` and ``Gy = [-1,-2,-1,0,0,0,1,2,1]``
    are correlated with the interior pixels; the outermost row/column on
    each side stays 0.

    Parameters
    ----------
    gray : np.ndarray
        Intensity buffer, shape (H, W), dtype uint8.

    Returns
    -------
    np.ndarray
        Edge magnitude buffer, shape (H, W), dtype uint8.
    """
    h, w = gray.shape
    edges = np.zeros((h, w), dtype=np.uint8)
    if h < 3 or w < 3:
        return edges

    src = gray.astype(np.float64)
    gx = cv2.Sobel(src, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(src, cv2.CV_64F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)

    interior = np.clip(np.rint(magnitude[1:-1, 1:-1]), 0, 255)
    edges[1:-1, 1:-1] = interior.astype(np.uint8)
    return edges


def _store(value: float) -> float:
    """Clamp and round like an 8-bit pixel store."""
    if value <= 0.0:
        return 0.0
    if value >= 255.0:
        return 255.0
    return float(round(value))


def floyd_steinberg_dither(gray: np.ndarray, threshold: int) -> np.ndarray:
    """Floyd-Steinberg error diffusion to pure black/white.

    Pixels are visited strictly left-to-right, top-to-bottom.  Each pixel is
    quantized with ``value < threshold -> 0 else 255`` and the error is pushed
    to the right (7/16), lower-left (3/16), lower (5/16) and lower-right
    (1/16) neighbours that exist.  Diffused values are stored as 8-bit
    intensities (clamped to [0, 255], rounded half to even).

    Parameters
    ----------
    gray : np.ndarray
        Intensity buffer, shape (H, W), dtype uint8.  Not modified.
    threshold : int
        Quantization threshold in [0, 255].

    Returns
    -------
    np.ndarray
        Binary buffer with values in {0, 255}, shape (H, W), dtype uint8.
    """
    h, w = gray.shape
    # Owned working copy; rows as Python lists keep the scalar loop fast
    rows = gray.astype(np.float64).tolist()

    for y in range(h):
        row = rows[y]
        below = rows[y + 1] if y + 1 < h else None
        for x in range(w):
            old = row[x]
            new = 0.0 if old < threshold else 255.0
            row[x] = new
            err = old - new
            if err == 0.0:
                continue

            if x + 1 < w:
                row[x + 1] = _store(row[x + 1] + err * 7 / 16)
            if below is not None:
                if x > 0:
                    below[x - 1] = _store(below[x - 1] + err * 3 / 16)
                below[x] = _store(below[x] + err * 5 / 16)
                if x + 1 < w:
                    below[x + 1] = _store(below[x + 1] + err * 1 / 16)

    return np.asarray(rows, dtype=np.uint8).reshape(h, w)


def apply_filter(
    gray: np.ndarray, mode: ProcessingMode, threshold: int,
) -> np.ndarray:
    """Run the filter selected by *mode* (STANDARD returns *gray* as-is)."""
    mode = ProcessingMode(mode)
    if mode is ProcessingMode.EDGE:
        return sobel_edges(gray)
    if mode is ProcessingMode.DITHER:
        return floyd_steinberg_dither(gray, threshold)
    return gray


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StandardComparator:
    """Threshold test on intensity (standard and edge modes)."""

    threshold: int
    invert: bool = False

    def accepts(self, value: int) -> bool:
        if self.invert:
            return value >= self.threshold
        return value < self.threshold

    def mask(self, buffer: np.ndarray) -> np.ndarray:
        if self.invert:
            return buffer >= self.threshold
        return buffer < self.threshold


@dataclass(frozen=True)
class DitherComparator:
    """Exact-extreme test on a dithered {0, 255} buffer."""

    invert: bool = False

    @property
    def target(self) -> int:
        return 255 if self.invert else 0

    def accepts(self, value: int) -> bool:
        return value == self.target

    def mask(self, buffer: np.ndarray) -> np.ndarray:
        return buffer == self.target


Comparator = Union[StandardComparator, DitherComparator]


def select_comparator(
    mode: ProcessingMode, threshold: int, invert: bool = False,
) -> Comparator:
    """Pick the comparator matching the processing mode."""
    if ProcessingMode(mode) is ProcessingMode.DITHER:
        return DitherComparator(invert=invert)
    return StandardComparator(threshold=threshold, invert=invert)
