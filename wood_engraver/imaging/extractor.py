"""Sample a processed buffer into discrete burn points.

Three mutually exclusive strategies:

SQUARE
    Regular ``pitch`` lattice anchored at grid origin (multiples of pitch).
TRIANGLE
    Hexagonal packing: row spacing ``pitch * sqrt(3) / 2``, odd rows shifted
    by ``pitch / 2``.  Yields roughly 15% more points than SQUARE.
CONTOUR
    Thin the (3x oversampled) grayscale buffer to a skeleton and walk every
    skeleton pixel in row-major order, accepting a pixel only when no
    previously accepted point lies closer than ``0.9 * pitch``.  A uniform
    spatial hash keeps each proximity query O(1) amortized.

All strategies map pixels to grid coordinates with the canvas convention of
:mod:`wood_engraver.imaging.render` and emit ``PointSource.IMAGE`` points.
Lattice samples are accepted on the closed canvas extent ``[0, W] x [0, H]``;
a sample exactly on the right/bottom edge reads the last pixel.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from enum import Enum

import numpy as np

from wood_engraver.errors import InvalidInputError
from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.imaging.filters import Comparator
from wood_engraver.imaging.render import CONTOUR_PIXELS_PER_MM
from wood_engraver.imaging.skeleton import skeletonize
from wood_engraver.points import Point, PointSource, round_tenth

logger = logging.getLogger(__name__)

# Minimum contour point spacing as a fraction of the pitch
CONTOUR_SPACING_FACTOR = 0.9
# Guards floor() against values like 4.999999999 for an exact pixel edge
_EPS = 1e-9


class PointPattern(str, Enum):
    """Point sampling strategy."""

    SQUARE = "square"
    TRIANGLE = "triangle"
    CONTOUR = "contour"


# ---------------------------------------------------------------------------
# Canvas <-> grid mapping
# ---------------------------------------------------------------------------


def _grid_extent(
    size_px: int, bed_size: float, pixels_per_mm: float,
) -> tuple[float, float]:
    half = size_px / 2.0 / pixels_per_mm
    return bed_size / 2.0 - half, bed_size / 2.0 + half


def _columns(
    gx: np.ndarray, width: int, bed: BedDimensions, pixels_per_mm: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Pixel column for each grid X, plus a validity mask."""
    cx = (gx - bed.width / 2.0) * pixels_per_mm + width / 2.0
    valid = (cx >= -_EPS) & (cx <= width + _EPS)
    col = np.clip(np.floor(cx + _EPS).astype(np.int64), 0, width - 1)
    return col, valid


def _rows(
    gy: np.ndarray, height: int, bed: BedDimensions, pixels_per_mm: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Pixel row for each grid Y (+Y up), plus a validity mask."""
    cy = height / 2.0 - (gy - bed.height / 2.0) * pixels_per_mm
    valid = (cy >= -_EPS) & (cy <= height + _EPS)
    row = np.clip(np.floor(cy + _EPS).astype(np.int64), 0, height - 1)
    return row, valid


def _check_pitch(pitch: float) -> None:
    if not pitch > 0:
        raise InvalidInputError(f"Step size must be positive, got {pitch}")


# ---------------------------------------------------------------------------
# Lattices
# ---------------------------------------------------------------------------


def _sample_row(
    buffer: np.ndarray,
    comparator: Comparator,
    gy: float,
    gx: np.ndarray,
    bed: BedDimensions,
    pixels_per_mm: float,
) -> list[Point]:
    h, w = buffer.shape
    row, row_ok = _rows(np.array([gy]), h, bed, pixels_per_mm)
    if not row_ok[0]:
        return []
    cols, col_ok = _columns(gx, w, bed, pixels_per_mm)
    hits = col_ok & comparator.mask(buffer[row[0], cols])
    return [Point(x, gy, PointSource.IMAGE) for x in gx[hits].tolist()]


def extract_square(
    buffer: np.ndarray,
    comparator: Comparator,
    pitch: float,
    bed: BedDimensions,
    pixels_per_mm: float = 1.0,
) -> list[Point]:
    """Square-lattice sampling.

    Parameters
    ----------
    buffer : np.ndarray
        Processed intensity buffer, shape (H, W), dtype uint8.
    comparator : Comparator
        Decides which sampled intensities become points.
    pitch : float
        Lattice spacing in mm (> 0).
    bed : BedDimensions
        Bed size; the canvas centre sits on the bed centre.
    pixels_per_mm : float
        Canvas resolution.

    Returns
    -------
    list[Point]
        Points ordered by ascending Y, then ascending X.
    """
    _check_pitch(pitch)
    h, w = buffer.shape
    min_gx, max_gx = _grid_extent(w, bed.width, pixels_per_mm)
    min_gy, max_gy = _grid_extent(h, bed.height, pixels_per_mm)

    gx = np.arange(
        math.floor(min_gx / pitch), math.ceil(max_gx / pitch) + 1,
    ) * pitch

    points: list[Point] = []
    for k in range(math.floor(min_gy / pitch), math.ceil(max_gy / pitch) + 1):
        points.extend(
            _sample_row(buffer, comparator, k * pitch, gx, bed, pixels_per_mm)
        )
    return points


def extract_triangle(
    buffer: np.ndarray,
    comparator: Comparator,
    pitch: float,
    bed: BedDimensions,
    pixels_per_mm: float = 1.0,
) -> list[Point]:
    """Hexagonal (triangular) lattice sampling.

    Same inputs as :func:`extract_square`.  Row ``r`` sits at
    ``r * pitch * sqrt(3) / 2``; rows with odd ``|r|`` are shifted by half a
    pitch.
    """
    _check_pitch(pitch)
    h, w = buffer.shape
    row_height = pitch * math.sqrt(3) / 2.0
    min_gx, max_gx = _grid_extent(w, bed.width, pixels_per_mm)
    min_gy, max_gy = _grid_extent(h, bed.height, pixels_per_mm)

    points: list[Point] = []
    first = math.floor(min_gy / row_height) - 1
    last = math.ceil(max_gy / row_height) + 1
    for r in range(first, last + 1):
        shift = pitch / 2.0 if abs(r) % 2 == 1 else 0.0
        gx = np.arange(
            math.floor((min_gx - shift) / pitch) - 1,
            math.ceil((max_gx - shift) / pitch) + 2,
        ) * pitch + shift
        points.extend(
            _sample_row(buffer, comparator, r * row_height, gx, bed, pixels_per_mm)
        )
    return points


# ---------------------------------------------------------------------------
# Contour tracing
# ---------------------------------------------------------------------------


class SpatialHash:
    """Uniform bucket grid answering "is any point closer than d?".

    Bucket size is ``max(1, d)`` so the 3x3 bucket neighbourhood around a
    query always covers the full search radius.
    """

    def __init__(self, min_distance: float) -> None:
        self.min_distance = min_distance
        self.bucket_size = max(1.0, min_distance)
        self._buckets: dict[tuple[int, int], list[tuple[float, float]]] = (
            defaultdict(list)
        )

    def _bucket(self, x: float, y: float) -> tuple[int, int]:
        return (
            math.floor(x / self.bucket_size),
            math.floor(y / self.bucket_size),
        )

    def is_near(self, x: float, y: float) -> bool:
        bx, by = self._bucket(x, y)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                bucket = self._buckets.get((bx + dx, by + dy))
                if not bucket:
                    continue
                for px, py in bucket:
                    if math.hypot(px - x, py - y) < self.min_distance:
                        return True
        return False

    def add(self, x: float, y: float) -> None:
        self._buckets[self._bucket(x, y)].append((x, y))

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())


def extract_contour(
    gray: np.ndarray,
    pitch: float,
    bed: BedDimensions,
    threshold: int,
    pixels_per_mm: float = CONTOUR_PIXELS_PER_MM,
) -> list[Point]:
    """Skeleton-based point tracing with minimum-spacing deduplication.

    Parameters
    ----------
    gray : np.ndarray
        Grayscale buffer rendered at *pixels_per_mm* (3x by default),
        shape (H, W), dtype uint8.
    pitch : float
        Nominal point spacing in mm; accepted points are at least
        ``0.9 * pitch`` apart.
    bed : BedDimensions
        Bed size; the canvas centre sits on the bed centre.
    threshold : int
        Binarization threshold for the skeleton.
    pixels_per_mm : float
        Canvas resolution.

    Returns
    -------
    list[Point]
        Accepted points in row-major scan order of the skeleton.
    """
    _check_pitch(pitch)
    skeleton = skeletonize(gray, threshold)
    h, w = skeleton.shape
    index = SpatialHash(pitch * CONTOUR_SPACING_FACTOR)

    rows, cols = np.nonzero(skeleton < 128)
    points: list[Point] = []
    for r, c in zip(rows.tolist(), cols.tolist()):
        gx = round_tenth((c - w / 2.0) / pixels_per_mm + bed.width / 2.0)
        gy = round_tenth((h / 2.0 - r) / pixels_per_mm + bed.height / 2.0)
        if index.is_near(gx, gy):
            continue
        index.add(gx, gy)
        points.append(Point(gx, gy, PointSource.IMAGE))

    logger.debug(
        "Contour: %d skeleton pixels -> %d points", len(rows), len(points),
    )
    return points


def extract_points(
    buffer: np.ndarray,
    comparator: Comparator,
    pattern: PointPattern,
    pitch: float,
    bed: BedDimensions,
    threshold: int,
    pixels_per_mm: float = 1.0,
) -> list[Point]:
    """Dispatch to the strategy named by *pattern*.

    For CONTOUR the *buffer* must be the raw grayscale canvas (the skeleton
    replaces both filter and comparator); *threshold* is only used there.
    """
    pattern = PointPattern(pattern)
    if pattern is PointPattern.SQUARE:
        points = extract_square(buffer, comparator, pitch, bed, pixels_per_mm)
    elif pattern is PointPattern.TRIANGLE:
        points = extract_triangle(buffer, comparator, pitch, bed, pixels_per_mm)
    else:
        points = extract_contour(buffer, pitch, bed, threshold, pixels_per_mm)

    logger.info(
        "Extracted %d points (%s, pitch %.2f mm)",
        len(points), pattern.value, pitch,
    )
    return points
