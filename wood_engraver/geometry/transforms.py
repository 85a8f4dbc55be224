"""Grid space <-> bed space coordinate transforms.

Grid space is where points are authored and edited; bed space is the
physical machine frame (origin at a bed corner, +Y toward the back).  A
``GridTransform`` places the authored grid onto the bed: rotation about the
bed centre followed by an ``(offset_x, offset_y)`` shift.

Both directions flip Y into a screen-style frame, work relative to the bed
centre, and flip back, so with an identity transform grid and bed
coordinates coincide.  ``grid_to_bed`` and ``bed_to_grid`` are inverses up to
the 0.1 mm rounding applied at the end of each call.

Zero rotation skips the trigonometry entirely so identity-rotation results
are bit-for-bit reproducible.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from wood_engraver.points import Point


@dataclass(frozen=True)
class BedDimensions:
    """Physical bed size in mm; valid output region is ``[0,w] x [0,h]``."""

    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Bed dimensions must be positive, got "
                f"{self.width} x {self.height}"
            )

    @property
    def center(self) -> tuple[float, float]:
        return self.width / 2.0, self.height / 2.0

    def contains(self, x: float, y: float) -> bool:
        """True when ``(x, y)`` lies inside the closed bed rectangle."""
        return 0.0 <= x <= self.width and 0.0 <= y <= self.height


@dataclass(frozen=True)
class GridTransform:
    """Placement of the authored grid on the bed.

    Parameters
    ----------
    offset_x, offset_y : float
        Shift in mm applied after rotation (+Y moves toward the back).
    rotation_deg : float
        Counter-clockwise rotation about the bed centre in degrees.
    """

    offset_x: float = 0.0
    offset_y: float = 0.0
    rotation_deg: float = 0.0

    @property
    def is_identity(self) -> bool:
        return (
            self.offset_x == 0.0
            and self.offset_y == 0.0
            and self.rotation_deg == 0.0
        )


def _rotate(x: float, y: float, angle_deg: float) -> tuple[float, float]:
    angle = math.radians(angle_deg)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return x * cos_a - y * sin_a, x * sin_a + y * cos_a


def grid_to_bed(
    point: Point, transform: GridTransform, bed: BedDimensions,
) -> Point:
    """Map an authored grid point onto the machine bed.

    Parameters
    ----------
    point : Point
        Grid-space point.
    transform : GridTransform
        Current grid placement.
    bed : BedDimensions
        Bed size (rotation pivot is the bed centre).

    Returns
    -------
    Point
        Bed-space point with the same ``source`` tag.
    """
    cx, cy = bed.center

    x = point.x - cx
    y = (bed.height - point.y) - cy

    if transform.rotation_deg != 0:
        x, y = _rotate(x, y, transform.rotation_deg)

    x = x + transform.offset_x + cx
    y = y - transform.offset_y + cy

    return Point(x, bed.height - y, point.source)


def bed_to_grid(
    point: Point, transform: GridTransform, bed: BedDimensions,
) -> Point:
    """Inverse of :func:`grid_to_bed` (up to 0.1 mm rounding)."""
    cx, cy = bed.center

    x = point.x - cx - transform.offset_x
    y = (bed.height - point.y) - cy + transform.offset_y

    if transform.rotation_deg != 0:
        x, y = _rotate(x, y, -transform.rotation_deg)

    x = x + cx
    y = y + cy

    return Point(x, bed.height - y, point.source)


def points_to_bed(
    points: Iterable[Point], transform: GridTransform, bed: BedDimensions,
) -> list[Point]:
    return [grid_to_bed(p, transform, bed) for p in points]


def points_to_grid(
    points: Iterable[Point], transform: GridTransform, bed: BedDimensions,
) -> list[Point]:
    return [bed_to_grid(p, transform, bed) for p in points]
