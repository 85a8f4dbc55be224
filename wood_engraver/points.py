"""Burn-point model.

A ``Point`` is an immutable, slotted dataclass whose coordinates are rounded
to 0.1 mm on construction, so every producer (extractor, QR generator,
transforms, parser) stays on the 0.1 mm grid without repeating the
rounding call.

``source`` drives selective replace/merge: regenerating QR points removes only
``PointSource.QR_CODE`` points and leaves image and hand-placed points alone.
Point lists of different sources are simply concatenated; deduplication is a
within-pattern concern of the extractor.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class PointSource(str, Enum):
    """Origin tag of a burn point."""

    IMAGE = "image"
    MANUAL = "manual"
    QR_CODE = "qr"


def round_tenth(value: float) -> float:
    """Round to one decimal place, halves rounding toward +infinity.

    Parameters
    ----------
    value : float
        Coordinate in mm.

    Returns
    -------
    float
        ``value`` snapped to the 0.1 mm lattice.
    """
    return math.floor(value * 10.0 + 0.5) / 10.0


@dataclass(frozen=True, slots=True)
class Point:
    """A single burn point.

    Parameters
    ----------
    x, y : float
        Position in mm (grid or bed space depending on pipeline stage).
        Rounded to 0.1 mm on construction.
    source : PointSource
        Which producer created the point.
    """

    x: float
    y: float
    source: PointSource = PointSource.IMAGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", round_tenth(float(self.x)))
        object.__setattr__(self, "y", round_tenth(float(self.y)))
        if not isinstance(self.source, PointSource):
            object.__setattr__(self, "source", PointSource(self.source))

    @property
    def key(self) -> tuple[float, float]:
        """Exact coordinate key (coordinates are already rounded)."""
        return (self.x, self.y)

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


def replace_source(
    points: Iterable[Point],
    source: PointSource,
    replacement: Iterable[Point],
) -> list[Point]:
    """Drop every point tagged *source* and append *replacement*.

    Parameters
    ----------
    points : Iterable[Point]
        Current point set.
    source : PointSource
        Tag whose points are replaced.
    replacement : Iterable[Point]
        Freshly generated points for that tag.

    Returns
    -------
    list[Point]
        New list; the input is not modified.
    """
    kept = [p for p in points if p.source != source]
    return kept + list(replacement)


def count_by_source(points: Iterable[Point]) -> dict[PointSource, int]:
    """Number of points per source tag."""
    return dict(Counter(p.source for p in points))
