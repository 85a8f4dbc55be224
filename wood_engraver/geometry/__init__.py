"""
Coordinate transform module.

Bidirectional mapping between grid space (authoring) and bed space
(machine), parameterized by offset and rotation about the bed centre.
"""

from wood_engraver.geometry.transforms import (
    BedDimensions,
    GridTransform,
    bed_to_grid,
    grid_to_bed,
    points_to_bed,
    points_to_grid,
)

__all__ = [
    "BedDimensions",
    "GridTransform",
    "bed_to_grid",
    "grid_to_bed",
    "points_to_bed",
    "points_to_grid",
]
