"""
Image processing module.

Raster -> grayscale -> (optional) edge/dither filter -> sampled burn points.
Buffers are numpy arrays: RGBA (H, W, 4) uint8 and intensity (H, W) uint8.
"""

from wood_engraver.imaging.extractor import (
    PointPattern,
    SpatialHash,
    extract_contour,
    extract_points,
    extract_square,
    extract_triangle,
)
from wood_engraver.imaging.filters import (
    Comparator,
    DitherComparator,
    ProcessingMode,
    StandardComparator,
    apply_filter,
    floyd_steinberg_dither,
    select_comparator,
    sobel_edges,
)
from wood_engraver.imaging.grayscale import load_rgba, rgba_to_gray
from wood_engraver.imaging.render import ImagePlacement, render_canvas
from wood_engraver.imaging.skeleton import binarize, skeletonize, thin

__all__ = [
    "Comparator",
    "DitherComparator",
    "ImagePlacement",
    "PointPattern",
    "ProcessingMode",
    "SpatialHash",
    "StandardComparator",
    "apply_filter",
    "binarize",
    "extract_contour",
    "extract_points",
    "extract_square",
    "extract_triangle",
    "floyd_steinberg_dither",
    "load_rgba",
    "render_canvas",
    "rgba_to_gray",
    "select_comparator",
    "skeletonize",
    "sobel_edges",
    "thin",
]
