"""Placement of a source raster onto the square working canvas.

The working canvas is centred on the bed centre.  One canvas pixel covers
``1 / pixels_per_mm`` mm; pixel column ``c`` / row ``r`` of a W x H canvas maps
to grid coordinates::

    gx = (c - W/2) / k + bedW/2
    gy = (H/2 - r) / k + bedH/2        (k = pixels_per_mm, +Y up)

The source image is fitted to the bed (``min(bedW/w, bedH/h)``), multiplied by
the placement scale, rotated about its centre and shifted by the placement
offset.  Transparent pixels are composited over white, matching how the image
looks on screen.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.imaging.grayscale import validate_raster

logger = logging.getLogger(__name__)

# Working canvas side, in multiples of the larger bed dimension
CANVAS_BED_MULTIPLE = 3
# Linear oversampling for contour tracing
CONTOUR_PIXELS_PER_MM = 3


@dataclass(frozen=True)
class ImagePlacement:
    """How the source image sits on the bed.

    Parameters
    ----------
    scale : float
        Multiplier on the fit-to-bed size.
    offset_x, offset_y : float
        Shift of the image centre from the bed centre in mm (+Y up).
    rotation_deg : float
        Clockwise rotation of the image on screen, in degrees.
    """

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    rotation_deg: float = 0.0


def fit_scale(image_w: int, image_h: int, bed: BedDimensions) -> float:
    """mm per source pixel when the image is fitted inside the bed."""
    return min(bed.width / image_w, bed.height / image_h)


def standard_canvas_size(bed: BedDimensions) -> int:
    """Side in pixels of the 1 px/mm canvas used by the lattice patterns."""
    return int(math.ceil(max(bed.width, bed.height) * CANVAS_BED_MULTIPLE))


def contour_canvas_size(
    image_w: int,
    image_h: int,
    bed: BedDimensions,
    placement: ImagePlacement,
) -> int:
    """Side in pixels of the 3 px/mm canvas used by contour tracing.

    Large enough to hold the rotated, offset image plus the bed.
    """
    mm_per_px = fit_scale(image_w, image_h, bed) * placement.scale
    diagonal = math.hypot(image_w * mm_per_px, image_h * mm_per_px)
    max_offset = max(abs(placement.offset_x), abs(placement.offset_y)) * 2
    return int(math.ceil(
        (diagonal + max_offset + max(bed.width, bed.height))
        * CONTOUR_PIXELS_PER_MM
    ))


def _flatten_alpha(rgba: np.ndarray) -> np.ndarray:
    """Composite over white, return (H, W, 3) uint8."""
    if rgba.shape[2] == 3:
        return rgba
    rgb = rgba[..., :3].astype(np.float64)
    alpha = rgba[..., 3:4].astype(np.float64) / 255.0
    flat = rgb * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.rint(flat), 0, 255).astype(np.uint8)


def render_canvas(
    rgba: np.ndarray,
    bed: BedDimensions,
    placement: ImagePlacement,
    canvas_size: int,
    pixels_per_mm: float = 1.0,
) -> np.ndarray:
    """Draw *rgba* onto a white square canvas.

    Parameters
    ----------
    rgba : np.ndarray
        Source raster, shape (h, w, 3|4), dtype uint8.
    bed : BedDimensions
        Bed size used for the fit-to-bed scale.
    placement : ImagePlacement
        Scale / offset / rotation of the image.
    canvas_size : int
        Canvas side in pixels.
    pixels_per_mm : float
        Canvas resolution.

    Returns
    -------
    np.ndarray
        Canvas, shape (canvas_size, canvas_size, 4), dtype uint8, opaque.
    """
    rgba = validate_raster(rgba)
    h, w = rgba.shape[:2]
    rgb = np.ascontiguousarray(_flatten_alpha(rgba))

    s = fit_scale(w, h, bed) * placement.scale * pixels_per_mm
    theta = math.radians(placement.rotation_deg)
    c, sn = math.cos(theta) * s, math.sin(theta) * s

    tx = canvas_size / 2.0 + placement.offset_x * pixels_per_mm
    ty = canvas_size / 2.0 - placement.offset_y * pixels_per_mm

    # Source pixel (u, v) -> canvas: translate(t) . rotate . scale . translate(-w/2, -h/2)
    matrix = np.array([
        [c, -sn, tx - (c * w / 2.0 - sn * h / 2.0)],
        [sn, c, ty - (sn * w / 2.0 + c * h / 2.0)],
    ], dtype=np.float64)

    placed = cv2.warpAffine(
        rgb,
        matrix,
        (canvas_size, canvas_size),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(255, 255, 255),
    )

    canvas = np.empty((canvas_size, canvas_size, 4), dtype=np.uint8)
    canvas[..., :3] = placed
    canvas[..., 3] = 255
    logger.debug(
        "Rendered %dx%d image onto %d px canvas (%.3f px/mm, scale %.3f)",
        w, h, canvas_size, pixels_per_mm, placement.scale,
    )
    return canvas
