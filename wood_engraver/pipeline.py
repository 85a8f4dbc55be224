"""End-to-end engraving pipeline.

    raster -> canvas -> grayscale -> filter -> points (grid space)
           -> + QR points -> bed space (in-bed only) -> tour -> G-code

Each stage returns fresh buffers / point lists; nothing here keeps state
between calls.  ``run_job`` wires a validated job file to the machine
config and is what the ``wood-engrave`` command calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

import numpy as np

from wood_engraver.configs.loader import EngraverConfig, ScriptParameters
from wood_engraver.configs.schemas import EngravingJobV1
from wood_engraver.errors import EmptyInputError
from wood_engraver.gcode.generator import EngravingGCodeGenerator, output_file_name
from wood_engraver.geometry.transforms import BedDimensions, GridTransform, grid_to_bed
from wood_engraver.imaging.extractor import PointPattern, extract_points
from wood_engraver.imaging.filters import ProcessingMode, apply_filter, select_comparator
from wood_engraver.imaging.grayscale import load_rgba, rgba_to_gray
from wood_engraver.imaging.render import (
    CONTOUR_PIXELS_PER_MM,
    ImagePlacement,
    contour_canvas_size,
    render_canvas,
    standard_canvas_size,
)
from wood_engraver.points import Point, PointSource, count_by_source, replace_source
from wood_engraver.qr.generator import ModuleMatrixEncoder, generate_qr_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobResult:
    """Output of :func:`run_job`.

    Parameters
    ----------
    points : list[Point]
        Grid-space points (image + QR).
    bed_points : list[Point]
        Points mapped to bed space that lie on the bed.
    gcode : str
        Generated script.
    file_name : str
        Output file name including ``.gcode``.
    parameters : ScriptParameters
        Parameters written into the script.
    """

    points: list[Point]
    bed_points: list[Point]
    gcode: str
    file_name: str
    parameters: ScriptParameters


def extract_image_points(
    rgba: np.ndarray,
    bed: BedDimensions,
    pitch: float,
    threshold: int,
    pattern: PointPattern = PointPattern.SQUARE,
    mode: ProcessingMode = ProcessingMode.STANDARD,
    invert: bool = False,
    placement: ImagePlacement | None = None,
) -> list[Point]:
    """Turn a raster into grid-space burn points.

    Lattice patterns sample a 1 px/mm canvas after the *mode* filter.
    CONTOUR renders at 3 px/mm and skeletonizes the grayscale canvas
    directly, so *mode* and *invert* do not apply to it.

    Parameters
    ----------
    rgba : np.ndarray
        Source raster, shape (h, w, 3|4), dtype uint8.
    bed : BedDimensions
        Bed size.
    pitch : float
        Point spacing in mm.
    threshold : int
        Intensity threshold in [0, 255].
    pattern : PointPattern
        Sampling strategy.
    mode : ProcessingMode
        Pre-processing filter for the lattice patterns.
    invert : bool
        Burn light areas instead of dark ones.
    placement : ImagePlacement | None
        Image scale / offset / rotation; None centres the fitted image.

    Returns
    -------
    list[Point]
        ``PointSource.IMAGE`` points in grid space.
    """
    placement = placement or ImagePlacement()
    pattern = PointPattern(pattern)
    mode = ProcessingMode(mode)

    if pattern is PointPattern.CONTOUR:
        h, w = rgba.shape[:2]
        size = contour_canvas_size(w, h, bed, placement)
        canvas = render_canvas(rgba, bed, placement, size, CONTOUR_PIXELS_PER_MM)
        gray = rgba_to_gray(canvas)
        comparator = select_comparator(ProcessingMode.STANDARD, threshold)
        return extract_points(
            gray, comparator, pattern, pitch, bed, threshold,
            pixels_per_mm=CONTOUR_PIXELS_PER_MM,
        )

    canvas = render_canvas(rgba, bed, placement, standard_canvas_size(bed))
    processed = apply_filter(rgba_to_gray(canvas), mode, threshold)
    comparator = select_comparator(mode, threshold, invert)
    return extract_points(processed, comparator, pattern, pitch, bed, threshold)


def points_for_output(
    points: Iterable[Point], transform: GridTransform, bed: BedDimensions,
) -> list[Point]:
    """Map grid points to bed space and keep those on the bed."""
    mapped = (grid_to_bed(p, transform, bed) for p in points)
    kept = [p for p in mapped if bed.contains(p.x, p.y)]
    return kept


def build_gcode(
    points: Sequence[Point],
    params: ScriptParameters,
    config: EngraverConfig,
    *,
    transform: GridTransform | None = None,
    pattern_label: str = PointPattern.SQUARE.value,
    start_gcode: str | None = None,
    bed_leveling: bool | None = None,
) -> tuple[str, list[Point]]:
    """Map grid points onto the bed and emit the script.

    Returns
    -------
    tuple[str, list[Point]]
        Script text and the bed-space points it engraves.
    """
    transform = transform or GridTransform()
    bed_points = points_for_output(points, transform, params.bed)
    dropped = len(points) - len(bed_points)
    if dropped:
        logger.warning("%d point(s) fall outside the bed and were dropped", dropped)
    if not bed_points:
        logger.warning("No points on the bed; script will engrave nothing")

    generator = EngravingGCodeGenerator(config.motion)
    gcode = generator.generate(
        bed_points,
        params,
        start_gcode=config.engraving.start_gcode if start_gcode is None else start_gcode,
        bed_leveling=config.engraving.bed_leveling if bed_leveling is None else bed_leveling,
        pattern_label=pattern_label,
    )
    return gcode, bed_points


def run_job(
    job: EngravingJobV1,
    config: EngraverConfig,
    encoder: ModuleMatrixEncoder | None = None,
) -> JobResult:
    """Run one engraving job end to end.

    Parameters
    ----------
    job : EngravingJobV1
        Validated job; unset overrides fall back to *config*.
    config : EngraverConfig
        Machine configuration.
    encoder : ModuleMatrixEncoder | None
        QR encoder; None uses the ``qrcode`` library.

    Returns
    -------
    JobResult

    Raises
    ------
    InvalidInputError
        If the image cannot be read or the QR text is rejected.
    EncoderUnavailableError
        If QR points are requested and the encoder fails.
    """
    e = config.engraving
    params = config.script_parameters()
    params = replace(
        params,
        step_size=job.step_size_mm if job.step_size_mm is not None else params.step_size,
        depth_z=job.depth_z_mm if job.depth_z_mm is not None else params.depth_z,
        dwell_time=job.dwell_s if job.dwell_s is not None else params.dwell_time,
        temperature=job.temperature_c if job.temperature_c is not None else params.temperature,
    )
    pattern = PointPattern(job.pattern or e.point_pattern)
    mode = ProcessingMode(job.mode or e.processing_mode)
    threshold = job.threshold if job.threshold is not None else e.threshold
    invert = job.invert if job.invert is not None else e.invert

    points: list[Point] = []
    if job.image is not None:
        rgba = load_rgba(job.image)
        placement = ImagePlacement(
            scale=job.placement.scale,
            offset_x=job.placement.offset_x,
            offset_y=job.placement.offset_y,
            rotation_deg=job.placement.rotation_deg,
        )
        points = extract_image_points(
            rgba, config.bed, params.step_size, threshold,
            pattern=pattern, mode=mode, invert=invert, placement=placement,
        )

    if job.qr is not None:
        qr = generate_qr_points(
            job.qr.text,
            params.step_size,
            config.bed,
            offset_x=job.qr.offset_x,
            offset_y=job.qr.offset_y,
            dots_per_module=job.qr.dots_per_module or config.qr.dots_per_module,
            encoder=encoder,
            error_correction=config.qr.error_correction,
        )
        points = replace_source(points, PointSource.QR_CODE, qr.points)

    if not points:
        raise EmptyInputError("Job produced no points")

    logger.info(
        "Job '%s': %s",
        job.output_name,
        ", ".join(f"{s.value}={n}" for s, n in count_by_source(points).items()),
    )

    transform = GridTransform(
        offset_x=job.grid.offset_x,
        offset_y=job.grid.offset_y,
        rotation_deg=job.grid.rotation_deg,
    )
    gcode, bed_points = build_gcode(
        points, params, config, transform=transform, pattern_label=pattern.value,
    )
    return JobResult(
        points=points,
        bed_points=bed_points,
        gcode=gcode,
        file_name=output_file_name(job.output_name),
        parameters=params,
    )
