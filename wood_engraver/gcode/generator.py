"""G-code generator -- ordered burn points to an engraving script.

Points arrive in bed space (mm, origin at the bed corner) and are written
verbatim as absolute ``G0`` moves.  Every point becomes the same five-line
burn cycle::

    G0 Z<safe> F<z feed>        travel height
    G0 X.. Y.. F<xy feed>       move over the point
    G0 Z<depth> F<plunge feed>  plunge the hot nozzle
    G4 S<dwell>                 burn
    G0 Z<safe> F<z feed>        retract

Header comments are load-bearing: the parser recovers bed size,
resolution and plunge depth from ``Bed Size:``, ``Resolution:`` and
``Engraving Z:`` markers, so their syntax (number immediately followed by
``mm``) must stay stable.

Time estimate::

    total_seconds = n * (dwell + 2) + n * 0.5

``M73 P<percent> R<minutes>`` precedes every point; a progress comment is
added on the first point and whenever the percentage crosses a multiple
of ten.
"""

from __future__ import annotations

import logging
import math
from io import StringIO
from typing import Sequence

from wood_engraver import __version__
from wood_engraver.configs.loader import MotionConfig, ScriptParameters, TestGridConfig
from wood_engraver.gcode.optimizer import nearest_neighbor_order, tour_length
from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.points import Point

logger = logging.getLogger(__name__)

SCRIPT_EXTENSION = ".gcode"
DEFAULT_FILE_NAME = "engraving"

# Seconds of travel/plunge overhead per point on top of the dwell
POINT_OVERHEAD_S = 2.0
POINT_TRAVEL_S = 0.5
# Per-point overhead assumed by the calibration grid estimate
GRID_POINT_OVERHEAD_S = 3.0


class GCodeError(Exception):
    """Raised when G-code generation fails due to invalid input."""

    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _num(value: float) -> str:
    """Plain decimal, six places at most: 300.0 -> "300", 1e6 -> "1000000".

    Marker lines are read back by the importer, whose number pattern has no
    exponent form, so scientific notation must never be emitted.
    """
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _percent(done: float, total: float) -> int:
    """Percentage rounded half up."""
    return math.floor(done / total * 100.0 + 0.5)


def estimate_seconds(point_count: int, dwell_s: float) -> float:
    """Estimated job duration for *point_count* points."""
    return point_count * (dwell_s + POINT_OVERHEAD_S) + point_count * POINT_TRAVEL_S


def output_file_name(name: str | None) -> str:
    """File name for a script: ``<name>.gcode`` (extension not doubled)."""
    stem = (name or "").strip() or DEFAULT_FILE_NAME
    if stem.lower().endswith(SCRIPT_EXTENSION):
        return stem
    return stem + SCRIPT_EXTENSION


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class EngravingGCodeGenerator:
    """Serialize burn points into an engraving script.

    Parameters
    ----------
    motion : MotionConfig
        Z heights, feeds and acceleration limit.
    """

    def __init__(self, motion: MotionConfig) -> None:
        self._motion = motion

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        points: Sequence[Point],
        params: ScriptParameters,
        *,
        start_gcode: str = "",
        bed_leveling: bool = True,
        pattern_label: str = "square",
    ) -> str:
        """Generate a complete engraving script.

        Parameters
        ----------
        points : Sequence[Point]
            Bed-space points inside ``[0, bed_width] x [0, bed_height]``.
            Reordered with the nearest-neighbour heuristic before output.
        params : ScriptParameters
            Bed size, temperature, dwell, plunge depth and step size.
        start_gcode : str
            User preamble, emitted verbatim after the header.
        bed_leveling : bool
            Emit a leveling block over the bounding box of the points.
        pattern_label : str
            Point pattern name recorded in the header.

        Returns
        -------
        str
            Complete G-code program including header and trailer.

        Raises
        ------
        GCodeError
            If any point lies outside the bed.
        """
        bed = params.bed
        for p in points:
            self._validate_xy(p.x, p.y, bed)

        ordered = nearest_neighbor_order(points)
        total = len(ordered)
        estimated = estimate_seconds(total, params.dwell_time)
        logger.info(
            "Generating G-code: %d points, tour %.1f mm, est. %.0f min",
            total, tour_length(ordered), estimated / 60.0,
        )

        buf = StringIO()
        self._write_header(buf, "Wood Engraving Generator")
        buf.write(
            f";===== Bed Size: {_num(bed.width)}x{_num(bed.height)}mm"
            f" | Resolution: {_num(params.step_size)}mm =====\n"
        )
        buf.write("\n\n")
        buf.write(f"{start_gcode}\n")

        if bed_leveling:
            if ordered:
                min_x = min(p.x for p in ordered)
                max_x = max(p.x for p in ordered)
                min_y = min(p.y for p in ordered)
                max_y = max(p.y for p in ordered)
                self._write_leveling(buf, min_x, min_y, max_x - min_x, max_y - min_y)
            else:
                logger.warning("No points to engrave; bed leveling skipped")

        self._write_heating(buf, params.temperature)

        hours = int(estimated // 3600)
        minutes = int((estimated % 3600) // 60)
        buf.write("\n\n")
        buf.write(f";===== ENGRAVING {total} POINTS =====\n")
        buf.write(f";===== Estimated time: {hours}h {minutes}m =====\n")
        buf.write(
            f";===== Safe Z: {_num(self._motion.safe_z_mm)}mm"
            f" | Engraving Z: {_num(params.depth_z)}mm"
            " (relative to bed surface) =====\n"
        )
        buf.write(
            f";===== Y Acceleration: {_num(self._motion.accel_mm_s2)}mm/s^2 =====\n"
        )
        buf.write(f";===== Point Pattern: {pattern_label} =====\n")
        buf.write("\n")

        for index, point in enumerate(ordered):
            progress = _percent(index, total)
            remaining = total - index
            remaining_min = math.ceil(estimate_seconds(remaining, params.dwell_time) / 60.0)
            buf.write(f"M73 P{progress} R{remaining_min}\n")
            if index == 0 or (
                progress % 10 == 0
                and math.floor((index - 1) / total * 100.0) != progress
            ):
                buf.write(
                    f";===== Progress: {progress}% | {index}/{total} points"
                    f" | ~{remaining_min}min remaining =====\n"
                )
            self._write_burn(buf, point.x, point.y, params.depth_z, params.dwell_time)

        buf.write(";===== Progress: 100% | COMPLETE =====\n")
        self._write_footer(buf)
        return buf.getvalue()

    def generate_test_grid(
        self,
        grid: TestGridConfig,
        bed: BedDimensions,
        *,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
        start_gcode: str | None = None,
        bed_leveling: bool = True,
    ) -> str:
        """Generate a dwell-time x plunge-depth calibration grid.

        Column ``c`` dwells ``time_start + c * time_step`` seconds; row ``r``
        plunges to ``depth_start + r * depth_step`` mm.  The grid is centred
        on the bed and shifted by ``(offset_x, offset_y)``.

        Parameters
        ----------
        grid : TestGridConfig
            Grid layout, timing and temperature.
        bed : BedDimensions
            Bed size used for centring and bounds checking.
        offset_x, offset_y : float
            Shift of the grid from the bed centre in mm.
        start_gcode : str | None
            Preamble; None uses ``grid.start_gcode``.
        bed_leveling : bool
            Emit a leveling block over the grid extent.

        Returns
        -------
        str
            Complete G-code program.

        Raises
        ------
        GCodeError
            If any grid point falls outside the bed.
        """
        total = grid.total_points
        start_x = (bed.width - grid.width_mm) / 2.0 + offset_x
        start_y = (bed.height - grid.height_mm) / 2.0 + offset_y
        self._validate_xy(start_x, start_y, bed)
        self._validate_xy(start_x + grid.width_mm, start_y + grid.height_mm, bed)

        last_time = grid.time_start_s + (grid.time_count - 1) * grid.time_step_s
        last_depth = grid.depth_start_mm + (grid.depth_count - 1) * grid.depth_step_mm

        buf = StringIO()
        self._write_header(buf, "Wood Engraving Test Grid Generator")
        buf.write(";\n")
        buf.write(";===== TEST GRID PARAMETERS =====\n")
        buf.write(
            f";===== Time Range: {_num(grid.time_start_s)}s to {_num(last_time)}s"
            f" (step: {_num(grid.time_step_s)}s) =====\n"
        )
        buf.write(
            f";===== Depth Range: {_num(grid.depth_start_mm)}mm to {last_depth:.2f}mm"
            f" (step: {_num(grid.depth_step_mm)}mm) =====\n"
        )
        buf.write(
            f";===== Grid Size: {grid.time_count} x {grid.depth_count}"
            f" = {total} points =====\n"
        )
        buf.write(f";===== Spacing: {_num(grid.spacing_mm)}mm =====\n")
        buf.write(
            f";===== Bed Size: {_num(bed.width)}x{_num(bed.height)}mm"
            f" | Resolution: {_num(grid.spacing_mm)}mm =====\n"
        )
        buf.write(
            f";===== Y Acceleration: {_num(self._motion.accel_mm_s2)}mm/s^2 =====\n"
        )
        buf.write("\n\n")
        preamble = grid.start_gcode if start_gcode is None else start_gcode
        buf.write(f"{preamble}\n")

        if bed_leveling:
            self._write_leveling(buf, start_x, start_y, grid.width_mm, grid.height_mm)
        self._write_heating(buf, grid.temperature_c)

        buf.write("\n\n")
        buf.write(";===== TEST GRID START =====\n")
        buf.write(";===== X-axis: Time (columns) =====\n")
        buf.write(";===== Y-axis: Depth (rows) =====\n")
        buf.write("\n")

        dwell_times = [
            grid.time_start_s + c * grid.time_step_s for c in range(grid.time_count)
        ]
        total_time = grid.depth_count * sum(
            t + GRID_POINT_OVERHEAD_S for t in dwell_times
        )
        elapsed = 0.0
        index = 0
        for row in range(grid.depth_count):
            depth = grid.depth_start_mm + row * grid.depth_step_mm
            for col, dwell in enumerate(dwell_times):
                index += 1
                progress = _percent(index, total)
                remaining_min = math.ceil((total_time - elapsed) / 60.0)
                elapsed += dwell + GRID_POINT_OVERHEAD_S

                buf.write(f"M73 P{progress} R{remaining_min}\n")
                if index == 1 or (
                    progress % 10 == 0
                    and math.floor((index - 2) / total * 100.0) != progress
                ):
                    buf.write(
                        f";===== Progress: {progress}% | {index}/{total} points"
                        f" | ~{remaining_min}min remaining =====\n"
                    )
                buf.write(f";----- Point {index}/{total} -----\n")
                buf.write(
                    f";----- Row {row + 1}/{grid.depth_count},"
                    f" Col {col + 1}/{grid.time_count} -----\n"
                )
                buf.write(f";----- Depth: {depth:.2f}mm, Time: {_num(dwell)}s -----\n")
                self._write_burn(
                    buf,
                    start_x + col * grid.spacing_mm,
                    start_y + row * grid.spacing_mm,
                    depth,
                    dwell,
                )

        logger.info(
            "Generated test grid: %d points, %.1fx%.1f mm at (%.1f, %.1f)",
            total, grid.width_mm, grid.height_mm, start_x, start_y,
        )
        buf.write(";===== TEST GRID COMPLETE =====\n")
        self._write_footer(buf)
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _write_header(self, buf: StringIO, title: str) -> None:
        buf.write(f";===== {title} v{__version__} =====\n")
        buf.write(";===== Units: mm, absolute positioning =====\n")

    def _write_leveling(
        self, buf: StringIO, x: float, y: float, width: float, height: float,
    ) -> None:
        m = self._motion
        buf.write("\n")
        buf.write(";===== BED LEVELLING (minimal area) =====\n")
        buf.write("G90\n")
        buf.write("G21\n")
        buf.write(f"G1 Z{_num(m.safe_z_mm)} F{_num(m.level_feed_mm_min)}\n")
        buf.write("G29.2 S1\n")
        buf.write(f"G29 A1 X{x:.2f} Y{y:.2f} I{width:.2f} J{height:.2f}\n")
        buf.write("M400\n")
        buf.write("M500\n")

    def _write_heating(self, buf: StringIO, temperature: float) -> None:
        m = self._motion
        t = _num(temperature)
        a = _num(m.accel_mm_s2)
        buf.write("\n")
        buf.write(f";===== HEAT TO {t}C =====\n")
        buf.write(f"M104 S{t}\n")
        buf.write(f"M109 S{t}\n")
        buf.write(f"G0 Z{_num(m.heat_z_mm)} F{_num(m.z_feed_mm_min)}\n")
        buf.write("\n")
        buf.write(";===== LIMIT Y ACCELERATION =====\n")
        buf.write(f"M204 S{a} T{a}\n")
        buf.write(f"M204 P{a}\n")

    def _write_burn(
        self, buf: StringIO, x: float, y: float, depth: float, dwell: float,
    ) -> None:
        m = self._motion
        safe = f"G0 Z{_num(m.safe_z_mm)} F{_num(m.z_feed_mm_min)}\n"
        buf.write(safe)
        buf.write(f"G0 X{x:.2f} Y{y:.2f} F{_num(m.xy_feed_mm_min)}\n")
        buf.write(f"G0 Z{depth:.2f} F{_num(m.plunge_feed_mm_min)}\n")
        buf.write(f"G4 S{_num(dwell)}\n")
        buf.write(safe)
        buf.write("\n")

    def _write_footer(self, buf: StringIO) -> None:
        m = self._motion
        buf.write(";===== END =====\n")
        buf.write("M104 S0\n")
        buf.write(f"G0 Z{_num(m.park_z_mm)} F{_num(m.z_feed_mm_min)}\n")
        buf.write("G28 X Y\n")
        buf.write("M84\n")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_xy(self, x: float, y: float, bed: BedDimensions) -> None:
        """Reject positions outside the bed.

        Raises
        ------
        GCodeError
            If either coordinate is out of bounds.
        """
        if x < 0 or x > bed.width:
            raise GCodeError(f"X={x:.2f} mm outside bed [0, {bed.width:.1f}]")
        if y < 0 or y > bed.height:
            raise GCodeError(f"Y={y:.2f} mm outside bed [0, {bed.height:.1f}]")
