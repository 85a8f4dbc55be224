"""Tests for tour ordering and the G-code generator.

Validates the nearest-neighbour order, load-bearing header markers, the
leveling block scoped to the point bounding box, per-point burn cycles,
progress annotations, bed-limit rejection and the calibration grid.
"""

from __future__ import annotations

import pytest

from wood_engraver.configs.loader import EngraverConfig, ScriptParameters
from wood_engraver.gcode.generator import (
    EngravingGCodeGenerator,
    GCodeError,
    estimate_seconds,
    output_file_name,
)
from wood_engraver.gcode.optimizer import nearest_neighbor_order, tour_length
from wood_engraver.points import Point


@pytest.fixture()
def gen(config: EngraverConfig) -> EngravingGCodeGenerator:
    return EngravingGCodeGenerator(config.motion)


def _lines(gcode: str) -> list[str]:
    return gcode.splitlines()


# ---------------------------------------------------------------------------
# Tour optimizer
# ---------------------------------------------------------------------------


class TestOptimizer:
    def test_nearest_first(self) -> None:
        points = [Point(0, 0), Point(10, 10), Point(1, 1)]
        assert nearest_neighbor_order(points) == [Point(0, 0), Point(1, 1), Point(10, 10)]

    def test_empty(self) -> None:
        assert nearest_neighbor_order([]) == []

    def test_single(self) -> None:
        assert nearest_neighbor_order([Point(3, 4)]) == [Point(3, 4)]

    def test_starts_at_first_input(self) -> None:
        points = [Point(5, 5), Point(0, 0), Point(6, 5)]
        assert nearest_neighbor_order(points)[0] == Point(5, 5)

    def test_tie_goes_to_earliest(self) -> None:
        points = [Point(0, 0), Point(-1, 0), Point(1, 0)]
        assert nearest_neighbor_order(points)[1] == Point(-1, 0)

    def test_permutation(self) -> None:
        points = [Point(x, (x * 7) % 11) for x in range(30)]
        ordered = nearest_neighbor_order(points)
        assert sorted(ordered, key=lambda p: p.key) == sorted(points, key=lambda p: p.key)

    def test_tour_length(self) -> None:
        assert tour_length([Point(0, 0), Point(3, 4), Point(3, 0)]) == 9.0
        assert tour_length([]) == 0


# ---------------------------------------------------------------------------
# Engraving script
# ---------------------------------------------------------------------------


class TestHeader:
    def test_markers(self, gen, params: ScriptParameters) -> None:
        gcode = gen.generate([Point(10, 10)], params)
        assert ";===== Bed Size: 256x256mm | Resolution: 2mm =====" in gcode
        assert "Engraving Z: -0.5mm" in gcode
        assert "Safe Z: 5mm" in gcode
        assert ";===== Point Pattern: square =====" in gcode

    def test_start_gcode_verbatim(self, gen, params) -> None:
        gcode = gen.generate([Point(10, 10)], params, start_gcode="G28\nM117 Hello")
        assert "G28\nM117 Hello\n" in gcode

    def test_heating_and_acceleration(self, gen, params) -> None:
        gcode = gen.generate([Point(10, 10)], params)
        lines = _lines(gcode)
        assert "M104 S300" in lines
        assert "M109 S300" in lines
        assert "M204 S1000 T1000" in lines
        assert "M204 P1000" in lines

    def test_estimated_time(self, gen, params) -> None:
        points = [Point(x, 10) for x in range(0, 40, 2)]
        gcode = gen.generate(points, params)
        # 20 * (10 + 2) + 20 * 0.5 = 250 s
        assert estimate_seconds(20, 10) == 250
        assert ";===== Estimated time: 0h 4m =====" in gcode
        assert ";===== ENGRAVING 20 POINTS =====" in gcode

    def test_numbers_never_scientific(self, gen) -> None:
        params = ScriptParameters(
            bed_width=1e6, bed_height=1e6, temperature=300.0,
            dwell_time=1e-5, depth_z=-0.0, step_size=0.123456789,
        )
        gcode = gen.generate([Point(10, 10)], params)
        assert "Bed Size: 1000000x1000000mm" in gcode
        assert "Resolution: 0.123457mm" in gcode
        assert "Engraving Z: 0mm" in gcode
        assert "G4 S0.00001" in _lines(gcode)
        assert "e+" not in gcode


class TestLeveling:
    def test_bounding_box(self, gen, params) -> None:
        points = [Point(10, 20), Point(50.5, 25), Point(30, 80)]
        gcode = gen.generate(points, params)
        assert "G29 A1 X10.00 Y20.00 I40.50 J60.00" in gcode
        assert "G29.2 S1" in gcode

    def test_disabled(self, gen, params) -> None:
        gcode = gen.generate([Point(10, 20)], params, bed_leveling=False)
        assert "G29" not in gcode

    def test_empty_points_skip_leveling(self, gen, params) -> None:
        gcode = gen.generate([], params)
        assert "G29 A1" not in gcode
        assert ";===== ENGRAVING 0 POINTS =====" in gcode
        assert _lines(gcode)[-1] == "M84"


class TestBurnCycle:
    def test_single_point_block(self, gen, params) -> None:
        lines = _lines(gen.generate([Point(12.3, 45.6)], params))
        i = lines.index("G0 X12.30 Y45.60 F3000")
        assert lines[i - 1] == "G0 Z5 F1000"
        assert lines[i + 1] == "G0 Z-0.50 F300"
        assert lines[i + 2] == "G4 S10"
        assert lines[i + 3] == "G0 Z5 F1000"

    def test_one_dwell_per_point(self, gen, params) -> None:
        points = [Point(x, y) for x in range(10, 30, 5) for y in range(10, 30, 5)]
        gcode = gen.generate(points, params)
        assert _lines(gcode).count("G4 S10") == len(points)

    def test_points_emitted_in_tour_order(self, gen, params) -> None:
        gcode = gen.generate([Point(0, 0), Point(10, 10), Point(1, 1)], params)
        moves = [l for l in _lines(gcode) if l.startswith("G0 X")]
        assert moves == [
            "G0 X0.00 Y0.00 F3000",
            "G0 X1.00 Y1.00 F3000",
            "G0 X10.00 Y10.00 F3000",
        ]

    def test_outside_bed_rejected(self, gen, params) -> None:
        with pytest.raises(GCodeError):
            gen.generate([Point(10, 10), Point(256.1, 10)], params)
        with pytest.raises(GCodeError):
            gen.generate([Point(-0.1, 10)], params)

    def test_bed_edges_allowed(self, gen, params) -> None:
        gen.generate([Point(0, 0), Point(256, 256)], params)


class TestProgress:
    def test_m73_per_point(self, gen, params) -> None:
        points = [Point(x, 10) for x in range(0, 40, 2)]
        lines = _lines(gen.generate(points, params))
        m73 = [l for l in lines if l.startswith("M73 ")]
        assert len(m73) == 20
        assert m73[0] == "M73 P0 R5"
        assert m73[-1] == "M73 P95 R1"

    def test_progress_comments_every_ten_percent(self, gen, params) -> None:
        points = [Point(x, 10) for x in range(0, 40, 2)]
        lines = _lines(gen.generate(points, params))
        comments = [l for l in lines if l.startswith(";===== Progress:")]
        assert len(comments) == 11
        assert comments[0] == ";===== Progress: 0% | 0/20 points | ~5min remaining ====="
        assert comments[-1] == ";===== Progress: 100% | COMPLETE ====="

    def test_trailer(self, gen, params) -> None:
        lines = _lines(gen.generate([Point(1, 1)], params))
        assert lines[-4:] == ["M104 S0", "G0 Z30 F1000", "G28 X Y", "M84"]
        assert ";===== END =====" in lines


class TestFileName:
    def test_extension_added(self) -> None:
        assert output_file_name("sign") == "sign.gcode"

    def test_extension_not_doubled(self) -> None:
        assert output_file_name("sign.gcode") == "sign.gcode"

    def test_default(self) -> None:
        assert output_file_name("  ") == "engraving.gcode"
        assert output_file_name(None) == "engraving.gcode"


# ---------------------------------------------------------------------------
# Calibration grid
# ---------------------------------------------------------------------------


class TestTestGrid:
    def test_point_count_and_dwells(self, gen, config: EngraverConfig) -> None:
        grid = config.test_grid
        gcode = gen.generate_test_grid(grid, config.bed)
        lines = _lines(gcode)
        dwells = [l for l in lines if l.startswith("G4 S")]
        assert len(dwells) == grid.total_points
        assert dwells[: grid.time_count] == [
            f"G4 S{grid.time_start_s + c * grid.time_step_s:g}" for c in range(grid.time_count)
        ]

    def test_depth_rows(self, gen, config: EngraverConfig) -> None:
        grid = config.test_grid
        lines = _lines(gen.generate_test_grid(grid, config.bed))
        plunges = [l for l in lines if l.startswith("G0 Z") and "F300" in l]
        first_row = plunges[: grid.time_count]
        last_row = plunges[-grid.time_count:]
        assert set(first_row) == {f"G0 Z{grid.depth_start_mm:.2f} F300"}
        last_depth = grid.depth_start_mm + (grid.depth_count - 1) * grid.depth_step_mm
        assert set(last_row) == {f"G0 Z{last_depth:.2f} F300"}

    def test_centred_with_offset(self, gen, config: EngraverConfig) -> None:
        grid = config.test_grid
        gcode = gen.generate_test_grid(grid, config.bed, offset_x=5, offset_y=-5)
        start_x = (config.bed.width - grid.width_mm) / 2 + 5
        start_y = (config.bed.height - grid.height_mm) / 2 - 5
        assert f"G0 X{start_x:.2f} Y{start_y:.2f} F3000" in gcode
        assert (
            f"G29 A1 X{start_x:.2f} Y{start_y:.2f} "
            f"I{grid.width_mm:.2f} J{grid.height_mm:.2f}"
        ) in gcode

    def test_annotations(self, gen, config: EngraverConfig) -> None:
        gcode = gen.generate_test_grid(config.test_grid, config.bed, bed_leveling=False)
        assert ";----- Point 1/100 -----" in gcode
        assert ";----- Row 1/10, Col 1/10 -----" in gcode
        assert ";===== TEST GRID COMPLETE =====" in gcode
        assert "G29" not in gcode

    def test_off_bed_rejected(self, gen, config: EngraverConfig) -> None:
        with pytest.raises(GCodeError):
            gen.generate_test_grid(config.test_grid, config.bed, offset_x=200)
