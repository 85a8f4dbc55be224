"""End-to-end tests: raster and QR in, engraving script out."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from wood_engraver.configs.loader import EngraverConfig
from wood_engraver.configs.schemas import EngravingJobV1
from wood_engraver.errors import EmptyInputError, InvalidInputError
from wood_engraver.gcode.parser import parse_gcode
from wood_engraver.geometry.transforms import BedDimensions, GridTransform
from wood_engraver.imaging.extractor import PointPattern
from wood_engraver.imaging.filters import ProcessingMode
from wood_engraver.pipeline import (
    build_gcode,
    extract_image_points,
    points_for_output,
    run_job,
)
from wood_engraver.points import Point, PointSource, count_by_source


@pytest.fixture()
def black_rgb() -> np.ndarray:
    return np.zeros((20, 20, 3), dtype=np.uint8)


@pytest.fixture()
def sign_png(tmp_path: Path) -> Path:
    """64x64 white image with a dark centre square."""
    pixels = np.full((64, 64, 3), 255, dtype=np.uint8)
    pixels[24:40, 24:40] = 0
    path = tmp_path / "sign.png"
    Image.fromarray(pixels).save(path)
    return path


class TestExtractImagePoints:
    def test_black_square(self, black_rgb) -> None:
        bed = BedDimensions(20, 20)
        points = extract_image_points(black_rgb, bed, 5.0, 128)
        assert len(points) == 16
        for p in points:
            assert 0.0 <= p.x <= 20.0 and 0.0 <= p.y <= 20.0
            assert p.source is PointSource.IMAGE

    def test_white_image_empty(self) -> None:
        white = np.full((20, 20, 3), 255, dtype=np.uint8)
        assert extract_image_points(white, BedDimensions(20, 20), 5.0, 128) == []

    def test_invert(self) -> None:
        white = np.full((20, 20, 3), 255, dtype=np.uint8)
        points = extract_image_points(white, BedDimensions(20, 20), 5.0, 128, invert=True)
        assert len(points) > 0

    def test_triangle_pattern(self, black_rgb) -> None:
        bed = BedDimensions(20, 20)
        square = extract_image_points(black_rgb, bed, 5.0, 128)
        triangle = extract_image_points(
            black_rgb, bed, 5.0, 128, pattern=PointPattern.TRIANGLE,
        )
        assert triangle and triangle != square

    def test_dither_mode(self, black_rgb) -> None:
        points = extract_image_points(
            black_rgb, BedDimensions(20, 20), 5.0, 128, mode=ProcessingMode.DITHER,
        )
        assert len(points) == 16

    def test_string_options(self, black_rgb) -> None:
        points = extract_image_points(
            black_rgb, BedDimensions(20, 20), 5.0, 128, pattern="square", mode="standard",
        )
        assert len(points) == 16


class TestBuildGcode:
    def test_off_bed_points_dropped(self, config: EngraverConfig, params) -> None:
        points = [Point(10, 10), Point(250, 10)]
        kept = points_for_output(points, GridTransform(offset_x=10), params.bed)
        assert [p.key for p in kept] == [(20.0, 10.0)]

    def test_script_and_bed_points(self, config: EngraverConfig, params) -> None:
        points = [Point(10, 10), Point(20, 10), Point(500, 10)]
        gcode, bed_points = build_gcode(points, params, config, pattern_label="triangle")
        assert len(bed_points) == 2
        assert ";===== ENGRAVING 2 POINTS =====" in gcode
        assert ";===== Point Pattern: triangle =====" in gcode

    def test_leveling_override(self, config: EngraverConfig, params) -> None:
        gcode, _ = build_gcode([Point(10, 10)], params, config, bed_leveling=False)
        assert "G29" not in gcode


class TestRunJob:
    def test_image_and_qr(self, config: EngraverConfig, sign_png: Path, fake_encoder) -> None:
        job = EngravingJobV1(
            image=str(sign_png),
            step_size_mm=8.0,
            qr={"text": "hello", "offset_x": 80, "offset_y": 80, "dots_per_module": 2},
            output_name="sign",
        )
        result = run_job(job, config, encoder=fake_encoder)

        counts = count_by_source(result.points)
        assert counts[PointSource.QR_CODE] == 8
        assert counts[PointSource.IMAGE] > 0
        assert result.file_name == "sign.gcode"
        assert result.parameters.step_size == 8.0
        assert len(result.bed_points) == len(result.points)
        assert f";===== ENGRAVING {len(result.bed_points)} POINTS =====" in result.gcode
        assert "Resolution: 8mm" in result.gcode
        assert fake_encoder.calls == [("hello", config.qr.error_correction)]

    def test_script_parses_back(self, config: EngraverConfig, sign_png: Path) -> None:
        job = EngravingJobV1(image=str(sign_png), step_size_mm=8.0, dwell_s=4, depth_z_mm=-0.7)
        result = run_job(job, config)
        imported = parse_gcode(result.gcode, result.file_name, config.script_parameters())
        assert {p.key for p in imported.points} == {p.key for p in result.bed_points}
        assert imported.parameters == result.parameters

    def test_qr_only(self, config: EngraverConfig, fake_encoder) -> None:
        job = EngravingJobV1(qr={"text": "hello"}, output_name="qr_code")
        result = run_job(job, config, encoder=fake_encoder)
        assert all(p.source is PointSource.QR_CODE for p in result.points)
        assert len(result.points) == 2 * config.qr.dots_per_module ** 2

    def test_grid_transform_applied(self, config: EngraverConfig, fake_encoder) -> None:
        base = run_job(EngravingJobV1(qr={"text": "a"}), config, encoder=fake_encoder)
        moved = run_job(
            EngravingJobV1(qr={"text": "a"}, grid={"offset_x": 10, "offset_y": -5}),
            config,
            encoder=fake_encoder,
        )
        assert {(p.x + 10, p.y - 5) for p in base.bed_points} == {
            (p.x, p.y) for p in moved.bed_points
        }

    def test_blank_image_raises(self, config: EngraverConfig, tmp_path: Path) -> None:
        path = tmp_path / "white.png"
        Image.fromarray(np.full((8, 8, 3), 255, dtype=np.uint8)).save(path)
        with pytest.raises(EmptyInputError):
            run_job(EngravingJobV1(image=str(path)), config)

    def test_unreadable_image(self, config: EngraverConfig, tmp_path: Path) -> None:
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(InvalidInputError):
            run_job(EngravingJobV1(image=str(path)), config)
