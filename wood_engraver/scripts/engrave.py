#!/usr/bin/env python3
"""
Engrave Script.

Turn an image (or a job file) into an engraving G-code script, or emit the
dwell-time x depth calibration grid.

Usage:
    wood-engrave --job jobs/sign.yaml
    wood-engrave --image logo.png --pattern triangle --step 1.5 -o logo
    wood-engrave --image logo.png --qr "https://example.com" --qr-offset 60 -60
    wood-engrave --test-grid --grid-offset 0 20
    wood-engrave --image logo.png --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from wood_engraver.configs.loader import ConfigError, load_config
from wood_engraver.configs.schemas import EngravingJobV1, load_job
from wood_engraver.errors import EngraverError
from wood_engraver.gcode.generator import EngravingGCodeGenerator, GCodeError, output_file_name
from wood_engraver.pipeline import run_job
from wood_engraver.utils.fs import atomic_write_text
from wood_engraver.utils.logging_config import install_excepthook, setup_logging

logger = logging.getLogger(__name__)


def _job_from_args(args: argparse.Namespace) -> EngravingJobV1:
    data: dict = {"output_name": args.output or "engraving"}
    if args.image:
        data["image"] = args.image
        data["placement"] = {
            "scale": args.scale,
            "offset_x": args.image_offset[0],
            "offset_y": args.image_offset[1],
            "rotation_deg": args.rotation,
        }
        if not args.output:
            data["output_name"] = Path(args.image).stem
    if args.qr:
        data["qr"] = {
            "text": args.qr,
            "offset_x": args.qr_offset[0],
            "offset_y": args.qr_offset[1],
            "dots_per_module": args.qr_density,
        }
    for key, value in (
        ("pattern", args.pattern),
        ("mode", args.mode),
        ("step_size_mm", args.step),
        ("threshold", args.threshold),
        ("depth_z_mm", args.depth),
        ("dwell_s", args.dwell),
        ("temperature_c", args.temperature),
    ):
        if value is not None:
            data[key] = value
    if args.invert:
        data["invert"] = True
    return EngravingJobV1(**data)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Generate wood engraving G-code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", "-c", type=str, help="Machine config (machine.yaml)")
    parser.add_argument("--output", "-o", type=str, help="Output name (without .gcode)")
    parser.add_argument("--out-dir", type=str, default=".", help="Output directory")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print G-code to stdout instead of writing a file",
    )
    parser.add_argument("--log-level", type=str, help="Override config log level")

    # Job source
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--job", "-j", type=str, help="Job file (YAML, engraving_job.v1)")
    source.add_argument("--image", "-i", type=str, help="Raster image to engrave")
    source.add_argument(
        "--test-grid",
        action="store_true",
        help="Emit the calibration test grid from machine.yaml",
    )
    source.add_argument("--qr-only", type=str, metavar="TEXT", help="Engrave only a QR code")

    # Image options
    parser.add_argument("--pattern", choices=["square", "triangle", "contour"])
    parser.add_argument("--mode", choices=["standard", "edge", "dither"])
    parser.add_argument("--invert", action="store_true", help="Burn light areas")
    parser.add_argument("--step", type=float, help="Point pitch (mm)")
    parser.add_argument("--threshold", type=int, help="Intensity threshold 0-255")
    parser.add_argument("--scale", type=float, default=1.0, help="Image scale")
    parser.add_argument("--rotation", type=float, default=0.0, help="Image rotation (deg)")
    parser.add_argument(
        "--image-offset", type=float, nargs=2, default=(0.0, 0.0),
        metavar=("X", "Y"), help="Image offset from bed centre (mm)",
    )

    # Machine overrides
    parser.add_argument("--depth", type=float, help="Plunge depth (mm)")
    parser.add_argument("--dwell", type=float, help="Dwell per point (s)")
    parser.add_argument("--temperature", type=float, help="Nozzle temperature (C)")

    # QR
    parser.add_argument("--qr", type=str, help="QR text merged with the image")
    parser.add_argument(
        "--qr-offset", type=float, nargs=2, default=(0.0, 0.0), metavar=("X", "Y"),
    )
    parser.add_argument("--qr-density", type=int, help="Dots per QR module")

    # Test grid
    parser.add_argument(
        "--grid-offset", type=float, nargs=2, default=(0.0, 0.0), metavar=("X", "Y"),
        help="Test grid offset from bed centre (mm)",
    )
    parser.add_argument("--no-leveling", action="store_true", help="Skip bed leveling")

    args = parser.parse_args(argv)

    # Load config
    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(
        args.log_level or config.logging.level,
        config.logging.file,
        json=config.logging.json,
        quiet_libs=["PIL"],
        context={"app": "engrave"},
    )
    install_excepthook()

    if args.no_leveling:
        config = replace(config, engraving=replace(config.engraving, bed_leveling=False))

    try:
        if args.test_grid:
            generator = EngravingGCodeGenerator(config.motion)
            gcode = generator.generate_test_grid(
                config.test_grid,
                config.bed,
                offset_x=args.grid_offset[0],
                offset_y=args.grid_offset[1],
                bed_leveling=config.engraving.bed_leveling,
            )
            file_name = output_file_name(args.output or "test_grid")
        else:
            if args.job:
                job = load_job(args.job)
            else:
                if args.qr_only:
                    args.qr = args.qr_only
                    args.output = args.output or "qr_code"
                job = _job_from_args(args)
            result = run_job(job, config)
            gcode = result.gcode
            file_name = result.file_name
    except (EngraverError, GCodeError, ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.dry_run:
        print(gcode)
        return

    out_path = Path(args.out_dir) / file_name
    atomic_write_text(out_path, gcode)
    logger.info("Wrote %s", out_path)


if __name__ == "__main__":
    main()
