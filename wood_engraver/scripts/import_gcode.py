#!/usr/bin/env python3
"""
Import G-code Script.

Recover burn points and machine parameters from an engraving script and
optionally dump them as YAML or re-emit a fresh script.

Usage:
    wood-engrave-import sign.gcode
    wood-engrave-import sign.gcode --points-out sign_points.yaml
    wood-engrave-import sign.gcode --regenerate -o sign_v2
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from wood_engraver.configs.loader import ConfigError, load_config
from wood_engraver.gcode.generator import EngravingGCodeGenerator, GCodeError, output_file_name
from wood_engraver.gcode.parser import parse_gcode
from wood_engraver.utils.fs import atomic_write_text, atomic_yaml_dump
from wood_engraver.utils.logging_config import install_excepthook, setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Import an engraving G-code script")
    parser.add_argument("script", type=str, help="G-code file to import")
    parser.add_argument("--config", "-c", type=str, help="Machine config (machine.yaml)")
    parser.add_argument("--points-out", type=str, help="Write points + parameters as YAML")
    parser.add_argument(
        "--regenerate",
        action="store_true",
        help="Re-emit a script from the imported points",
    )
    parser.add_argument("--output", "-o", type=str, help="Name for the regenerated script")
    parser.add_argument("--out-dir", type=str, default=".", help="Output directory")
    parser.add_argument("--log-level", type=str, help="Override config log level")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(
        args.log_level or config.logging.level,
        config.logging.file,
        json=config.logging.json,
        context={"app": "import"},
    )
    install_excepthook()

    path = Path(args.script)
    if not path.exists():
        logger.error("Script not found: %s", path)
        sys.exit(1)

    imported = parse_gcode(
        path.read_text(encoding="utf-8", errors="replace"),
        path.name,
        config.script_parameters(),
        preheat_temperature=config.engraving.preheat_temperature_c,
    )
    params = imported.parameters

    if args.points_out:
        atomic_yaml_dump(
            {
                "file_name": imported.file_name,
                "parameters": {
                    "bed_width": params.bed_width,
                    "bed_height": params.bed_height,
                    "temperature": params.temperature,
                    "dwell_time": params.dwell_time,
                    "depth_z": params.depth_z,
                    "step_size": params.step_size,
                    "suggested_step_size": imported.suggested_step_size,
                },
                "points": [[p.x, p.y] for p in imported.points],
            },
            args.points_out,
        )
        logger.info("Wrote %d points to %s", len(imported.points), args.points_out)

    if args.regenerate:
        generator = EngravingGCodeGenerator(config.motion)
        try:
            gcode = generator.generate(
                imported.points,
                params,
                start_gcode=config.engraving.start_gcode,
                bed_leveling=config.engraving.bed_leveling,
                pattern_label="imported",
            )
        except GCodeError as e:
            logger.error("%s", e)
            sys.exit(1)
        out_path = Path(args.out_dir) / output_file_name(args.output or imported.file_name)
        atomic_write_text(out_path, gcode)
        logger.info("Wrote %s", out_path)


if __name__ == "__main__":
    main()
