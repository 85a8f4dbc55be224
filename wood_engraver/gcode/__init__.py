"""
G-code module.

Nearest-neighbour tour ordering, the engraving script emitter (including
the calibration test grid) and the tolerant script parser.
"""

from wood_engraver.gcode.generator import (
    SCRIPT_EXTENSION,
    EngravingGCodeGenerator,
    GCodeError,
    output_file_name,
)
from wood_engraver.gcode.optimizer import nearest_neighbor_order, tour_length
from wood_engraver.gcode.parser import ImportedScript, parse_gcode, tokenize_line

__all__ = [
    "SCRIPT_EXTENSION",
    "EngravingGCodeGenerator",
    "GCodeError",
    "ImportedScript",
    "nearest_neighbor_order",
    "output_file_name",
    "parse_gcode",
    "tokenize_line",
    "tour_length",
]
