"""
Wood Engraving Package.

Converts raster images (or previously generated scripts) into discrete burn
points on a heated-nozzle engraving machine and serializes them as G-code.

Subpackages:
    configs: Machine/engraving configuration loading and job schema
    imaging: Grayscale reduction, binarization filters, thinning, point extraction
    geometry: Grid-space <-> bed-space coordinate transforms
    qr: QR module matrix -> clustered burn points
    gcode: Tour optimization, script emitter and parser
    utils: Logging setup and atomic file helpers

All coordinates are in millimetres and rounded to 0.1 mm at every
production site.
"""

__version__ = "4.3.2"

__all__ = ["configs", "imaging", "geometry", "qr", "gcode", "utils"]
