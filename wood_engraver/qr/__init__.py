"""
QR point generation module.

Turns a QR module matrix (from an injected encoder) into clusters of
``PointSource.QR_CODE`` burn points centred on the bed.
"""

from wood_engraver.qr.generator import (
    Bounds,
    ModuleMatrixEncoder,
    QrcodeEncoder,
    QrPattern,
    generate_qr_points,
    module_matrix,
)

__all__ = [
    "Bounds",
    "ModuleMatrixEncoder",
    "QrcodeEncoder",
    "QrPattern",
    "generate_qr_points",
    "module_matrix",
]
