"""QR code -> clustered burn points.

The module matrix comes from an injected encoder (anything with
``encode(text, error_correction) -> square boolean matrix``).  The default
``QrcodeEncoder`` wraps the ``qrcode`` library with automatic version
selection and no quiet zone.

Layout (grid space, +Y up):
    module_size   = dots_per_module * pitch
    physical_size = module_count * module_size
    origin        = bed centre - physical_size / 2 + offset

Each dark module becomes a ``dots_per_module x dots_per_module`` block of
points spaced ``pitch`` apart.  Matrix row 0 is placed at the top (largest Y)
so the engraved code reads the same way it prints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np

from wood_engraver.errors import (
    EmptyInputError,
    EncoderUnavailableError,
    InvalidInputError,
)
from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.points import Point, PointSource

logger = logging.getLogger(__name__)

DEFAULT_DOTS_PER_MODULE = 3
DEFAULT_ERROR_CORRECTION = "M"


class ModuleMatrixEncoder(Protocol):
    """Contract of the external QR module-matrix encoder."""

    def encode(
        self, text: str, error_correction: str = DEFAULT_ERROR_CORRECTION,
    ) -> Sequence[Sequence[bool]]:
        ...


class QrcodeEncoder:
    """``ModuleMatrixEncoder`` backed by the ``qrcode`` library."""

    _LEVELS = ("L", "M", "Q", "H")

    def encode(
        self, text: str, error_correction: str = DEFAULT_ERROR_CORRECTION,
    ) -> list[list[bool]]:
        level = error_correction.upper()
        if level not in self._LEVELS:
            raise InvalidInputError(
                f"Unknown error-correction level {error_correction!r}"
            )
        try:
            import qrcode
            from qrcode.exceptions import DataOverflowError
        except ImportError as exc:
            raise EncoderUnavailableError(
                "QR encoder library 'qrcode' is not installed"
            ) from exc

        qr = qrcode.QRCode(
            version=None,
            error_correction=getattr(qrcode.constants, f"ERROR_CORRECT_{level}"),
            border=0,
        )
        try:
            qr.add_data(text)
            qr.make(fit=True)
        except DataOverflowError as exc:
            raise InvalidInputError(
                f"Text too long for a QR code ({len(text)} chars)"
            ) from exc
        return [[bool(cell) for cell in row] for row in qr.get_matrix()]


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle in grid mm."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class QrPattern:
    """Result of :func:`generate_qr_points`.

    Parameters
    ----------
    points : list[Point]
        ``PointSource.QR_CODE`` points.
    module_count : int
        Side of the module matrix.
    physical_size : float
        Side of the engraved code in mm.
    pitch : float
        Point spacing in mm.
    dots_per_module : int
        Resolved density.
    bounds : Bounds
        Footprint of the code (hit-testing, density adjustment).
    """

    points: list[Point]
    module_count: int
    physical_size: float
    pitch: float
    dots_per_module: int
    bounds: Bounds


def _encode(
    text: str, encoder: ModuleMatrixEncoder | None, error_correction: str,
) -> np.ndarray:
    encoder = encoder if encoder is not None else QrcodeEncoder()
    try:
        raw = encoder.encode(text, error_correction)
    except (InvalidInputError, EncoderUnavailableError):
        raise
    except Exception as exc:
        raise EncoderUnavailableError(f"QR encoder failed: {exc}") from exc

    matrix = np.asarray(raw, dtype=bool)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.size == 0:
        raise EncoderUnavailableError(
            f"QR encoder returned a non-square matrix of shape {matrix.shape}"
        )
    return matrix


def module_matrix(
    text: str,
    encoder: ModuleMatrixEncoder | None = None,
    error_correction: str = DEFAULT_ERROR_CORRECTION,
) -> np.ndarray | None:
    """Boolean module matrix for previews; None for blank text."""
    if not text or not text.strip():
        return None
    return _encode(text, encoder, error_correction)


def generate_qr_points(
    text: str,
    pitch: float,
    bed: BedDimensions,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
    dots_per_module: int | None = None,
    encoder: ModuleMatrixEncoder | None = None,
    error_correction: str = DEFAULT_ERROR_CORRECTION,
) -> QrPattern:
    """Encode *text* and lay its dark modules out as point clusters.

    Parameters
    ----------
    text : str
        Text or URL to encode.
    pitch : float
        Spacing between points in mm.
    bed : BedDimensions
        Bed size; the code is centred on the bed.
    offset_x, offset_y : float
        Shift of the code from the bed centre in mm.
    dots_per_module : int | None
        Points per module side; None uses the default of 3.
    encoder : ModuleMatrixEncoder | None
        Matrix encoder; None uses :class:`QrcodeEncoder`.
    error_correction : str
        Error-correction level passed to the encoder.

    Returns
    -------
    QrPattern

    Raises
    ------
    EmptyInputError
        If *text* is blank.
    InvalidInputError
        If pitch or density is not positive.
    EncoderUnavailableError
        If the encoder is missing or fails.
    """
    if not text or not text.strip():
        raise EmptyInputError("QR text cannot be empty")
    if not pitch > 0:
        raise InvalidInputError(f"Step size must be positive, got {pitch}")

    density = DEFAULT_DOTS_PER_MODULE if dots_per_module is None else int(dots_per_module)
    if density < 1:
        raise InvalidInputError(
            f"dots_per_module must be >= 1, got {dots_per_module}"
        )

    matrix = _encode(text, encoder, error_correction)
    count = matrix.shape[0]

    module_size = density * pitch
    physical_size = count * module_size
    start_x = (bed.width - physical_size) / 2.0 + offset_x
    start_y = (bed.height - physical_size) / 2.0 + offset_y

    points: list[Point] = []
    for row, col in zip(*np.nonzero(matrix)):
        x0 = start_x + int(col) * module_size
        # Matrix row 0 is the top of the code; the bed is Y-up, so it maps to
        # the highest Y and the engraved code is not mirrored.
        y0 = start_y + (count - 1 - int(row)) * module_size
        for dy in range(density):
            for dx in range(density):
                points.append(
                    Point(x0 + dx * pitch, y0 + dy * pitch, PointSource.QR_CODE)
                )

    bounds = Bounds(
        min_x=start_x,
        max_x=start_x + physical_size,
        min_y=start_y,
        max_y=start_y + physical_size,
    )
    logger.info(
        "QR %dx%d modules, %d dots/module -> %d points, %.1f mm square",
        count, count, density, len(points), physical_size,
    )
    return QrPattern(
        points=points,
        module_count=count,
        physical_size=physical_size,
        pitch=pitch,
        dots_per_module=density,
        bounds=bounds,
    )
