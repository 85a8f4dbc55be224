"""Exception hierarchy shared by the engraving pipeline.

Generation-stage errors (raster, QR) propagate to the caller and abort the
operation.  ``MalformedScriptError`` never leaves the G-code parser: it is
raised by the line tokenizer and absorbed by the parser, which falls back to
caller-supplied defaults.
"""

from __future__ import annotations


class EngraverError(Exception):
    """Base class for all engraving pipeline errors."""

    pass


class InvalidInputError(EngraverError):
    """Raised when an input is rejected before entering the pipeline."""

    pass


class EmptyInputError(InvalidInputError):
    """Raised when a required text input is blank."""

    pass


class EncoderUnavailableError(EngraverError):
    """Raised when the QR module-matrix encoder cannot be invoked."""

    pass


class MalformedScriptError(EngraverError):
    """Raised by the G-code tokenizer for an unparseable word."""

    pass
