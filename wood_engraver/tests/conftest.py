"""Shared fixtures for the wood_engraver test suite."""

from __future__ import annotations

import logging
import sys

import pytest

from wood_engraver.configs.loader import EngraverConfig, ScriptParameters, load_config
from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.utils.logging_config import clear_context


class FakeEncoder:
    """Module-matrix encoder returning a fixed matrix."""

    def __init__(self, matrix: list[list[int]]) -> None:
        self.matrix = matrix
        self.calls: list[tuple[str, str]] = []

    def encode(self, text: str, error_correction: str = "M") -> list[list[bool]]:
        self.calls.append((text, error_correction))
        return [[bool(v) for v in row] for row in self.matrix]


@pytest.fixture()
def config() -> EngraverConfig:
    """Load the default machine.yaml shipped with the package."""
    return load_config()


@pytest.fixture()
def params() -> ScriptParameters:
    return ScriptParameters(
        bed_width=256.0,
        bed_height=256.0,
        temperature=300.0,
        dwell_time=10.0,
        depth_z=-0.5,
        step_size=2.0,
    )


@pytest.fixture()
def bed() -> BedDimensions:
    return BedDimensions(256.0, 256.0)


@pytest.fixture()
def fake_encoder() -> FakeEncoder:
    return FakeEncoder([[1, 0], [0, 1]])


@pytest.fixture()
def make_encoder():
    """Factory for encoders with a custom matrix."""
    return FakeEncoder


@pytest.fixture()
def restore_root_logger():
    """Undo setup_logging() and install_excepthook() after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    hook = sys.excepthook
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)
    sys.excepthook = hook
    clear_context()
