"""Tests for atomic file output and logging setup.

Test cases:
    - atomic writes create parents, replace the target, leave no temp files
    - YAML dump/load keeps key order and nesting
    - load_yaml error paths
    - setup_logging is re-entrant and carries context fields
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from wood_engraver.utils import fs
from wood_engraver.utils.logging_config import (
    HumanFormatter,
    JsonFormatter,
    push_context,
    setup_logging,
)


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("wood_engraver.test", logging.INFO, __file__, 1, msg, None, None)


# ---------------------------------------------------------------------------
# fs
# ---------------------------------------------------------------------------


def test_atomic_write_text_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "out" / "nested" / "sign.gcode"
    written = fs.atomic_write_text(target, "G28\n")
    assert written == target
    assert target.read_text() == "G28\n"


def test_atomic_write_replaces_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "sign.gcode"
    target.write_text("old")
    fs.atomic_write_text(target, "new")
    assert target.read_text() == "new"
    assert [p.name for p in tmp_path.iterdir()] == ["sign.gcode"]


def test_yaml_roundtrip(tmp_path: Path) -> None:
    data = {"parameters": {"step_size": 2.0, "depth_z": -0.5}, "points": [[1.0, 2.0]]}
    path = fs.atomic_yaml_dump(data, tmp_path / "points.yaml")
    assert fs.load_yaml(path) == data
    assert path.read_text().startswith("parameters:")


def test_load_yaml_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_invalid(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("a: [1, 2\n")
    with pytest.raises(yaml.YAMLError, match="bad.yaml"):
        fs.load_yaml(path)


def test_utils_exports_resolve() -> None:
    import wood_engraver.utils as utils

    for name in utils.__all__:
        assert getattr(utils, name) is not None
    # Modules log through logging.getLogger(__name__); no wrapper is exported
    assert not hasattr(utils, "get_logger")


def test_ensure_dir(tmp_path: Path) -> None:
    d = fs.ensure_dir(tmp_path / "a" / "b")
    assert d.is_dir()
    assert fs.ensure_dir(d) == d


# ---------------------------------------------------------------------------
# logging
# ---------------------------------------------------------------------------


class TestLogging:
    def test_human_layout_with_context(self, restore_root_logger) -> None:
        push_context(app="engrave", job="sign")
        line = HumanFormatter().format(_record("Extracted 12 points"))
        assert line.endswith(" | app=engrave job=sign | Extracted 12 points")
        assert "INFO" in line

    def test_json_layout(self, restore_root_logger) -> None:
        push_context(app="import")
        payload = json.loads(JsonFormatter().format(_record()))
        assert payload["lvl"] == "INFO"
        assert payload["app"] == "import"
        assert payload["msg"] == "hello"
        assert payload["t"].endswith("Z")

    def test_setup_is_reentrant(self, restore_root_logger, tmp_path: Path) -> None:
        root = logging.getLogger()
        before = len(root.handlers)
        setup_logging("DEBUG", str(tmp_path / "logs" / "run.log"))
        handlers = setup_logging("INFO", str(tmp_path / "logs" / "run.log"), json=True)
        assert len(handlers) == 2
        assert len(root.handlers) == before + 2
        assert root.level == logging.INFO

    def test_file_output(self, restore_root_logger, tmp_path: Path) -> None:
        log_file = tmp_path / "run.log"
        handlers = setup_logging("INFO", str(log_file), json=True, context={"app": "engrave"})
        logging.getLogger("wood_engraver.test").info("Wrote %s", "sign.gcode")
        for handler in handlers:
            handler.flush()
        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["msg"] == "Wrote sign.gcode"
        assert entry["app"] == "engrave"

    def test_quiet_libs(self, restore_root_logger) -> None:
        setup_logging("DEBUG", quiet_libs=["PIL"])
        assert logging.getLogger("PIL").level == logging.WARNING

    def test_unknown_level(self, restore_root_logger) -> None:
        with pytest.raises(ValueError):
            setup_logging("LOUD")
