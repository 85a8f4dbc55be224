"""Atomic file output and YAML helpers.

Scripts and point dumps are written next to their destination under a
temporary name, fsynced, then renamed over the target, so an interrupted run
never leaves a truncated ``.gcode`` file that a printer could pick up.

Usage:
    from wood_engraver.utils import fs
    fs.atomic_write_text(out_dir / "sign.gcode", gcode)
    profile = fs.load_yaml("machine.yaml")
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

import yaml

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create *p* (and parents) if missing; return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _replace_atomically(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".part", dir=ensure_dir(path.parent),
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> Path:
    """Write *text* to *path* atomically.

    Parameters
    ----------
    path : PathLike
        Destination file; missing parent directories are created.
    text : str
        File contents.
    encoding : str
        Text encoding, default UTF-8.

    Returns
    -------
    Path
        The written path.

    Raises
    ------
    OSError
        If the temporary file cannot be written or renamed.  The temporary
        file is removed and the destination is left untouched.
    """
    path = Path(path)
    _replace_atomically(path, text.encode(encoding))
    return path


def atomic_yaml_dump(obj: Any, path: PathLike) -> Path:
    """Dump *obj* as block-style YAML (key order kept), atomically."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Dict[str, Any]:
    """Parse a YAML file with ``safe_load``.

    Returns None for an empty file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    yaml.YAMLError
        If the content is not valid YAML; the message names the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
