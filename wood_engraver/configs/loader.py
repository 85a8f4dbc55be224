"""Configuration loader for the engraving pipeline.

Loads and validates ``machine.yaml`` into typed, frozen dataclasses.  Bed
size, motion heights/feeds and the default engraving parameters all come from
the config -- nothing downstream hardcodes them.

Feed rates are G-code ``F`` values (mm/min) and are written verbatim by the
G-code generator.

Usage::

    from wood_engraver.configs.loader import load_config
    cfg = load_config()                       # default path
    cfg = load_config("/custom/machine.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.imaging.extractor import PointPattern
from wood_engraver.imaging.filters import ProcessingMode
from wood_engraver.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScriptParameters:
    """Machine settings embedded in, and recovered from, an engraving script.

    Parameters
    ----------
    bed_width, bed_height : float
        Bed size in mm (``Bed Size:`` comment).
    temperature : float
        Nozzle temperature in degrees C (``M104``/``M109``).
    dwell_time : float
        Seconds the hot nozzle rests at each point (``G4 S``).
    depth_z : float
        Plunge Z in mm (``Engraving Z:`` comment).
    step_size : float
        Point pitch in mm (``Resolution:`` comment).
    """

    bed_width: float
    bed_height: float
    temperature: float
    dwell_time: float
    depth_z: float
    step_size: float

    @property
    def bed(self) -> BedDimensions:
        return BedDimensions(self.bed_width, self.bed_height)


@dataclass(frozen=True)
class MotionConfig:
    """Z heights, feed rates (mm/min) and travel acceleration."""

    safe_z_mm: float
    heat_z_mm: float
    park_z_mm: float
    z_feed_mm_min: float
    xy_feed_mm_min: float
    plunge_feed_mm_min: float
    level_feed_mm_min: float
    accel_mm_s2: float


@dataclass(frozen=True)
class EngravingConfig:
    """Default engraving parameters."""

    step_size_mm: float
    threshold: int
    depth_z_mm: float
    dwell_s: float
    temperature_c: float
    point_pattern: PointPattern
    processing_mode: ProcessingMode
    invert: bool
    bed_leveling: bool
    start_gcode: str
    preheat_temperature_c: float = 170.0


@dataclass(frozen=True)
class QrConfig:
    """QR point generation defaults."""

    dots_per_module: int
    error_correction: str


@dataclass(frozen=True)
class TestGridConfig:
    """Dwell-time x plunge-depth calibration grid.

    Columns step dwell time, rows step plunge depth.
    """

    __test__ = False  # not a pytest class despite the name

    time_start_s: float
    time_step_s: float
    time_count: int
    depth_start_mm: float
    depth_step_mm: float
    depth_count: int
    spacing_mm: float
    temperature_c: float
    start_gcode: str = ""

    @property
    def total_points(self) -> int:
        return self.time_count * self.depth_count

    @property
    def width_mm(self) -> float:
        return (self.time_count - 1) * self.spacing_mm

    @property
    def height_mm(self) -> float:
        return (self.depth_count - 1) * self.spacing_mm


@dataclass(frozen=True)
class LoggingConfig:
    """Arguments for ``utils.logging_config.setup_logging``."""

    level: str = "INFO"
    file: str | None = None
    json: bool = False


@dataclass(frozen=True)
class EngraverConfig:
    """Complete configuration loaded from ``machine.yaml``."""

    bed: BedDimensions
    motion: MotionConfig
    engraving: EngravingConfig
    qr: QrConfig
    test_grid: TestGridConfig
    logging: LoggingConfig

    def script_parameters(self) -> ScriptParameters:
        """Emitter inputs / parser fallbacks derived from this config."""
        e = self.engraving
        return ScriptParameters(
            bed_width=self.bed.width,
            bed_height=self.bed.height,
            temperature=e.temperature_c,
            dwell_time=e.dwell_s,
            depth_z=e.depth_z_mm,
            step_size=e.step_size_mm,
        )


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _parse_bed(data: dict[str, Any]) -> BedDimensions:
    width = float(data["width_mm"])
    height = float(data["height_mm"])
    if width <= 0 or height <= 0:
        raise ConfigError(
            f"bed dimensions must be positive, got {width} x {height}"
        )
    return BedDimensions(width, height)


def _parse_motion(data: dict[str, Any]) -> MotionConfig:
    return MotionConfig(
        safe_z_mm=float(data.get("safe_z_mm", 5.0)),
        heat_z_mm=float(data.get("heat_z_mm", 10.0)),
        park_z_mm=float(data.get("park_z_mm", 30.0)),
        z_feed_mm_min=float(data.get("z_feed_mm_min", 1000)),
        xy_feed_mm_min=float(data.get("xy_feed_mm_min", 3000)),
        plunge_feed_mm_min=float(data.get("plunge_feed_mm_min", 300)),
        level_feed_mm_min=float(data.get("level_feed_mm_min", 1200)),
        accel_mm_s2=float(data.get("accel_mm_s2", 1000)),
    )


def _parse_engraving(data: dict[str, Any]) -> EngravingConfig:
    pattern = str(data.get("point_pattern", "square"))
    mode = str(data.get("processing_mode", "standard"))
    try:
        point_pattern = PointPattern(pattern)
    except ValueError as exc:
        raise ConfigError(
            f"engraving.point_pattern must be one of "
            f"{[p.value for p in PointPattern]}, got '{pattern}'"
        ) from exc
    try:
        processing_mode = ProcessingMode(mode)
    except ValueError as exc:
        raise ConfigError(
            f"engraving.processing_mode must be one of "
            f"{[m.value for m in ProcessingMode]}, got '{mode}'"
        ) from exc

    return EngravingConfig(
        step_size_mm=float(data["step_size_mm"]),
        threshold=int(data["threshold"]),
        depth_z_mm=float(data["depth_z_mm"]),
        dwell_s=float(data["dwell_s"]),
        temperature_c=float(data["temperature_c"]),
        point_pattern=point_pattern,
        processing_mode=processing_mode,
        invert=bool(data.get("invert", False)),
        bed_leveling=bool(data.get("bed_leveling", True)),
        start_gcode=str(data.get("start_gcode") or ""),
        preheat_temperature_c=float(data.get("preheat_temperature_c", 170)),
    )


def _parse_test_grid(data: dict[str, Any]) -> TestGridConfig:
    return TestGridConfig(
        time_start_s=float(data["time_start_s"]),
        time_step_s=float(data["time_step_s"]),
        time_count=int(data["time_count"]),
        depth_start_mm=float(data["depth_start_mm"]),
        depth_step_mm=float(data["depth_step_mm"]),
        depth_count=int(data["depth_count"]),
        spacing_mm=float(data["spacing_mm"]),
        temperature_c=float(data["temperature_c"]),
        start_gcode=str(data.get("start_gcode") or ""),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: EngraverConfig) -> None:
    """Validate value ranges and cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    e = cfg.engraving
    if e.step_size_mm <= 0:
        raise ConfigError(f"step_size_mm must be > 0, got {e.step_size_mm}")
    if not 0 <= e.threshold <= 255:
        raise ConfigError(f"threshold must be in [0, 255], got {e.threshold}")
    if e.dwell_s < 0:
        raise ConfigError(f"dwell_s must be >= 0, got {e.dwell_s}")
    if e.temperature_c < 0:
        raise ConfigError(
            f"temperature_c must be >= 0, got {e.temperature_c}"
        )

    m = cfg.motion
    if m.safe_z_mm <= e.depth_z_mm:
        raise ConfigError(
            f"safe_z_mm ({m.safe_z_mm}) must be above depth_z_mm "
            f"({e.depth_z_mm})"
        )
    for name in (
        "z_feed_mm_min", "xy_feed_mm_min", "plunge_feed_mm_min",
        "level_feed_mm_min", "accel_mm_s2",
    ):
        if getattr(m, name) <= 0:
            raise ConfigError(f"motion.{name} must be > 0")

    if cfg.qr.dots_per_module < 1:
        raise ConfigError(
            f"qr.dots_per_module must be >= 1, got {cfg.qr.dots_per_module}"
        )
    if cfg.qr.error_correction not in ("L", "M", "Q", "H"):
        raise ConfigError(
            f"qr.error_correction must be L/M/Q/H, got "
            f"'{cfg.qr.error_correction}'"
        )

    tg = cfg.test_grid
    if tg.time_count < 1 or tg.depth_count < 1:
        raise ConfigError("test_grid time_count and depth_count must be >= 1")
    if tg.spacing_mm <= 0:
        raise ConfigError(f"test_grid.spacing_mm must be > 0, got {tg.spacing_mm}")
    if tg.width_mm > cfg.bed.width or tg.height_mm > cfg.bed.height:
        logger.warning(
            "Test grid %.1fx%.1f mm exceeds bed %.1fx%.1f mm",
            tg.width_mm, tg.height_mm, cfg.bed.width, cfg.bed.height,
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> EngraverConfig:
    """Load and validate machine configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``machine.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    EngraverConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "machine.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data: dict[str, Any] = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(str(exc)) from exc
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        qd = data.get("qr", {}) or {}
        qr = QrConfig(
            dots_per_module=int(qd.get("dots_per_module", 3)),
            error_correction=str(qd.get("error_correction", "M")).upper(),
        )

        ld = data.get("logging", {}) or {}
        logging_cfg = LoggingConfig(
            level=str(ld.get("level", "INFO")).upper(),
            file=ld.get("file"),
            json=bool(ld.get("json", False)),
        )

        config = EngraverConfig(
            bed=_parse_bed(data["bed"]),
            motion=_parse_motion(data.get("motion", {}) or {}),
            engraving=_parse_engraving(data["engraving"]),
            qr=qr,
            test_grid=_parse_test_grid(data["test_grid"]),
            logging=logging_cfg,
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
