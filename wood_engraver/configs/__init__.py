"""Machine configuration loading, validation, and engraving job schema."""

from wood_engraver.configs.loader import (
    ConfigError,
    EngraverConfig,
    EngravingConfig,
    LoggingConfig,
    MotionConfig,
    QrConfig,
    ScriptParameters,
    TestGridConfig,
    load_config,
)
from wood_engraver.configs.schemas import EngravingJobV1, load_job

__all__ = [
    "ConfigError",
    "EngraverConfig",
    "EngravingConfig",
    "EngravingJobV1",
    "LoggingConfig",
    "MotionConfig",
    "QrConfig",
    "ScriptParameters",
    "TestGridConfig",
    "load_config",
    "load_job",
]
