"""Engraving job schema and loader.

A job file (``engraving_job.v1``) names the inputs of one engraving run:
the image and how it sits on the bed, the grid placement, sampling
overrides, an optional QR block and the output name.  Anything left out
falls back to ``machine.yaml`` defaults at run time.

Example::

    schema: engraving_job.v1
    image: sign.png
    placement: {scale: 0.8, offset_x: 0, offset_y: 10, rotation_deg: 0}
    pattern: triangle
    step_size_mm: 1.5
    qr: {text: "https://example.com", offset_x: 60, offset_y: -60}
    output_name: sign

Usage:
    from wood_engraver.configs.schemas import load_job
    job = load_job("jobs/sign.yaml")
"""

from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wood_engraver.utils import fs


class ImagePlacementV1(BaseModel):
    """Image placement on the bed (before point extraction)."""
    scale: float = Field(1.0, gt=0.0, le=100.0, description="Multiplier on the fit-to-bed scale")
    offset_x: float = Field(0.0, description="Shift from bed centre (mm)")
    offset_y: float = Field(0.0, description="Shift from bed centre (mm, +Y toward back)")
    rotation_deg: float = Field(0.0, ge=-360.0, le=360.0, description="Clockwise rotation on screen (degrees)")


class GridTransformV1(BaseModel):
    """Placement of the finished point grid on the bed."""
    offset_x: float = Field(0.0, description="Grid shift (mm)")
    offset_y: float = Field(0.0, description="Grid shift (mm)")
    rotation_deg: float = Field(0.0, ge=-360.0, le=360.0, description="Clockwise rotation about bed centre (degrees)")


class QrBlockV1(BaseModel):
    """QR code merged into the point set."""
    text: str = Field(..., description="Text or URL to encode")
    offset_x: float = Field(0.0, description="Shift from bed centre (mm)")
    offset_y: float = Field(0.0, description="Shift from bed centre (mm)")
    dots_per_module: Optional[int] = Field(None, ge=1, le=20, description="Points per module side")

    @field_validator('text')
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("QR text cannot be empty")
        return v


class EngravingJobV1(BaseModel):
    """Engraving job schema v1."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("engraving_job.v1", alias="schema", description="Schema version")
    image: Optional[str] = Field(None, description="Raster image path (relative to the job file)")
    placement: ImagePlacementV1 = Field(default_factory=ImagePlacementV1)
    grid: GridTransformV1 = Field(default_factory=GridTransformV1)
    pattern: Optional[Literal["square", "triangle", "contour"]] = None
    mode: Optional[Literal["standard", "edge", "dither"]] = None
    invert: Optional[bool] = None
    step_size_mm: Optional[float] = Field(None, gt=0.0, le=50.0, description="Point pitch override (mm)")
    threshold: Optional[int] = Field(None, ge=0, le=255, description="Intensity threshold override")
    depth_z_mm: Optional[float] = Field(None, ge=-10.0, le=5.0, description="Plunge depth override (mm)")
    dwell_s: Optional[float] = Field(None, ge=0.0, le=600.0, description="Dwell override (s)")
    temperature_c: Optional[float] = Field(None, ge=0.0, le=500.0, description="Nozzle temperature override")
    qr: Optional[QrBlockV1] = None
    output_name: str = Field("engraving", min_length=1, description="Output file name (no extension)")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "engraving_job.v1":
            raise ValueError(f"Expected schema 'engraving_job.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_has_input(self) -> 'EngravingJobV1':
        """A job needs an image, a QR block, or both."""
        if self.image is None and self.qr is None:
            raise ValueError("Job must define 'image', 'qr', or both")
        return self


def load_job(path: Union[str, Path]) -> EngravingJobV1:
    """Load and validate an engraving job from YAML.

    A relative ``image`` path is resolved against the job file's directory.

    Parameters
    ----------
    path : Union[str, Path]
        Path to the job YAML file

    Returns
    -------
    EngravingJobV1
        Validated job

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job file not found: {path}")

    try:
        data = fs.load_yaml(path) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Job file {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Job validation failed at {path}: expected a mapping")
    try:
        job = EngravingJobV1(**data)
    except Exception as e:
        raise ValueError(f"Job validation failed at {path}: {e}") from e

    if job.image is not None and not Path(job.image).is_absolute():
        job = job.model_copy(update={"image": str(path.parent / job.image)})
    return job
