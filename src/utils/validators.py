"""YAML schema validation and config loading.

Provides centralized validation for all configuration blocks using pydantic:
    - ProcessingParams: pre-trace image filter (brightness, contrast, threshold)
    - VectorParams: tracing tolerances and physical placement of the design
    - DxfParams: DXF entity style and layer
    - GCodeParams: feeds, spindle and depth-pass parameters
    - Machine presets (machine_presets.v1.yaml): named GCode/DXF bundles
    - Job schema (vectorize_job.v1.yaml): complete configuration for one run

All models are frozen and forbid unknown keys, so a misspelt YAML key fails
at load time with the offending field named by pydantic.

Units:
    - Trace geometry: pixels
    - Physical geometry: VectorParams.units ("mm" or "in")
    - Feeds: units per minute, spindle: RPM

Usage:
    from src.utils import validators

    job = validators.load_vectorize_job("configs/vectorize_v1.yaml")
    presets = validators.load_machine_presets("configs/machine_presets_v1.yaml")
    router = presets.get("router")
"""

from enum import Enum
from pathlib import Path
from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _Params(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ============================================================================
# ENUMS
# ============================================================================

class OriginPosition(str, Enum):
    """Where the output origin sits on the material (stock) rectangle."""
    BOTTOM_LEFT = "bottom-left"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"


class PolylineType(str, Enum):
    """DXF polyline entity style."""
    LWPOLYLINE = "LWPOLYLINE"
    POLYLINE = "POLYLINE"


# ============================================================================
# PARAMETER BLOCKS
# ============================================================================

class ProcessingParams(_Params):
    """Pre-trace image filter.

    ``threshold`` is the user-facing binarization level; it runs before, and
    independently of, the fixed 128 classification in binary_field.
    """
    brightness: float = Field(0.0, ge=-100.0, le=100.0, description="Brightness offset (%)")
    contrast: float = Field(0.0, ge=-100.0, le=100.0, description="Contrast offset (%)")
    threshold: int = Field(128, ge=0, le=255, description="Binarization level")
    invert: bool = Field(False, description="Swap black and white after thresholding")
    blur: float = Field(0.0, ge=0.0, le=20.0, description="Gaussian blur radius (px)")


class VectorParams(_Params):
    """Tracing tolerances and physical placement of the traced design."""
    noise_threshold: float = Field(10.0, description="Minimum ring area to keep (px²); <= 0 disables")
    simplify_tolerance: float = Field(0.5, description="RDP epsilon (px); <= 0 disables")
    units: Literal["mm", "in"] = Field("mm", description="Output unit (display and G20/G21)")
    physical_width: float = Field(100.0, gt=0.0, description="Design width in output units")
    physical_height: float = Field(100.0, gt=0.0, description="Design height in output units")
    material_width: float = Field(200.0, gt=0.0, description="Stock width in output units")
    material_height: float = Field(200.0, gt=0.0, description="Stock height in output units")
    lock_aspect_ratio: bool = True
    flip_x: bool = False
    flip_y: bool = False
    rotation_deg: float = Field(0.0, description="Rotation about the design center (CCW)")
    offset_x: float = 0.0
    offset_y: float = 0.0
    origin_position: OriginPosition = OriginPosition.BOTTOM_LEFT
    snap_to_grid: bool = False
    grid_size: float = Field(10.0, gt=0.0, description="Snap grid pitch in output units")


class DxfParams(_Params):
    """DXF export options.

    ``mirror_y`` and ``flatten_arcs`` are carried for preset compatibility
    but do not change the emitted document; Y mirroring is done by
    VectorParams.flip_y and no arcs are ever produced.
    """
    polyline_type: PolylineType = PolylineType.LWPOLYLINE
    layer_name: str = "CUT_PATH"
    mirror_y: bool = True
    flatten_arcs: bool = False


class GCodeParams(_Params):
    """Toolpath program options. Depths are signed, negative below the surface."""
    feed_rate: float = Field(1200.0, gt=0.0, description="Cutting feed (units/min)")
    plunge_rate: float = Field(300.0, gt=0.0, description="Z plunge feed (units/min)")
    spindle_speed: float = Field(12000.0, ge=0.0, description="Spindle RPM / laser power")
    cut_depth: float = Field(-1.5, le=0.0, description="Final depth (<= 0)")
    step_down: float = Field(1.5, ge=0.0, description="Depth per pass; 0 = single pass")
    safe_z: float = Field(5.0, ge=0.0, description="Retract height")
    tool_diameter: float = Field(3.175, gt=0.0, description="Informational only")


# ============================================================================
# MACHINE PRESETS V1
# ============================================================================

class MachinePreset(_Params):
    """Named bundle of toolpath and DXF settings for one machine class."""
    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    gcode: GCodeParams
    dxf: DxfParams


class MachinePresetsV1(_Params):
    """Container for machine presets (machine_presets.v1.yaml)."""
    schema_version: str = Field("machine_presets.v1", alias="schema")
    presets: List[MachinePreset]

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "machine_presets.v1":
            raise ValueError(f"Expected schema 'machine_presets.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'MachinePresetsV1':
        ids = [p.id for p in self.presets]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"Duplicate preset ids: {dupes}")
        return self

    def get(self, preset_id: str) -> MachinePreset:
        """Return the preset with ``preset_id``.

        Raises
        ------
        KeyError
            If no preset has that id (message lists the known ids).
        """
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        known = ", ".join(p.id for p in self.presets)
        raise KeyError(f"Unknown machine preset '{preset_id}' (known: {known})")


# ============================================================================
# JOB SCHEMA V1
# ============================================================================

class VectorizeJobV1(_Params):
    """Complete configuration for one image → DXF/G-code run."""
    schema_version: str = Field("vectorize_job.v1", alias="schema")
    processing: ProcessingParams = Field(default_factory=ProcessingParams)
    vector: VectorParams = Field(default_factory=VectorParams)
    dxf: DxfParams = Field(default_factory=DxfParams)
    gcode: GCodeParams = Field(default_factory=GCodeParams)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "vectorize_job.v1":
            raise ValueError(f"Expected schema 'vectorize_job.v1', got '{v}'")
        return v

    def with_preset(self, preset: MachinePreset) -> 'VectorizeJobV1':
        """Return a copy whose gcode/dxf blocks come from ``preset``."""
        return self.model_copy(update={"gcode": preset.gcode, "dxf": preset.dxf})


# ============================================================================
# PUBLIC API
# ============================================================================

def load_vectorize_job(path: Union[str, Path]) -> VectorizeJobV1:
    """Load and validate a job config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a vectorize_job.v1 YAML file

    Returns
    -------
    VectorizeJobV1
        Validated job configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return VectorizeJobV1(**data)
    except Exception as e:
        raise ValueError(f"Job config validation failed at {path}: {e}") from e


def load_machine_presets(path: Union[str, Path]) -> MachinePresetsV1:
    """Load and validate machine presets from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a machine_presets.v1 YAML file

    Returns
    -------
    MachinePresetsV1
        Validated presets

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Machine presets not found: {path}")

    data = fs.load_yaml(path)
    try:
        return MachinePresetsV1(**data)
    except Exception as e:
        raise ValueError(f"Machine presets validation failed at {path}: {e}") from e
