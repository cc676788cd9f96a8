"""Configuration models and loading.

Provides centralized validation using pydantic:
    - Defaults file (YAML): simage/gimage sizes, resample filter, logging
    - ConversionRequest: the resolved, immutable configuration of one run

The CLI resolves a request in three layers, later ones winning:
    built-in defaults → YAML defaults file → command-line flags

Units:
    - Image sizes: pixels, applied to both width and height of a slot

Usage:
    from mkspreview.utils import validators

    defaults = validators.load_defaults("mks_tft_preview.yaml")
    request = validators.ConversionRequest(input_path="part.gcode",
                                           simage_size=defaults.simage_size)
"""

from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .logging_config import LEVELS


# Resampling filters understood by thumbnail.transform.resize()
RESAMPLE_CHOICES = ("nearest", "bilinear", "bicubic", "lanczos")

DEFAULT_SIMAGE_SIZE = 50
DEFAULT_GIMAGE_SIZE = 200

# The firmware stores the simage edge in a byte
MAX_SIMAGE_SIZE = 255
MAX_GIMAGE_SIZE = 65535

# Output target meaning "write to standard output"
STDOUT = "-"


def _check_level(v: str) -> str:
    if v.upper() not in LEVELS:
        raise ValueError(f"log level must be one of {', '.join(LEVELS)}, got: {v}")
    return v.upper()


def _check_resample(v: str) -> str:
    if v.lower() not in RESAMPLE_CHOICES:
        raise ValueError(f"resample must be one of {', '.join(RESAMPLE_CHOICES)}, got: {v}")
    return v.lower()


# ============================================================================
# DEFAULTS FILE
# ============================================================================

class LoggingDefaults(BaseModel):
    """Logging section of the defaults file."""
    model_config = ConfigDict(extra="forbid")

    level: str = Field("WARN", description="OFF, ERROR, WARN, INFO or DEBUG")
    file: Optional[Path] = Field(None, description="Append-mode log file")
    format: Literal["human", "json"] = Field("human", description="Log line format")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        return _check_level(v)


class PreviewDefaults(BaseModel):
    """Optional YAML defaults file.

    Example::

        simage_size: 100
        gimage_size: 200
        resample: bicubic
        logging:
          level: INFO
          file: ~/mks_tft_preview.log
    """
    model_config = ConfigDict(extra="forbid")

    simage_size: int = Field(DEFAULT_SIMAGE_SIZE, ge=0, le=MAX_SIMAGE_SIZE)
    gimage_size: int = Field(DEFAULT_GIMAGE_SIZE, ge=0, le=MAX_GIMAGE_SIZE)
    resample: str = Field("bilinear", description="Resampling filter name")
    fail_on_error: bool = Field(True, description="Exit non-zero on conversion errors")
    logging: LoggingDefaults = Field(default_factory=LoggingDefaults)

    @field_validator('resample')
    @classmethod
    def validate_resample(cls, v: str) -> str:
        return _check_resample(v)


# ============================================================================
# CONVERSION REQUEST
# ============================================================================

class ConversionRequest(BaseModel):
    """Resolved configuration for one invocation (immutable).

    A slot size of 0 means the slot is not requested: no block is generated
    for it and any existing block for it is dropped.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    input_path: Path = Field(..., description="G-code file to convert")
    output: Optional[str] = Field(
        None, description="Output path; None rewrites input_path, '-' is stdout"
    )
    simage_size: int = Field(DEFAULT_SIMAGE_SIZE, ge=0, le=MAX_SIMAGE_SIZE)
    gimage_size: int = Field(DEFAULT_GIMAGE_SIZE, ge=0, le=MAX_GIMAGE_SIZE)
    resample: str = "bilinear"
    log_level: str = "WARN"
    log_file: Optional[Path] = None
    log_format: Literal["human", "json"] = "human"
    fail_on_error: bool = True

    @field_validator('resample')
    @classmethod
    def validate_resample(cls, v: str) -> str:
        return _check_resample(v)

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        return _check_level(v)

    @field_validator('output')
    @classmethod
    def validate_output(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("output must be a path or '-'")
        return v

    @property
    def to_stdout(self) -> bool:
        return self.output == STDOUT

    @property
    def output_path(self) -> Optional[Path]:
        """Target file, or None when writing to stdout."""
        if self.to_stdout:
            return None
        if self.output is None:
            return self.input_path
        return Path(self.output)

    @property
    def in_place(self) -> bool:
        out = self.output_path
        return out is not None and out.resolve() == self.input_path.resolve()


# ============================================================================
# PUBLIC API
# ============================================================================

def load_defaults(path: Union[str, Path]) -> PreviewDefaults:
    """Load and validate the defaults file from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to the YAML defaults file

    Returns
    -------
    PreviewDefaults
        Validated defaults

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If the file is not valid YAML or validation fails (with actionable
        error message)
    """
    from . import fs

    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")

    try:
        data = fs.load_yaml(path)
    except yaml.YAMLError as e:
        raise ValueError(f"Defaults file {path} is not valid YAML: {e}") from e

    try:
        return PreviewDefaults(**data)
    except Exception as e:
        raise ValueError(f"Defaults file validation failed at {path}: {e}") from e
