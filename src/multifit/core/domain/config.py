"""Domain configuration models for multifit."""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from multifit.core.constants import (
    CLAMP_START,
    HYSTERESIS,
    INCNPEAKS,
    LAMBDADOWN,
    LAMBDAMAX,
    LAMBDAMIN,
    LAMBDASTART,
    LAMBDAUP,
    MAX_ITERATIONS,
    MINIMUM_HEIGHT,
    NFITTING,
    TOLERANCE,
    USECLAMP,
)

AlgorithmName = Literal["lm", "original"]
PsfName = Literal["gaussian_fixed", "gaussian", "gaussian_elliptical"]
LogFormat = Literal["text", "json"]
LogLevel = Literal["debug", "info", "warning", "error"]


class FitConfig(BaseModel):
    """Configuration of the iteration engine.

    Example TOML section:
        [fitting]
        algorithm = "lm"
        tolerance = 1e-6
        max_iterations = 200
    """

    model_config = ConfigDict(extra="forbid")

    algorithm: AlgorithmName = Field(
        default="lm",
        description="Iteration algorithm: Levenberg-Marquardt ('lm') or clamped steps ('original').",
    )
    tolerance: Annotated[float, Field(gt=0)] = Field(
        default=TOLERANCE,
        description="Relative error change below which a peak is converged.",
    )
    max_iterations: Annotated[int, Field(gt=0)] = Field(
        default=MAX_ITERATIONS,
        description="Maximum number of fitting rounds run by the fit loop.",
    )
    minimum_height: Annotated[float, Field(ge=0)] = Field(
        default=MINIMUM_HEIGHT,
        description="Lower clamp for estimated starting peak heights.",
    )
    use_clamp: bool = Field(
        default=USECLAMP,
        description="Clamp the solver deltas in the Levenberg-Marquardt algorithm.",
    )
    clamp_start: list[float] = Field(
        default_factory=lambda: list(CLAMP_START),
        description="Starting clamp values, one per fit parameter.",
    )
    hysteresis: Annotated[float, Field(ge=0)] = Field(
        default=HYSTERESIS,
        description="Minimum change before a peak AOI is moved or resized.",
    )
    storage_increment: Annotated[int, Field(gt=0)] = Field(
        default=INCNPEAKS,
        description="Peak storage grows in units of this many peaks.",
    )
    xoff: float = Field(default=0.0, description="Offset between x center parameter and pixels.")
    yoff: float = Field(default=0.0, description="Offset between y center parameter and pixels.")
    zoff: float = Field(default=0.0, description="Offset between z center parameter and z.")

    @field_validator("clamp_start")
    @classmethod
    def validate_clamp_start(cls, value: list[float]) -> list[float]:
        """Require one strictly positive clamp value per fit parameter."""
        if len(value) != NFITTING:
            msg = f"clamp_start needs {NFITTING} values, got {len(value)}"
            raise ValueError(msg)
        if any(v <= 0.0 for v in value):
            msg = "clamp_start values must be positive"
            raise ValueError(msg)
        return value


class DampingConfig(BaseModel):
    """Levenberg-Marquardt damping (lambda) settings."""

    model_config = ConfigDict(extra="forbid")

    start: Annotated[float, Field(gt=0)] = Field(default=LAMBDASTART)
    down: Annotated[float, Field(gt=0, lt=1)] = Field(default=LAMBDADOWN)
    up: Annotated[float, Field(gt=1)] = Field(default=LAMBDAUP)
    minimum: Annotated[float, Field(gt=0)] = Field(default=LAMBDAMIN)
    maximum: Annotated[float, Field(gt=0)] = Field(default=LAMBDAMAX)

    @model_validator(mode="after")
    def validate_range(self) -> "DampingConfig":
        """Ensure minimum <= start <= maximum."""
        if not self.minimum <= self.start <= self.maximum:
            msg = (
                f"lambda range is inconsistent: minimum={self.minimum}, "
                f"start={self.start}, maximum={self.maximum}"
            )
            raise ValueError(msg)
        return self


class PsfConfig(BaseModel):
    """Peak shape model selection and AOI sizing."""

    model_config = ConfigDict(extra="forbid")

    model: PsfName = Field(
        default="gaussian",
        description="Peak shape model: fixed width, symmetric or elliptical Gaussian.",
    )
    sigma: Annotated[float, Field(gt=0)] = Field(
        default=1.5,
        description="Default Gaussian sigma in pixels (used when a peak width is not given).",
    )
    aoi_sigmas: Annotated[float, Field(gt=0)] = Field(
        default=3.0,
        description="Half size of the fitting area in units of the peak sigma.",
    )
    max_aoi_radius: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Upper bound on the fitting area half size in pixels.",
    )


class LoggingConfig(BaseModel):
    """Logging destination and verbosity."""

    model_config = ConfigDict(extra="forbid")

    level: LogLevel = Field(default="info")
    log_file: Path | None = Field(default=None, description="Write log records to this file.")
    verbose: bool = Field(default=False, description="Also log to the console.")
    log_format: LogFormat = Field(
        default="text",
        description="Format for log file: text (human-readable) or json (structured).",
    )


class MultiFitConfig(BaseModel):
    """Top-level multifit configuration.

    Example TOML configuration:
        [fitting]
        algorithm = "lm"
        tolerance = 1e-6

        [damping]
        start = 1.0
        up = 4.0

        [psf]
        model = "gaussian"
        sigma = 1.5

        [logging]
        level = "info"
    """

    model_config = ConfigDict(extra="forbid")

    fitting: FitConfig = Field(default_factory=FitConfig)
    damping: DampingConfig = Field(default_factory=DampingConfig)
    psf: PsfConfig = Field(default_factory=PsfConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
