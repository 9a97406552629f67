"""multifit - Simultaneous fitting of many overlapping peaks in 2D images.

Public API:
    - MultiFitter: Fit peaks on one image

Configuration:
    - MultiFitConfig: Main configuration object
    - FitConfig, DampingConfig, PsfConfig, LoggingConfig: Sub-configurations

Peak status values:
    - PeakStatus: RUNNING, CONVERGED, ERROR
"""

import contextlib
from importlib import metadata

__version__ = "0.1.0"

with contextlib.suppress(metadata.PackageNotFoundError):
    __version__ = metadata.version(__name__)

from multifit.core.constants import PeakStatus
from multifit.core.domain.config import (
    DampingConfig,
    FitConfig,
    LoggingConfig,
    MultiFitConfig,
    PsfConfig,
)
from multifit.core.fitting.diagnostics import FitDiagnostics
from multifit.core.fitting.fitter import MultiFitter
from multifit.core.shared.exceptions import ConfigError, FitContextError, MultiFitError

__all__ = [
    # Version
    "__version__",
    # Fitting
    "MultiFitter",
    "FitDiagnostics",
    "PeakStatus",
    # Configuration
    "MultiFitConfig",
    "FitConfig",
    "DampingConfig",
    "PsfConfig",
    "LoggingConfig",
    # Errors
    "MultiFitError",
    "ConfigError",
    "FitContextError",
]
