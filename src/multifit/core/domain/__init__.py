"""Domain models representing core multifit entities."""

from multifit.core.domain.config import (
    DampingConfig,
    FitConfig,
    LoggingConfig,
    MultiFitConfig,
    PsfConfig,
)
from multifit.core.domain.peak import PeakRecord

__all__ = [
    "DampingConfig",
    "FitConfig",
    "LoggingConfig",
    "MultiFitConfig",
    "PeakRecord",
    "PsfConfig",
]
