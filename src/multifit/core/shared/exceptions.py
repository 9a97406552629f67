"""Exception taxonomy for multifit.

Numerical failures during fitting are never raised; they are counted in the
fit diagnostics and recovered locally. The exceptions below are reserved for
fatal conditions and programming errors.
"""

from __future__ import annotations


class MultiFitError(Exception):
    """Base class for all multifit-specific exceptions."""


class ConfigError(MultiFitError):
    """Configuration-related errors (invalid/missing options, unknown models)."""


class FitContextError(MultiFitError):
    """Invalid fit context construction inputs or use of a released context."""


__all__ = [
    "ConfigError",
    "FitContextError",
    "MultiFitError",
]
