"""Core constants for multi-peak fitting.

These constants define the parameter layout of a peak and the default
settings of the fitting algorithms. The numeric defaults can be overridden
via configuration files or keyword arguments.
"""

from enum import IntEnum

# =============================================================================
# Peak Parameter Layout
# =============================================================================

NFITTING = 7
"""Number of fit parameters per peak."""

NPEAKPAR = 9
"""Number of columns in the peak results table (parameters + status + error)."""

HEIGHT = 0
XCENTER = 1
XWIDTH = 2  # Only relevant for variable width models
YCENTER = 3
YWIDTH = 4  # Only relevant for variable width models
BACKGROUND = 5
ZCENTER = 6

STATUS = 7
IERROR = 8

PARAMETER_NAMES = ("height", "x", "xsigma", "y", "ysigma", "background", "z")
"""Public names of the fit parameters, in parameter index order."""


class PeakStatus(IntEnum):
    """Fitting status of a single peak."""

    RUNNING = 0
    CONVERGED = 1
    ERROR = 2


# =============================================================================
# Area Of Interest
# =============================================================================

HYSTERESIS = 0.6
"""Minimum change before the AOI of a peak is moved or resized.

The candidate center (or radius) must differ from the current one by at
least this much. Values <= 0.5 mean no hysteresis.
"""

# =============================================================================
# Levenberg-Marquardt Damping
# =============================================================================

LAMBDASTART = 1.0
"""Initial lambda value."""

LAMBDADOWN = 0.75
"""Multiplier applied to lambda after an accepted step."""

LAMBDAUP = 4.0
"""Multiplier applied to lambda after a rejected step."""

LAMBDAMIN = 1.0e-3
"""Minimum lambda value."""

LAMBDAMAX = 1.0e20
"""Maximum lambda value. A peak that exceeds it is lost as un-fittable."""

USECLAMP = False
"""Clamp the deltas returned by the solver in the Levenberg-Marquardt algorithm.

Clamping suppresses oscillations and extreme steps. It mattered mostly for
the original algorithm, which always clamps.
"""

CLAMP_START = (1000.0, 1.0, 0.3, 1.0, 0.3, 100.0, 0.1)
"""Starting clamp values, one per fit parameter."""

# =============================================================================
# Peak Storage
# =============================================================================

INCNPEAKS = 500
"""Peak storage capacity grows in units of this many peaks."""

# =============================================================================
# Convergence
# =============================================================================

TOLERANCE = 1.0e-6
"""Default relative error change below which a peak is converged."""

MAX_ITERATIONS = 200
"""Default maximum number of fitting rounds run by the fit loop."""

MINIMUM_HEIGHT = 1.0
"""Default lower clamp for estimated starting peak heights."""
