"""Per-peak parameter and solver state record."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from multifit.core.constants import (
    BACKGROUND,
    LAMBDASTART,
    NFITTING,
    XWIDTH,
    YWIDTH,
    PeakStatus,
)

if TYPE_CHECKING:
    from multifit.core.shared.typing import FloatArray, IntArray


def _zeros() -> FloatArray:
    return np.zeros(NFITTING, dtype=np.float64)


def _int_zeros() -> IntArray:
    return np.zeros(NFITTING, dtype=np.int_)


@dataclass(slots=True)
class PeakRecord:
    """State of a single peak being fit.

    The AOI (fitting area) is the pixel window ``[yi, yi + size_y) x
    [xi, xi + size_x)``; ``psf`` caches the peak's rendered intensity over it,
    so that the peak can be removed from the shared accumulators without
    re-rendering.
    """

    index: int
    params: FloatArray = field(default_factory=_zeros)
    clamp: FloatArray = field(default_factory=_zeros)
    sign: IntArray = field(default_factory=_int_zeros)
    xi: int = 0
    yi: int = 0
    size_x: int = 0
    size_y: int = 0
    added: int = 0
    iterations: int = 0
    status: PeakStatus = PeakStatus.RUNNING
    error: float = 0.0
    error_old: float = 0.0
    lambda_: float = LAMBDASTART
    psf: FloatArray | None = None
    model_data: Any = None

    @property
    def background(self) -> float:
        return float(self.params[BACKGROUND])

    @property
    def widths(self) -> tuple[float, float]:
        return float(self.params[XWIDTH]), float(self.params[YWIDTH])

    @property
    def x_radius(self) -> int:
        return (self.size_x - 1) // 2

    @property
    def y_radius(self) -> int:
        return (self.size_y - 1) // 2

    def aoi_slices(self) -> tuple[slice, slice]:
        """Return (row, column) slices selecting the AOI from an image."""
        return (
            slice(self.yi, self.yi + self.size_y),
            slice(self.xi, self.xi + self.size_x),
        )

    def update_param(self, delta: float, i: int, *, use_clamp: bool) -> None:
        """Apply a solver delta to parameter ``i``.

        The solver returns the step to subtract. When clamping, the step is
        bounded by ``clamp[i]`` and the clamp is halved every time the sign of
        the step flips, which damps oscillating parameters.
        """
        if not use_clamp:
            self.params[i] -= delta
            return

        if (self.sign[i] == 1 and delta < 0.0) or (self.sign[i] == -1 and delta > 0.0):
            self.clamp[i] *= 0.5
        self.sign[i] = 1 if delta > 0.0 else -1

        if delta != 0.0:
            self.params[i] -= delta / (1.0 + abs(delta) / self.clamp[i])

    def assign_from(self, other: PeakRecord) -> None:
        """Copy all of ``other``'s state into this record.

        Arrays are copied, the model payload is deep-copied, so the two
        records share no mutable state afterwards.
        """
        self.index = other.index
        self.params[:] = other.params
        self.clamp[:] = other.clamp
        self.sign[:] = other.sign
        self.xi = other.xi
        self.yi = other.yi
        self.size_x = other.size_x
        self.size_y = other.size_y
        self.added = other.added
        self.iterations = other.iterations
        self.status = other.status
        self.error = other.error
        self.error_old = other.error_old
        self.lambda_ = other.lambda_
        self.psf = None if other.psf is None else other.psf.copy()
        self.model_data = copy.deepcopy(other.model_data)

    def copy(self) -> PeakRecord:
        clone = PeakRecord(index=self.index)
        clone.assign_from(self)
        return clone
