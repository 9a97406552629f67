"""Base classes for peak shape models.

A peak shape model supplies everything the fitting engine needs to know
about the shape of a peak: its rendered intensity over the AOI, the
Jacobian and Hessian of the weighted error, a validity check and the rule
that maps a solver delta to new parameter values. The fit context only
talks to peaks through this interface.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np

from multifit.core.constants import XWIDTH, YWIDTH
from multifit.core.fitting.aoi import update_aoi

if TYPE_CHECKING:
    from collections.abc import Sequence

    from multifit.core.domain.peak import PeakRecord
    from multifit.core.fitting.context import FitContext
    from multifit.core.shared.typing import FloatArray


@runtime_checkable
class PeakShapeModel(Protocol):
    """Protocol for peak shape models."""

    name: str
    fit_indices: tuple[int, ...]

    def alloc_peaks(self, peaks: Sequence[PeakRecord]) -> None: ...
    def free_peaks(self, peaks: Sequence[PeakRecord]) -> None: ...
    def copy_peak(self, src: PeakRecord, dst: PeakRecord) -> None: ...
    def prepare_new_peak(self, peak: PeakRecord) -> None: ...
    def calc_peak_shape(self, ctx: FitContext, peak: PeakRecord) -> None: ...
    def calc_jh(self, ctx: FitContext, peak: PeakRecord) -> tuple[FloatArray, FloatArray]: ...
    def check(self, ctx: FitContext, peak: PeakRecord) -> bool: ...
    def update(
        self, ctx: FitContext, peak: PeakRecord, delta: FloatArray, *, use_clamp: bool
    ) -> None: ...
    def aoi_radius(self, peak: PeakRecord) -> tuple[float, float]: ...


class BasePSF:
    """Base class for all peak shape models.

    Subclasses define ``fit_indices``, the parameter index of each entry of
    the Jacobian, and implement ``calc_peak_shape`` and ``calc_jh``.
    """

    name = "base"
    fit_indices: tuple[int, ...] = ()

    def __init__(
        self,
        *,
        sigma: float = 1.5,
        aoi_sigmas: float = 3.0,
        max_aoi_radius: int = 10,
    ) -> None:
        self.sigma = sigma
        self.aoi_sigmas = aoi_sigmas
        self.max_aoi_radius = max_aoi_radius

    @property
    def jac_size(self) -> int:
        return len(self.fit_indices)

    def new_model_data(self) -> Any:
        return None

    def alloc_peaks(self, peaks: Sequence[PeakRecord]) -> None:
        for peak in peaks:
            peak.model_data = self.new_model_data()

    def free_peaks(self, peaks: Sequence[PeakRecord]) -> None:
        for peak in peaks:
            peak.model_data = None
            peak.psf = None

    def copy_peak(self, src: PeakRecord, dst: PeakRecord) -> None:
        dst.assign_from(src)

    def prepare_new_peak(self, peak: PeakRecord) -> None:
        """Fill in widths that were not given with the default sigma."""
        for i in (XWIDTH, YWIDTH):
            if np.isnan(peak.params[i]):
                peak.params[i] = self.sigma

    def calc_peak_shape(self, ctx: FitContext, peak: PeakRecord) -> None:
        raise NotImplementedError

    def calc_jh(self, ctx: FitContext, peak: PeakRecord) -> tuple[FloatArray, FloatArray]:
        raise NotImplementedError

    def check(self, ctx: FitContext, peak: PeakRecord) -> bool:
        return True

    def constrain(self, peak: PeakRecord) -> None:
        """Enforce relations between parameters after an update."""

    def update(
        self, ctx: FitContext, peak: PeakRecord, delta: FloatArray, *, use_clamp: bool
    ) -> None:
        """Apply a solver delta to the fitted parameters and follow with the AOI."""
        for j, i in enumerate(self.fit_indices):
            peak.update_param(float(delta[j]), i, use_clamp=use_clamp)
        self.constrain(peak)
        update_aoi(ctx, peak)

    def aoi_radius(self, peak: PeakRecord) -> tuple[float, float]:
        """Candidate AOI half sizes (x, y) in pixels."""
        sx, sy = peak.widths
        rx = min(max(self.aoi_sigmas * abs(sx), 1.0), float(self.max_aoi_radius))
        ry = min(max(self.aoi_sigmas * abs(sy), 1.0), float(self.max_aoi_radius))
        return rx, ry
