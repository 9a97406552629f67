"""Gaussian peak shape models.

The peak is ``h * exp(-dx^2 / (2 sx^2) - dy^2 / (2 sy^2))`` on top of a flat
background. Three variants differ in how the widths are fit: fixed, one
shared width, or independent x and y widths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from multifit.core.constants import (
    BACKGROUND,
    HEIGHT,
    XCENTER,
    XWIDTH,
    YCENTER,
    YWIDTH,
)
from multifit.core.fitting.aoi import peak_model
from multifit.core.psf.base import BasePSF
from multifit.core.psf.registry import register_psf

if TYPE_CHECKING:
    from multifit.core.domain.peak import PeakRecord
    from multifit.core.fitting.context import FitContext
    from multifit.core.shared.typing import FloatArray


@dataclass(slots=True)
class GaussianPeakData:
    """Separable x and y profiles of the last render of a peak."""

    dx: FloatArray
    dy: FloatArray
    ex: FloatArray
    ey: FloatArray


class _GaussianBase(BasePSF):
    def _profiles(self, ctx: FitContext, peak: PeakRecord) -> GaussianPeakData:
        sx, sy = peak.widths
        xc = peak.params[XCENTER] + ctx.xoff
        yc = peak.params[YCENTER] + ctx.yoff
        dx = np.arange(peak.xi, peak.xi + peak.size_x, dtype=np.float64) - xc
        dy = np.arange(peak.yi, peak.yi + peak.size_y, dtype=np.float64) - yc
        data = GaussianPeakData(
            dx=dx,
            dy=dy,
            ex=np.exp(-(dx * dx) / (2.0 * sx * sx)),
            ey=np.exp(-(dy * dy) / (2.0 * sy * sy)),
        )
        peak.model_data = data
        return data

    def calc_peak_shape(self, ctx: FitContext, peak: PeakRecord) -> None:
        data = self._profiles(ctx, peak)
        peak.psf = peak.params[HEIGHT] * np.outer(data.ey, data.ex)

    def _derivatives(
        self, peak: PeakRecord, data: GaussianPeakData, counts: FloatArray
    ) -> dict[int, FloatArray]:
        """Derivatives of the pixel model with respect to every parameter."""
        sx, sy = peak.widths
        h = peak.params[HEIGHT]
        g = np.outer(data.ey, data.ex)
        hg = h * g
        dx = data.dx[np.newaxis, :]
        dy = data.dy[:, np.newaxis]
        return {
            HEIGHT: g,
            XCENTER: hg * dx / (sx * sx),
            XWIDTH: hg * dx * dx / (sx * sx * sx),
            YCENTER: hg * dy / (sy * sy),
            YWIDTH: hg * dy * dy / (sy * sy * sy),
            # The pixel background is the average of the covering peaks.
            BACKGROUND: 1.0 / counts,
        }

    def _fit_derivatives(self, derivs: dict[int, FloatArray]) -> list[FloatArray]:
        return [derivs[i] for i in self.fit_indices]

    def calc_jh(self, ctx: FitContext, peak: PeakRecord) -> tuple[FloatArray, FloatArray]:
        """Gradient and Gauss-Newton Hessian of the weighted error.

        Returns
        -------
            Tuple (jacobian, hessian) where jacobian is
            ``sum((model - data) * dmodel / scmos)`` and hessian is
            ``sum(dmodel_i * dmodel_j / scmos)`` over the AOI.
        """
        self.calc_peak_shape(ctx, peak)
        data = peak.model_data
        rows, cols = peak.aoi_slices()

        foreground, background = peak_model(ctx, peak)
        counts = ctx.bg_counts[rows, cols] + (0 if peak.added else 1)
        variance = ctx.scmos_term[rows, cols]
        weighted_diff = (foreground + background - ctx.x_data[rows, cols]) / variance

        derivs = self._derivatives(peak, data, counts.astype(np.float64))
        matrix = np.stack([d.ravel() for d in self._fit_derivatives(derivs)])

        jacobian = matrix @ weighted_diff.ravel()
        hessian = (matrix / variance.ravel()) @ matrix.T
        return jacobian, hessian

    def check(self, ctx: FitContext, peak: PeakRecord) -> bool:
        sx, sy = peak.widths
        if sx <= 0.0 or sy <= 0.0:
            ctx.diagnostics.n_neg_width += 1
            return False
        return True

    def new_model_data(self) -> GaussianPeakData:
        empty = np.zeros(0, dtype=np.float64)
        return GaussianPeakData(dx=empty, dy=empty.copy(), ex=empty.copy(), ey=empty.copy())


@register_psf("gaussian_fixed")
class FixedGaussianPSF(_GaussianBase):
    """Gaussian with fixed widths; fits height, center and background."""

    name = "gaussian_fixed"
    fit_indices = (HEIGHT, XCENTER, YCENTER, BACKGROUND)


@register_psf("gaussian")
class GaussianPSF(_GaussianBase):
    """Symmetric Gaussian with a single fitted width (xsigma == ysigma)."""

    name = "gaussian"
    fit_indices = (HEIGHT, XCENTER, XWIDTH, YCENTER, BACKGROUND)

    def prepare_new_peak(self, peak: PeakRecord) -> None:
        super().prepare_new_peak(peak)
        peak.params[YWIDTH] = peak.params[XWIDTH]

    def _fit_derivatives(self, derivs: dict[int, FloatArray]) -> list[FloatArray]:
        tied = dict(derivs)
        tied[XWIDTH] = derivs[XWIDTH] + derivs[YWIDTH]
        return [tied[i] for i in self.fit_indices]

    def constrain(self, peak: PeakRecord) -> None:
        peak.params[YWIDTH] = peak.params[XWIDTH]


@register_psf("gaussian_elliptical")
class EllipticalGaussianPSF(_GaussianBase):
    """Elliptical Gaussian with independent x and y widths."""

    name = "gaussian_elliptical"
    fit_indices = (HEIGHT, XCENTER, XWIDTH, YCENTER, YWIDTH, BACKGROUND)
