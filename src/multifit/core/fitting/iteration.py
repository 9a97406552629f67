"""Fitting iterations.

One call to an iterate function performs one fitting round: every RUNNING
peak (optionally restricted to a subset) is improved once, in turn, while
the contributions of all the other peaks stay in the shared accumulators.

Two algorithms are available. ``iterate_lm`` is a per-peak
Levenberg-Marquardt step with adaptive damping and retries. ``iterate_original``
takes one undamped, clamped Gauss-Newton step and gives up on a peak at the
first failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from multifit.core.algorithms.linear_algebra import solve_normal_equations
from multifit.core.constants import HEIGHT, PeakStatus
from multifit.core.fitting.aoi import add_peak, aoi_in_image, peak_model, subtract_peak

if TYPE_CHECKING:
    from collections.abc import Iterable

    from multifit.core.domain.peak import PeakRecord
    from multifit.core.fitting.context import FitContext

logger = logging.getLogger(__name__)


def calc_error(ctx: FitContext, peak: PeakRecord) -> float | None:
    """Weighted sum of squared residuals over the peak's AOI.

    The error is ``sum((data - background - foreground)^2 / scmos)`` using
    the model image as it is (peak added) or as it would be once the peak
    is added (peak subtracted).

    Returns
    -------
        The error, or None if the model intensity is negative somewhere in the
        AOI (counted in ``n_neg_fi``).
    """
    rows, cols = peak.aoi_slices()
    foreground, background = peak_model(ctx, peak)
    fi = foreground + background
    if np.any(fi < 0.0):
        ctx.diagnostics.n_neg_fi += 1
        return None
    residual = ctx.x_data[rows, cols] - fi
    return float(np.sum(residual * residual / ctx.scmos_term[rows, cols]))


def check_peak(ctx: FitContext, peak: PeakRecord) -> bool:
    """Check the validity of a peak's parameters.

    The AOI has to lie inside the image and the height must not be negative;
    the shape model adds its own checks (widths, ...). Each failure
    increments the matching diagnostic counter.
    """
    if not aoi_in_image(ctx, peak):
        ctx.diagnostics.n_margin += 1
        return False
    if peak.params[HEIGHT] < 0.0:
        ctx.diagnostics.n_neg_height += 1
        return False
    return ctx.psf.check(ctx, peak)


def _update_status(ctx: FitContext, peak: PeakRecord, start_error: float, error: float) -> None:
    peak.error_old = start_error
    peak.error = error
    if error == 0.0 or abs(start_error - error) / error < ctx.tolerance:
        peak.status = PeakStatus.CONVERGED


def _running(ctx: FitContext, indices: Iterable[int] | None) -> list[PeakRecord]:
    if indices is None:
        candidates = ctx.peaks
    else:
        candidates = [ctx.peaks[i] for i in indices]
    return [peak for peak in candidates if peak.status == PeakStatus.RUNNING]


def _lose_peak(ctx: FitContext, peak: PeakRecord, reason: str) -> None:
    """Mark a (subtracted) peak as un-fittable."""
    peak.status = PeakStatus.ERROR
    logger.debug("Peak %d lost: %s", peak.index, reason)


def iterate_lm(ctx: FitContext, indices: Iterable[int] | None = None) -> None:
    """Perform one Levenberg-Marquardt round on the RUNNING peaks.

    For every peak the damped normal equations are solved; a trial step is
    accepted if it passes the validity checks and does not increase the
    error. Otherwise lambda is increased and the step is retried from the
    same starting point. A peak whose lambda exceeds the maximum is marked
    ERROR and left out of the accumulators.

    Args:
        ctx: Fit context
        indices: Optional positions of the peaks to consider, e.g. one batch
            of mutually non-overlapping peaks
    """
    damping = ctx.damping
    work = ctx.working_peak

    for peak in _running(ctx, indices):
        ctx.diagnostics.n_iterations += 1
        subtract_peak(ctx, peak)
        ctx.psf.copy_peak(peak, work)

        start_error = calc_error(ctx, work)
        if start_error is None:
            peak.iterations += 1
            _lose_peak(ctx, peak, "negative model intensity")
            continue

        jacobian, hessian = ctx.psf.calc_jh(ctx, work)
        diagonal = np.diag_indices_from(hessian)
        lam = peak.lambda_

        while True:
            w_hessian = hessian.copy()
            w_hessian[diagonal] *= 1.0 + lam
            delta = solve_normal_equations(w_hessian, jacobian)

            if delta is None:
                ctx.diagnostics.n_dposv += 1
            else:
                ctx.psf.update(ctx, work, delta, use_clamp=ctx.use_clamp)
                if check_peak(ctx, work):
                    ctx.psf.calc_peak_shape(ctx, work)
                    error = calc_error(ctx, work)
                    if error is not None:
                        if error <= start_error:
                            work.lambda_ = max(lam * damping.down, damping.minimum)
                            work.iterations += 1
                            _update_status(ctx, work, start_error, error)
                            ctx.psf.copy_peak(work, peak)
                            add_peak(ctx, peak, render=False)
                            break
                        ctx.diagnostics.n_non_decr += 1

            lam *= damping.up
            if lam > damping.maximum:
                peak.lambda_ = damping.maximum
                peak.iterations += 1
                _lose_peak(ctx, peak, "lambda exceeded the maximum")
                break

            # Retry from the starting point, keeping the increased damping.
            ctx.psf.copy_peak(peak, work)


def iterate_original(ctx: FitContext, indices: Iterable[int] | None = None) -> None:
    """Perform one round of the original (undamped, clamped) algorithm.

    The update is always clamped, and a parameter whose step changes sign
    gets its clamp halved. There is no retry: a peak whose step cannot be
    solved or gives invalid parameters is marked ERROR.
    """
    work = ctx.working_peak

    for peak in _running(ctx, indices):
        ctx.diagnostics.n_iterations += 1
        subtract_peak(ctx, peak)
        peak.iterations += 1
        ctx.psf.copy_peak(peak, work)

        start_error = calc_error(ctx, work)
        if start_error is None:
            _lose_peak(ctx, peak, "negative model intensity")
            continue

        jacobian, hessian = ctx.psf.calc_jh(ctx, work)
        delta = solve_normal_equations(hessian, jacobian)
        if delta is None:
            ctx.diagnostics.n_dposv += 1
            _lose_peak(ctx, peak, "singular Hessian")
            continue

        ctx.psf.update(ctx, work, delta, use_clamp=True)
        if not check_peak(ctx, work):
            _lose_peak(ctx, peak, "invalid parameters")
            continue

        ctx.psf.calc_peak_shape(ctx, work)
        error = calc_error(ctx, work)
        if error is None:
            _lose_peak(ctx, peak, "negative model intensity")
            continue
        if error > start_error:
            ctx.diagnostics.n_non_decr += 1

        _update_status(ctx, work, start_error, error)
        ctx.psf.copy_peak(work, peak)
        add_peak(ctx, peak, render=False)
