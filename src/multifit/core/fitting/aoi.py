"""Area of interest (AOI) bookkeeping.

A peak contributes to the shared accumulators of the fit context only over
its AOI. Before any change to a peak's parameters its contribution has to be
subtracted and afterwards added again; this keeps the shared model image
consistent while one peak at a time is perturbed.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from multifit.core.constants import BACKGROUND, XCENTER, YCENTER

if TYPE_CHECKING:
    from multifit.core.domain.peak import PeakRecord
    from multifit.core.fitting.context import FitContext
    from multifit.core.shared.typing import FloatArray

_HYSTERESIS_TOLERANCE = 1e-10
"""Slack on the hysteresis comparison for differences that round below the threshold."""


def add_peak(ctx: FitContext, peak: PeakRecord, *, render: bool = True) -> None:
    """Add the peak's contribution to the shared accumulators.

    Args:
        ctx: Fit context
        peak: Peak to add
        render: Render the peak shape first. When False the cached ``psf``
            is used, which must match the current parameters.
    """
    if render or peak.psf is None:
        ctx.psf.calc_peak_shape(ctx, peak)
    assert peak.psf is not None

    rows, cols = peak.aoi_slices()
    ctx.f_data[rows, cols] += peak.psf
    ctx.bg_data[rows, cols] += peak.params[BACKGROUND]
    ctx.bg_counts[rows, cols] += 1
    peak.added += 1


def subtract_peak(ctx: FitContext, peak: PeakRecord) -> None:
    """Remove the peak's (cached) contribution from the shared accumulators."""
    assert peak.psf is not None

    rows, cols = peak.aoi_slices()
    ctx.f_data[rows, cols] -= peak.psf
    ctx.bg_data[rows, cols] -= peak.params[BACKGROUND]
    ctx.bg_counts[rows, cols] -= 1
    peak.added -= 1


def peak_model(ctx: FitContext, peak: PeakRecord) -> tuple[FloatArray, FloatArray]:
    """Foreground and background model over the peak's AOI.

    When the peak is not currently added, its own cached shape and
    background are combined with the accumulators, so the result is the
    model image the accumulators would hold once the peak is added.

    Returns
    -------
        Tuple (foreground, background) of AOI shaped arrays
    """
    rows, cols = peak.aoi_slices()
    if peak.added:
        foreground = ctx.f_data[rows, cols]
        background = ctx.bg_data[rows, cols] / ctx.bg_counts[rows, cols]
    else:
        assert peak.psf is not None
        foreground = ctx.f_data[rows, cols] + peak.psf
        background = (ctx.bg_data[rows, cols] + peak.params[BACKGROUND]) / (
            ctx.bg_counts[rows, cols] + 1
        )
    return foreground, background


def hysteresis_shift(current: int, candidate: float, threshold: float) -> int:
    """Return the new integer position for a continuous candidate.

    The position only changes when the candidate differs from the current
    value by at least ``threshold``; it then snaps to the nearest integer.
    A difference that equals the threshold up to rounding counts as reaching it.
    """
    if abs(candidate - current) >= threshold - _HYSTERESIS_TOLERANCE:
        return math.floor(candidate + 0.5)
    return current


def _radius(candidate: float) -> int:
    return max(1, math.floor(candidate + 0.5))


def initialize_aoi(ctx: FitContext, peak: PeakRecord) -> None:
    """Place the AOI around the peak center, without hysteresis."""
    rx, ry = ctx.psf.aoi_radius(peak)
    rx_i = _radius(rx)
    ry_i = _radius(ry)
    xc = math.floor(peak.params[XCENTER] + ctx.xoff + 0.5)
    yc = math.floor(peak.params[YCENTER] + ctx.yoff + 0.5)
    _set_aoi(peak, xc, yc, rx_i, ry_i)


def update_aoi(ctx: FitContext, peak: PeakRecord) -> bool:
    """Move and/or resize the AOI to follow the peak, with hysteresis.

    Returns
    -------
        True if the AOI changed
    """
    rx, ry = ctx.psf.aoi_radius(peak)
    old_rx = peak.x_radius
    old_ry = peak.y_radius
    old_xc = peak.xi + old_rx
    old_yc = peak.yi + old_ry

    new_rx = max(1, hysteresis_shift(old_rx, rx, ctx.hysteresis))
    new_ry = max(1, hysteresis_shift(old_ry, ry, ctx.hysteresis))
    new_xc = hysteresis_shift(old_xc, peak.params[XCENTER] + ctx.xoff, ctx.hysteresis)
    new_yc = hysteresis_shift(old_yc, peak.params[YCENTER] + ctx.yoff, ctx.hysteresis)

    if (new_rx, new_ry, new_xc, new_yc) == (old_rx, old_ry, old_xc, old_yc):
        return False
    _set_aoi(peak, new_xc, new_yc, new_rx, new_ry)
    return True


def _set_aoi(peak: PeakRecord, xc: int, yc: int, rx: int, ry: int) -> None:
    peak.xi = xc - rx
    peak.yi = yc - ry
    peak.size_x = 2 * rx + 1
    peak.size_y = 2 * ry + 1


def aoi_in_image(ctx: FitContext, peak: PeakRecord) -> bool:
    """Check that the whole AOI lies inside the image."""
    return (
        peak.xi >= 0
        and peak.yi >= 0
        and peak.xi + peak.size_x <= ctx.image_size_x
        and peak.yi + peak.size_y <= ctx.image_size_y
    )

