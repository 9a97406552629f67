"""Peak lifecycle: ingestion, status changes, pruning and property access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from multifit.core.constants import (
    BACKGROUND,
    HEIGHT,
    IERROR,
    NFITTING,
    NPEAKPAR,
    PARAMETER_NAMES,
    STATUS,
    XCENTER,
    YCENTER,
    ZCENTER,
    PeakStatus,
)
from multifit.core.fitting.aoi import (
    add_peak,
    aoi_in_image,
    initialize_aoi,
    subtract_peak,
    update_aoi,
)
from multifit.core.fitting.iteration import calc_error, check_peak

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import ArrayLike

    from multifit.core.domain.peak import PeakRecord
    from multifit.core.fitting.context import FitContext
    from multifit.core.shared.typing import FloatArray, IntArray

logger = logging.getLogger(__name__)

_OFFSET_PARAMS = {XCENTER: "xoff", YCENTER: "yoff", ZCENTER: "zoff"}

_INT_PROPERTIES = ("status", "iterations", "added", "index", "xi", "yi", "size_x", "size_y")
_FLOAT_PROPERTIES = (*PARAMETER_NAMES, "error", "lambda")


def _param_offset(ctx: FitContext, i: int) -> float:
    attr = _OFFSET_PARAMS.get(i)
    return 0.0 if attr is None else float(getattr(ctx, attr))


def _select(ctx: FitContext, indices: Iterable[int] | None) -> list[PeakRecord]:
    if indices is None:
        return list(ctx.peaks)
    return [ctx.peaks[i] for i in indices]


def peak_sum(peak: PeakRecord) -> float:
    """Sum of the peak's rendered shape over its AOI."""
    assert peak.psf is not None
    return float(np.sum(peak.psf))


def peak_bg_sum(ctx: FitContext, peak: PeakRecord) -> float:
    """Sum of the external background estimate over the peak's AOI."""
    rows, cols = peak.aoi_slices()
    return float(np.sum(ctx.bg_estimate[rows, cols]))


def _estimate_height(ctx: FitContext, peak: PeakRecord) -> None:
    """Estimate the height of a (subtracted) peak from the image data.

    The data left after removing the other peaks and the background
    estimate is divided by the sum of a unit height rendering of the peak.
    """
    peak.params[HEIGHT] = 1.0
    ctx.psf.calc_peak_shape(ctx, peak)
    rows, cols = peak.aoi_slices()
    signal = float(np.sum(ctx.x_data[rows, cols] - ctx.f_data[rows, cols]))
    signal -= peak_bg_sum(ctx, peak)
    norm = peak_sum(peak)
    height = signal / norm if norm > 0.0 else 0.0
    peak.params[HEIGHT] = max(height, ctx.minimum_height)


def _refresh_error(ctx: FitContext, peak: PeakRecord) -> None:
    error = calc_error(ctx, peak)
    if error is not None:
        peak.error_old = peak.error
        peak.error = error


def new_peaks(ctx: FitContext, params: ArrayLike) -> list[int]:
    """Add peaks with initial parameter guesses.

    Args:
        ctx: Fit context
        params: Array of shape (n, 7) with columns
            ``[height, x, xsigma, y, ysigma, background, z]``, centers in image
            coordinates. A NaN height is estimated from the image, a NaN
            background is taken from the background estimate at the peak
            center and NaN widths default to the model's sigma.

    Returns
    -------
        Positions of the new peaks in the peak list. Peaks with invalid
        starting parameters are kept with status ERROR and are not added to
        the accumulators.
    """
    ctx.ensure_open()
    values = np.asarray(params, dtype=np.float64)
    values = values.reshape(0, NFITTING) if values.size == 0 else np.atleast_2d(values)
    if values.ndim != 2 or values.shape[1] != NFITTING:
        msg = f"peak parameters must have shape (n, {NFITTING}), got {values.shape}"
        raise ValueError(msg)
    if not np.all(np.isfinite(values[:, [XCENTER, YCENTER]])):
        msg = "peak centers must be finite"
        raise ValueError(msg)

    if ctx.reserve(len(values)):
        logger.info("Peak storage capacity is now %d peaks", ctx.max_nfit)

    first = ctx.nfit
    records = []
    for row in values:
        peak = ctx.new_peak_record(ctx.next_index)
        ctx.next_index += 1
        peak.params[:] = row
        if np.isnan(peak.params[ZCENTER]):
            peak.params[ZCENTER] = ctx.zoff
        for i in _OFFSET_PARAMS:
            peak.params[i] -= _param_offset(ctx, i)
        ctx.psf.prepare_new_peak(peak)
        records.append(peak)

    ctx.psf.alloc_peaks(records)
    ctx.peaks.extend(records)

    for peak in records:
        initialize_aoi(ctx, peak)
        if np.isnan(peak.params[BACKGROUND]):
            xc = min(max(peak.xi + peak.x_radius, 0), ctx.image_size_x - 1)
            yc = min(max(peak.yi + peak.y_radius, 0), ctx.image_size_y - 1)
            peak.params[BACKGROUND] = ctx.bg_estimate[yc, xc]
        estimate = bool(np.isnan(peak.params[HEIGHT]))
        if estimate:
            peak.params[HEIGHT] = ctx.minimum_height

        if not check_peak(ctx, peak):
            peak.status = PeakStatus.ERROR
            logger.debug("Peak %d rejected at creation", peak.index)
            continue
        if estimate:
            _estimate_height(ctx, peak)
        add_peak(ctx, peak)

    for peak in records:
        if peak.status != PeakStatus.ERROR:
            _refresh_error(ctx, peak)

    return list(range(first, ctx.nfit))


def estimate_peak_height(ctx: FitContext, indices: Iterable[int] | None = None) -> None:
    """Re-estimate the height of RUNNING peaks from the image data."""
    ctx.ensure_open()
    peaks = [p for p in _select(ctx, indices) if p.status == PeakStatus.RUNNING]
    for peak in peaks:
        subtract_peak(ctx, peak)
        _estimate_height(ctx, peak)
        add_peak(ctx, peak)
    for peak in peaks:
        _refresh_error(ctx, peak)


def recenter_peaks(ctx: FitContext) -> int:
    """Move the AOI of every active peak that drifted past the hysteresis.

    A peak whose AOI would leave the image is marked ERROR.

    Returns
    -------
        Number of peaks whose AOI changed
    """
    ctx.ensure_open()
    moved = []
    for peak in ctx.peaks:
        if peak.status == PeakStatus.ERROR:
            continue
        subtract_peak(ctx, peak)
        if update_aoi(ctx, peak):
            moved.append(peak)
            if not aoi_in_image(ctx, peak):
                ctx.diagnostics.n_margin += 1
                peak.status = PeakStatus.ERROR
                continue
        add_peak(ctx, peak)
    for peak in moved:
        if peak.status != PeakStatus.ERROR:
            _refresh_error(ctx, peak)
    return len(moved)


def reset_peak(ctx: FitContext, i: int) -> None:
    """Reset the damping and clamp state of peak ``i`` to the starting values."""
    peak = ctx.peaks[i]
    peak.lambda_ = ctx.damping.start
    peak.clamp[:] = ctx.clamp_start
    peak.sign[:] = 0


def reset_clamp_values(ctx: FitContext) -> None:
    """Reset the clamp and sign state of all peaks."""
    for peak in ctx.peaks:
        peak.clamp[:] = ctx.clamp_start
        peak.sign[:] = 0


def remove_error_peaks(ctx: FitContext) -> int:
    """Remove all ERROR peaks from the peak list.

    Returns
    -------
        Number of peaks removed (also added to the lost peak counter)
    """
    ctx.ensure_open()
    kept: list[PeakRecord] = []
    lost: list[PeakRecord] = []
    for peak in ctx.peaks:
        if peak.status == PeakStatus.ERROR:
            if peak.added:
                subtract_peak(ctx, peak)
            lost.append(peak)
        else:
            kept.append(peak)

    if lost:
        ctx.psf.free_peaks(lost)
        ctx.peaks = kept
        ctx.diagnostics.n_lost += len(lost)
        logger.info("Removed %d lost peak(s), %d remaining", len(lost), len(kept))
    return len(lost)


def set_peak_status(ctx: FitContext, status: ArrayLike) -> None:
    """Force the status of every peak.

    Marking a peak ERROR removes it from the accumulators; taking a peak out
    of ERROR adds it back (if its AOI is still valid) with fresh solver state.

    Args:
        ctx: Fit context
        status: One status value per peak
    """
    ctx.ensure_open()
    values = np.asarray(status, dtype=np.int_).ravel()
    if values.size != ctx.nfit:
        msg = f"expected {ctx.nfit} status values, got {values.size}"
        raise ValueError(msg)
    new_status = [PeakStatus(int(v)) for v in values]

    for i, (peak, status_i) in enumerate(zip(ctx.peaks, new_status, strict=True)):
        if status_i == peak.status:
            continue
        if status_i == PeakStatus.ERROR:
            if peak.added:
                subtract_peak(ctx, peak)
        elif peak.status == PeakStatus.ERROR:
            # Status requests leave the diagnostic counters untouched.
            counters = ctx.diagnostics.as_dict()
            valid = check_peak(ctx, peak)
            for name, value in counters.items():
                setattr(ctx.diagnostics, name, value)
            if not valid:
                continue
            reset_peak(ctx, i)
            add_peak(ctx, peak)
            _refresh_error(ctx, peak)
        peak.status = status_i


def get_unconverged(ctx: FitContext) -> int:
    """Number of peaks still RUNNING."""
    return sum(1 for peak in ctx.peaks if peak.status == PeakStatus.RUNNING)


def get_n_error(ctx: FitContext) -> int:
    """Number of peaks in ERROR status."""
    return sum(1 for peak in ctx.peaks if peak.status == PeakStatus.ERROR)


def get_peak_property(ctx: FitContext, name: str) -> FloatArray | IntArray:
    """Return one property of all the peaks as an array.

    Args:
        ctx: Fit context
        name: A parameter name (``height``, ``x``, ``xsigma``, ``y``,
            ``ysigma``, ``background``, ``z``; centers in image coordinates),
            ``error``, ``lambda``, or one of ``status``, ``iterations``,
            ``added``, ``index``, ``xi``, ``yi``, ``size_x``, ``size_y``

    Raises
    ------
        ValueError: If the property name is unknown
    """
    if name in PARAMETER_NAMES:
        i = PARAMETER_NAMES.index(name)
        offset = _param_offset(ctx, i)
        return np.array([p.params[i] + offset for p in ctx.peaks], dtype=np.float64)
    if name == "error":
        return np.array([p.error for p in ctx.peaks], dtype=np.float64)
    if name == "lambda":
        return np.array([p.lambda_ for p in ctx.peaks], dtype=np.float64)
    if name in _INT_PROPERTIES:
        return np.array([int(getattr(p, name)) for p in ctx.peaks], dtype=np.int32)

    msg = f"Unknown peak property '{name}' (available: {', '.join(list_properties())})"
    raise ValueError(msg)


def list_properties() -> list[str]:
    return [*_FLOAT_PROPERTIES, *_INT_PROPERTIES]


def get_results(ctx: FitContext) -> FloatArray:
    """All peaks as an (nfit, 9) array: parameters, status and error."""
    results = np.zeros((ctx.nfit, NPEAKPAR), dtype=np.float64)
    for row, peak in zip(results, ctx.peaks, strict=True):
        row[:NFITTING] = peak.params
        for i in _OFFSET_PARAMS:
            row[i] += _param_offset(ctx, i)
        row[STATUS] = float(peak.status)
        row[IERROR] = peak.error
    return results
