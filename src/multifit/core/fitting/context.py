"""Fit context: image buffers, shared accumulators and peak storage."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import numpy as np

from multifit.core.domain.config import DampingConfig, FitConfig
from multifit.core.domain.peak import PeakRecord
from multifit.core.fitting.diagnostics import FitDiagnostics
from multifit.core.shared.exceptions import FitContextError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

    from multifit.core.psf.base import BasePSF
    from multifit.core.shared.typing import FloatArray

logger = logging.getLogger(__name__)


def _as_image(values: ArrayLike, name: str, shape: tuple[int, ...] | None = None) -> FloatArray:
    """Validate and copy an image-shaped buffer."""
    array = np.array(values, dtype=np.float64, copy=True)
    if array.ndim != 2:
        msg = f"{name} must be a 2D array, got {array.ndim} dimension(s)"
        raise FitContextError(msg)
    if array.size == 0:
        msg = f"{name} must not be empty"
        raise FitContextError(msg)
    if shape is not None and array.shape != shape:
        msg = f"{name} has shape {array.shape}, expected {shape}"
        raise FitContextError(msg)
    if not np.all(np.isfinite(array)):
        msg = f"{name} contains non-finite values"
        raise FitContextError(msg)
    return array


class FitContext:
    """Everything necessary to fit an array of peaks on one image.

    The context is shape agnostic: rendering, derivatives, validity checks and
    parameter updates are dispatched to the peak shape model ``psf``.

    The shared accumulators hold the sum of the contributions of all peaks
    that are currently added: ``f_data`` the foreground, ``bg_data`` the
    background parameters and ``bg_counts`` the number of peaks covering each
    pixel.
    """

    def __init__(
        self,
        image: ArrayLike,
        scmos_term: ArrayLike,
        psf: BasePSF,
        *,
        config: FitConfig | None = None,
        damping: DampingConfig | None = None,
        background: ArrayLike | None = None,
    ) -> None:
        config = config or FitConfig()
        damping = damping or DampingConfig()

        self.x_data = _as_image(image, "image")
        shape = self.x_data.shape
        self.scmos_term = _as_image(scmos_term, "sCMOS term", shape)
        if np.any(self.scmos_term <= 0.0):
            msg = "sCMOS term must be strictly positive"
            raise FitContextError(msg)
        if background is None:
            self.bg_estimate = np.zeros(shape, dtype=np.float64)
        else:
            self.bg_estimate = _as_image(background, "background", shape)

        self.f_data = np.zeros(shape, dtype=np.float64)
        self.bg_data = np.zeros(shape, dtype=np.float64)
        self.bg_counts = np.zeros(shape, dtype=np.int32)

        self.psf = psf
        self.peaks: list[PeakRecord] = []
        self.max_nfit = 0
        self.next_index = 0
        self.working_peak = PeakRecord(index=-1)

        self.tolerance = config.tolerance
        self.minimum_height = config.minimum_height
        self.hysteresis = config.hysteresis
        self.use_clamp = config.use_clamp
        self.clamp_start = np.array(config.clamp_start, dtype=np.float64)
        self.storage_increment = config.storage_increment
        self.xoff = config.xoff
        self.yoff = config.yoff
        self.zoff = config.zoff
        self.damping = damping

        self.diagnostics = FitDiagnostics()
        self.closed = False

    @property
    def image_size_x(self) -> int:
        return int(self.x_data.shape[1])

    @property
    def image_size_y(self) -> int:
        return int(self.x_data.shape[0])

    @property
    def nfit(self) -> int:
        return len(self.peaks)

    def ensure_open(self) -> None:
        if self.closed:
            msg = "fit context has been released"
            raise FitContextError(msg)

    def reserve(self, n_new: int) -> bool:
        """Make room for ``n_new`` more peaks.

        Capacity grows in multiples of ``storage_increment``.

        Returns
        -------
            True if the capacity had to grow
        """
        needed = self.nfit + n_new
        if needed <= self.max_nfit:
            return False
        increments = math.ceil(needed / self.storage_increment)
        self.max_nfit = increments * self.storage_increment
        logger.debug("Peak storage grown to %d peaks", self.max_nfit)
        return True

    def new_peak_record(self, index: int) -> PeakRecord:
        """Create a peak record with starting solver state."""
        peak = PeakRecord(index=index)
        peak.clamp[:] = self.clamp_start
        peak.lambda_ = self.damping.start
        return peak

    def release(self) -> None:
        """Free all peaks, their model data and the image buffers."""
        if self.closed:
            return
        self.psf.free_peaks(self.peaks)
        self.psf.free_peaks([self.working_peak])
        self.peaks = []
        self.max_nfit = 0
        empty = np.zeros((0, 0), dtype=np.float64)
        self.x_data = empty
        self.scmos_term = empty
        self.bg_estimate = empty
        self.f_data = empty
        self.bg_data = empty
        self.bg_counts = np.zeros((0, 0), dtype=np.int32)
        self.closed = True
