"""Multi-peak fitter: the public interface of the fitting engine.

``MultiFitter`` owns one ``FitContext`` and exposes construction, peak
ingestion, image/background refresh, the iteration loop, the query surface
and teardown. Numerical problems during fitting are never raised: they show
up in the peak status values and in the diagnostic counters.

Example:
    >>> fitter = MultiFitter(image, config=MultiFitConfig())
    >>> fitter.new_peaks(initial_guesses)
    >>> fitter.fit()
    >>> fitter.remove_error_peaks()
    >>> results = fitter.get_results()
    >>> fitter.cleanup()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from multifit.core.algorithms.overlap import color_peaks, group_overlapping_peaks
from multifit.core.constants import PeakStatus
from multifit.core.domain.config import MultiFitConfig
from multifit.core.fitting import lifecycle
from multifit.core.fitting.context import FitContext, _as_image
from multifit.core.fitting.iteration import iterate_lm, iterate_original
from multifit.core.psf.registry import create_psf

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import ArrayLike

    from multifit.core.fitting.diagnostics import FitDiagnostics
    from multifit.core.psf.base import BasePSF
    from multifit.core.shared.typing import FloatArray, IntArray

logger = logging.getLogger(__name__)


class MultiFitter:
    """Fit many, possibly overlapping, peaks on a single image.

    Args:
        image: Raw image data (2D)
        scmos_term: Per pixel noise term (variance / gain^2); defaults to ones
        background: Initial background estimate; defaults to zeros
        config: Fitter configuration
        psf: Peak shape model; defaults to the model named in ``config.psf``
    """

    def __init__(
        self,
        image: ArrayLike,
        scmos_term: ArrayLike | None = None,
        *,
        background: ArrayLike | None = None,
        config: MultiFitConfig | None = None,
        psf: BasePSF | None = None,
    ) -> None:
        self.config = config or MultiFitConfig()
        if scmos_term is None:
            scmos_term = np.ones(np.shape(image), dtype=np.float64)
        self.context = FitContext(
            image,
            scmos_term,
            psf or create_psf(self.config.psf),
            config=self.config.fitting,
            damping=self.config.damping,
            background=background,
        )
        logger.info(
            "Fitter created: %dx%d image, %s model, %s algorithm, tolerance %g",
            self.context.image_size_x,
            self.context.image_size_y,
            self.context.psf.name,
            self.config.fitting.algorithm,
            self.context.tolerance,
        )

    def __enter__(self) -> MultiFitter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def nfit(self) -> int:
        return self.context.nfit

    @property
    def diagnostics(self) -> FitDiagnostics:
        return self.context.diagnostics

    @property
    def closed(self) -> bool:
        return self.context.closed

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def new_peaks(self, params: ArrayLike) -> list[int]:
        """Add peaks from an (n, 7) array of starting parameters.

        See ``lifecycle.new_peaks`` for the column layout and defaults.
        """
        added = lifecycle.new_peaks(self.context, params)
        logger.debug("Added %d peak(s), %d in total", len(added), self.nfit)
        return added

    def new_image(self, image: ArrayLike) -> None:
        """Replace the image data and start over with no peaks."""
        ctx = self.context
        ctx.ensure_open()
        ctx.x_data = _as_image(image, "image", ctx.x_data.shape)
        ctx.psf.free_peaks(ctx.peaks)
        ctx.peaks = []
        ctx.f_data[:] = 0.0
        ctx.bg_data[:] = 0.0
        ctx.bg_counts[:] = 0

    def new_background(self, background: ArrayLike) -> None:
        """Replace the background estimate.

        The estimate seeds peak backgrounds and heights and fills pixels no
        peak covers; the accumulators are not touched.
        """
        ctx = self.context
        ctx.ensure_open()
        ctx.bg_estimate = _as_image(background, "background", ctx.x_data.shape)

    def set_peak_status(self, status: ArrayLike) -> None:
        lifecycle.set_peak_status(self.context, status)

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def iterate(self, indices: Iterable[int] | None = None) -> None:
        """Run one fitting round with the configured algorithm."""
        self.context.ensure_open()
        if self.config.fitting.algorithm == "original":
            iterate_original(self.context, indices)
        else:
            iterate_lm(self.context, indices)

    def fit(self, max_iterations: int | None = None) -> int:
        """Iterate until no peak is RUNNING or the iteration budget is spent.

        Returns
        -------
            Number of rounds performed
        """
        if max_iterations is None:
            max_iterations = self.config.fitting.max_iterations
        rounds = 0
        while rounds < max_iterations and self.get_unconverged() > 0:
            self.iterate()
            rounds += 1
        logger.debug(
            "Fit stopped after %d round(s): %d running, %d error",
            rounds,
            self.get_unconverged(),
            self.get_n_error(),
        )
        return rounds

    def estimate_peak_height(self, indices: Iterable[int] | None = None) -> None:
        lifecycle.estimate_peak_height(self.context, indices)

    def recenter_peaks(self) -> int:
        return lifecycle.recenter_peaks(self.context)

    def reset_peak(self, i: int) -> None:
        self.context.ensure_open()
        lifecycle.reset_peak(self.context, i)

    def reset_clamp_values(self) -> None:
        self.context.ensure_open()
        lifecycle.reset_clamp_values(self.context)

    def remove_error_peaks(self) -> int:
        return lifecycle.remove_error_peaks(self.context)

    def independent_batches(self) -> list[list[int]]:
        """Batches of active peaks whose AOIs do not overlap each other.

        Peaks within a batch can be fit concurrently, batches must be fit
        one after the other.
        """
        self.context.ensure_open()
        active = [i for i, p in enumerate(self.context.peaks) if p.status != PeakStatus.ERROR]
        batches = color_peaks([self.context.peaks[i] for i in active])
        return [[active[k] for k in batch] for batch in batches]

    def overlap_groups(self) -> list[list[int]]:
        """Groups of active peaks connected by AOI overlaps."""
        self.context.ensure_open()
        active = [i for i, p in enumerate(self.context.peaks) if p.status != PeakStatus.ERROR]
        groups = group_overlapping_peaks([self.context.peaks[i] for i in active])
        return [[active[k] for k in group] for group in groups]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_fit_image(self) -> FloatArray:
        """Sum of the rendered shapes of all added peaks (foreground only)."""
        self.context.ensure_open()
        return self.context.f_data.copy()

    def get_background_image(self) -> FloatArray:
        """Fitted background where peaks cover the image, the estimate elsewhere."""
        ctx = self.context
        ctx.ensure_open()
        covered = ctx.bg_counts > 0
        background = ctx.bg_estimate.copy()
        background[covered] = ctx.bg_data[covered] / ctx.bg_counts[covered]
        return background

    def get_residual(self) -> FloatArray:
        """Image data minus the full model (foreground and background)."""
        ctx = self.context
        ctx.ensure_open()
        return ctx.x_data - ctx.f_data - self.get_background_image()

    def get_peak_property(self, name: str) -> FloatArray | IntArray:
        self.context.ensure_open()
        return lifecycle.get_peak_property(self.context, name)

    def get_results(self) -> FloatArray:
        self.context.ensure_open()
        return lifecycle.get_results(self.context)

    def get_unconverged(self) -> int:
        self.context.ensure_open()
        return lifecycle.get_unconverged(self.context)

    def get_n_error(self) -> int:
        self.context.ensure_open()
        return lifecycle.get_n_error(self.context)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cleanup(self) -> dict[str, Any]:
        """Release the context and return the final diagnostic counters.

        Peaks still RUNNING at this point are counted as non-converged.
        Calling cleanup more than once is harmless.
        """
        ctx = self.context
        if ctx.closed:
            return ctx.diagnostics.as_dict()

        ctx.diagnostics.n_non_converged += lifecycle.get_unconverged(ctx)
        summary = ctx.diagnostics.as_dict()
        logger.info("Fit diagnostics for %d peak(s):", ctx.nfit)
        for key, value in ctx.diagnostics.describe().items():
            logger.info("  %-22s %d", key, value)
        ctx.release()
        return summary
