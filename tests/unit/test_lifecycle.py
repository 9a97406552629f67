"""Test peak ingestion, status changes, pruning and queries."""

import numpy as np
import pytest

from multifit.core.constants import BACKGROUND, HEIGHT, IERROR, STATUS, XCENTER, PeakStatus
from multifit.core.fitting import lifecycle
from multifit.core.fitting.aoi import add_peak, subtract_peak

NAN = np.nan


class TestNewPeaks:
    """Tests for adding peaks."""

    def test_peaks_are_added(self, make_context):
        """New peaks should be RUNNING and added to the accumulators."""
        ctx = make_context(np.zeros((40, 40)))
        positions = lifecycle.new_peaks(
            ctx,
            [[10.0, 10.0, 1.5, 10.0, 1.5, 1.0, 0.0], [10.0, 25.0, 1.5, 25.0, 1.5, 1.0, 0.0]],
        )
        assert positions == [0, 1]
        assert all(p.status == PeakStatus.RUNNING and p.added == 1 for p in ctx.peaks)
        assert ctx.bg_counts.sum() == sum(p.size_x * p.size_y for p in ctx.peaks)
        assert [p.index for p in ctx.peaks] == [0, 1]

    @pytest.mark.parametrize("params", [[], np.zeros((0, 7))])
    def test_no_peaks(self, make_context, params):
        """Adding an empty set of peaks should do nothing."""
        ctx = make_context(np.zeros((40, 40)))
        assert lifecycle.new_peaks(ctx, params) == []
        assert ctx.nfit == 0
        np.testing.assert_array_equal(ctx.bg_counts, 0)

    def test_wrong_shape(self, make_context):
        """Should reject arrays without 7 columns."""
        ctx = make_context(np.zeros((40, 40)))
        with pytest.raises(ValueError, match="shape"):
            lifecycle.new_peaks(ctx, np.zeros((2, 5)))

    def test_non_finite_center(self, make_context):
        """Should reject peaks without a position."""
        ctx = make_context(np.zeros((40, 40)))
        with pytest.raises(ValueError, match="finite"):
            lifecycle.new_peaks(ctx, [[1.0, NAN, 1.5, 10.0, 1.5, 0.0, 0.0]])

    def test_background_from_estimate(self, make_context):
        """A missing background should be read from the estimate at the center."""
        background = np.zeros((40, 40))
        background[21, 17] = 7.5
        ctx = make_context(np.zeros((40, 40)), background=background)
        lifecycle.new_peaks(ctx, [[10.0, 17.2, 1.5, 20.9, 1.5, NAN, 0.0]])
        assert ctx.peaks[0].params[BACKGROUND] == 7.5

    def test_height_estimated(self, gaussian_image, make_context):
        """A missing height should be estimated from the data."""
        image = gaussian_image((40, 40), [(120.0, 20.0, 1.5, 20.0, 1.5)], background=10.0)
        ctx = make_context(image, background=np.full((40, 40), 10.0))
        lifecycle.new_peaks(ctx, [[NAN, 20.0, 1.5, 20.0, 1.5, NAN, 0.0]])
        assert ctx.peaks[0].params[HEIGHT] == pytest.approx(120.0, rel=1e-9)

    def test_height_estimate_clamped(self, make_context):
        """Estimated heights should not fall below the minimum height."""
        ctx = make_context(np.zeros((40, 40)), minimum_height=2.0)
        lifecycle.new_peaks(ctx, [[NAN, 20.0, 1.5, 20.0, 1.5, 0.0, 0.0]])
        assert ctx.peaks[0].params[HEIGHT] == 2.0

    def test_invalid_peak_is_error(self, make_context):
        """A peak outside the image should be kept as ERROR but not added."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 1.0, 1.5, 20.0, 1.5, 0.0, 0.0]])
        peak = ctx.peaks[0]
        assert peak.status == PeakStatus.ERROR
        assert peak.added == 0
        assert ctx.diagnostics.n_margin == 1
        np.testing.assert_array_equal(ctx.bg_counts, 0)

    def test_storage_grows_in_increments(self, make_context):
        """Capacity should grow by whole storage increments."""
        ctx = make_context(np.zeros((40, 40)), storage_increment=2)
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 0.0, 0.0]] * 3)
        assert ctx.max_nfit == 4
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 0.0, 0.0]])
        assert ctx.max_nfit == 4
        assert ctx.nfit == 4

    def test_offsets(self, make_context):
        """Offsets should be removed internally and restored in results."""
        ctx = make_context(np.zeros((40, 40)), xoff=0.5, yoff=-1.0, zoff=3.0)
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 21.0, 1.5, 0.0, NAN]])
        peak = ctx.peaks[0]
        assert peak.params[XCENTER] == 19.5
        assert lifecycle.get_peak_property(ctx, "x")[0] == 20.0
        assert lifecycle.get_peak_property(ctx, "y")[0] == 21.0
        assert lifecycle.get_peak_property(ctx, "z")[0] == 3.0
        # The AOI is placed in image coordinates.
        assert peak.xi + peak.x_radius == 20


class TestHeightAndRecentering:
    """Tests for re-estimating heights and moving AOIs."""

    def test_estimate_peak_height(self, gaussian_image, make_context):
        """Should re-estimate the height with the other peaks subtracted."""
        image = gaussian_image(
            (40, 40), [(100.0, 18.0, 1.5, 20.0, 1.5), (60.0, 22.0, 1.5, 20.0, 1.5)]
        )
        ctx = make_context(image)
        lifecycle.new_peaks(
            ctx,
            [[60.0, 22.0, 1.5, 20.0, 1.5, 0.0, 0.0], [10.0, 18.0, 1.5, 20.0, 1.5, 0.0, 0.0]],
        )
        lifecycle.estimate_peak_height(ctx, [1])
        assert ctx.peaks[1].params[HEIGHT] == pytest.approx(100.0, rel=1e-3)
        assert ctx.peaks[1].added == 1

    def test_recenter_peaks(self, make_context):
        """Peaks that drifted should get a new AOI."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(
            ctx,
            [[10.0, 15.0, 1.5, 15.0, 1.5, 0.0, 0.0], [10.0, 25.0, 1.5, 25.0, 1.5, 0.0, 0.0]],
        )
        peak = ctx.peaks[0]
        subtract_peak(ctx, peak)
        peak.params[XCENTER] = 17.0
        add_peak(ctx, peak)

        assert lifecycle.recenter_peaks(ctx) == 1
        assert peak.xi + peak.x_radius == 17
        assert all(p.added == 1 for p in ctx.peaks)

    def test_recenter_out_of_image(self, make_context):
        """A peak recentered out of the image should become ERROR."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 6.0, 1.5, 20.0, 1.5, 0.0, 0.0]])
        peak = ctx.peaks[0]
        subtract_peak(ctx, peak)
        peak.params[XCENTER] = 3.0
        add_peak(ctx, peak)

        lifecycle.recenter_peaks(ctx)

        assert peak.status == PeakStatus.ERROR
        assert peak.added == 0
        assert ctx.diagnostics.n_margin == 1
        np.testing.assert_array_equal(ctx.bg_counts, 0)


class TestStatus:
    """Tests for status changes and pruning."""

    def test_set_error_and_back(self, make_context):
        """ERROR should remove a peak from the model, leaving ERROR adds it back."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0]])
        peak = ctx.peaks[0]
        peak.lambda_ = 50.0

        lifecycle.set_peak_status(ctx, [PeakStatus.ERROR])
        assert peak.added == 0
        np.testing.assert_allclose(ctx.f_data, 0.0, atol=1e-12)
        assert lifecycle.get_n_error(ctx) == 1

        lifecycle.set_peak_status(ctx, [PeakStatus.RUNNING])
        assert peak.added == 1
        assert peak.lambda_ == ctx.damping.start
        assert lifecycle.get_unconverged(ctx) == 1

    def test_revalidation_leaves_counters(self, make_context):
        """Leaving ERROR should not count the validity check as a fit failure."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0]])
        peak = ctx.peaks[0]
        lifecycle.set_peak_status(ctx, [PeakStatus.ERROR])
        before = ctx.diagnostics.as_dict()

        peak.xi = -3
        lifecycle.set_peak_status(ctx, [PeakStatus.RUNNING])
        assert peak.status == PeakStatus.ERROR
        assert peak.added == 0

        peak.xi = 20 - peak.x_radius
        peak.params[HEIGHT] = -1.0
        lifecycle.set_peak_status(ctx, [PeakStatus.RUNNING])
        assert peak.status == PeakStatus.ERROR

        assert ctx.diagnostics.as_dict() == before

    def test_set_status_wrong_length(self, make_context):
        """Should require one status per peak."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0]])
        with pytest.raises(ValueError, match="status"):
            lifecycle.set_peak_status(ctx, [0, 0])

    def test_converged_to_running(self, make_context):
        """Restarting a converged peak keeps it in the model."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0]])
        lifecycle.set_peak_status(ctx, [PeakStatus.CONVERGED])
        lifecycle.set_peak_status(ctx, [PeakStatus.RUNNING])
        assert ctx.peaks[0].added == 1
        assert ctx.bg_counts.max() == 1

    def test_remove_error_peaks(self, make_context):
        """Pruning should keep only non-ERROR peaks and count the lost ones."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(
            ctx,
            [
                [10.0, 10.0, 1.5, 10.0, 1.5, 1.0, 0.0],
                [10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0],
                [10.0, 30.0, 1.5, 30.0, 1.5, 1.0, 0.0],
            ],
        )
        lifecycle.set_peak_status(
            ctx, [PeakStatus.RUNNING, PeakStatus.ERROR, PeakStatus.CONVERGED]
        )
        removed = ctx.peaks[1]

        assert lifecycle.remove_error_peaks(ctx) == 1
        assert ctx.nfit == 2
        assert [p.index for p in ctx.peaks] == [0, 2]
        assert ctx.diagnostics.n_lost == 1
        assert removed.model_data is None
        assert lifecycle.remove_error_peaks(ctx) == 0


class TestQueries:
    """Tests for property and result access."""

    def test_properties(self, make_context):
        """Should return one value per peak with the right dtype."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(
            ctx,
            [[10.0, 10.0, 1.5, 12.0, 1.5, 1.0, 0.0], [20.0, 25.0, 1.5, 26.0, 1.5, 2.0, 0.0]],
        )
        np.testing.assert_array_equal(lifecycle.get_peak_property(ctx, "height"), [10.0, 20.0])
        np.testing.assert_array_equal(lifecycle.get_peak_property(ctx, "y"), [12.0, 26.0])
        status = lifecycle.get_peak_property(ctx, "status")
        assert status.dtype == np.int32
        np.testing.assert_array_equal(status, [0, 0])
        np.testing.assert_array_equal(lifecycle.get_peak_property(ctx, "size_x"), [11, 11])
        assert lifecycle.get_peak_property(ctx, "lambda").dtype == np.float64

    def test_unknown_property(self, make_context):
        """Should raise for unknown names."""
        ctx = make_context(np.zeros((40, 40)))
        with pytest.raises(ValueError, match="Unknown peak property"):
            lifecycle.get_peak_property(ctx, "amplitude")

    def test_results(self, make_context):
        """Results should hold parameters, status and error per peak."""
        ctx = make_context(np.full((40, 40), 1.0))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.5]])
        results = lifecycle.get_results(ctx)
        assert results.shape == (1, 9)
        np.testing.assert_array_equal(results[0, :7], [10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.5])
        assert results[0, STATUS] == PeakStatus.RUNNING
        assert results[0, IERROR] == ctx.peaks[0].error
        assert results[0, IERROR] > 0.0

    def test_reset_clamp_values(self, make_context):
        """Should restore the starting clamp values."""
        ctx = make_context(np.zeros((40, 40)))
        lifecycle.new_peaks(ctx, [[10.0, 20.0, 1.5, 20.0, 1.5, 1.0, 0.0]])
        peak = ctx.peaks[0]
        peak.clamp[:] = 0.01
        peak.sign[:] = 1
        lifecycle.reset_clamp_values(ctx)
        np.testing.assert_array_equal(peak.clamp, ctx.clamp_start)
        np.testing.assert_array_equal(peak.sign, 0)
