"""End-to-end fitting scenarios on synthetic images."""

import numpy as np
import pytest

from multifit import MultiFitConfig, MultiFitter, PeakStatus
from multifit.core.domain.config import PsfConfig


class TestSingleIsolatedPeak:
    """One peak well inside the image."""

    @pytest.mark.parametrize("model", ["gaussian_fixed", "gaussian", "gaussian_elliptical"])
    def test_recovers_parameters(self, gaussian_image, model):
        """Every peak shape model should recover a noise-free peak."""
        image = gaussian_image((40, 40), [(250.0, 19.4, 1.5, 20.7, 1.5)], background=20.0)
        config = MultiFitConfig(psf=PsfConfig(model=model, sigma=1.5))

        with MultiFitter(image, config=config) as fitter:
            fitter.new_peaks([[200.0, 19.0, 1.5, 21.0, 1.5, 15.0, 0.0]])
            fitter.fit()

            results = fitter.get_results()
            assert results[0, 7] == PeakStatus.CONVERGED
            np.testing.assert_allclose(
                results[0, :6], [250.0, 19.4, 1.5, 20.7, 1.5, 20.0], rtol=1e-3, atol=1e-3
            )
            rows, cols = fitter.context.peaks[0].aoi_slices()
            assert np.abs(fitter.get_residual()[rows, cols]).max() < 0.1


class TestOverlappingPeaks:
    """Two peaks sharing pixels."""

    def test_two_overlapping_peaks(self, gaussian_image):
        """Both peaks should be fit and the model should sum their shapes."""
        truth = [(150.0, 17.0, 1.5, 20.0, 1.5), (100.0, 21.0, 1.5, 20.5, 1.5)]
        image = gaussian_image((40, 40), truth, background=10.0)

        fitter = MultiFitter(image, background=np.full(image.shape, 10.0))
        fitter.new_peaks(
            [
                [130.0, 16.8, 1.5, 20.2, 1.5, np.nan, 0.0],
                [110.0, 21.3, 1.5, 20.3, 1.5, np.nan, 0.0],
            ]
        )
        assert fitter.overlap_groups() == [[0, 1]]
        assert fitter.independent_batches() == [[0], [1]]

        fitter.fit()

        assert fitter.get_unconverged() == 0
        assert fitter.get_n_error() == 0
        np.testing.assert_allclose(fitter.get_peak_property("x"), [17.0, 21.0], atol=0.1)
        np.testing.assert_allclose(fitter.get_peak_property("y"), [20.0, 20.5], atol=0.1)

        expected = np.zeros_like(image)
        for peak in fitter.context.peaks:
            rows, cols = peak.aoi_slices()
            expected[rows, cols] += peak.psf
        np.testing.assert_allclose(fitter.get_fit_image(), expected, atol=1e-9)
        assert fitter.context.bg_counts.max() == 2
        fitter.cleanup()

    def test_batches_fit(self, gaussian_image):
        """Fitting batch by batch should converge like a full round."""
        truth = [
            (150.0, 10.0, 1.5, 10.0, 1.5),
            (120.0, 13.0, 1.5, 11.0, 1.5),
            (100.0, 30.0, 1.5, 28.0, 1.5),
        ]
        image = gaussian_image((40, 40), truth, background=5.0)
        fitter = MultiFitter(image)
        guesses = [[h * 0.9, x + 0.2, sx, y - 0.2, sy, 4.0, 0.0] for h, x, sx, y, sy in truth]
        fitter.new_peaks(guesses)

        batches = fitter.independent_batches()
        assert len(batches) == 2
        for _ in range(fitter.config.fitting.max_iterations):
            if fitter.get_unconverged() == 0:
                break
            for batch in batches:
                fitter.iterate(batch)

        assert fitter.get_n_error() == 0
        np.testing.assert_allclose(
            fitter.get_peak_property("x"), [t[1] for t in truth], atol=0.1
        )


class TestLostPeak:
    """Peaks that cannot be fit are marked ERROR and pruned."""

    def test_peak_lost_and_pruned(self, gaussian_image):
        """An invalid peak should be counted as lost after pruning."""
        image = gaussian_image((40, 40), [(100.0, 20.0, 1.5, 20.0, 1.5)], background=5.0)
        fitter = MultiFitter(image)
        fitter.new_peaks(
            [
                [90.0, 20.2, 1.5, 19.8, 1.5, 5.0, 0.0],
                [-10.0, 30.0, 1.5, 30.0, 1.5, 5.0, 0.0],
            ]
        )
        assert fitter.get_n_error() == 1
        assert fitter.diagnostics.n_neg_height == 1
        assert fitter.get_peak_property("added").tolist() == [1, 0]

        fitter.fit()
        assert fitter.remove_error_peaks() == 1

        assert fitter.nfit == 1
        assert fitter.diagnostics.n_lost == 1
        assert fitter.get_peak_property("index").tolist() == [0]
        assert fitter.get_peak_property("status")[0] == PeakStatus.CONVERGED
        summary = fitter.cleanup()
        assert summary["n_lost"] == 1
        assert summary["n_non_converged"] == 0
