"""Pytest fixtures for multifit tests."""

import numpy as np
import pytest

from multifit.core.domain.config import FitConfig, MultiFitConfig, PsfConfig
from multifit.core.fitting.context import FitContext
from multifit.core.psf import create_psf


def render_gaussians(shape, peaks, background=0.0):
    """Render noise-free Gaussian peaks on a flat background.

    Args:
        shape: Image shape (ny, nx)
        peaks: Iterable of (height, x, sigma_x, y, sigma_y) tuples
        background: Flat background level
    """
    y, x = np.mgrid[: shape[0], : shape[1]].astype(np.float64)
    image = np.full(shape, background, dtype=np.float64)
    for height, x0, sx, y0, sy in peaks:
        image += height * np.exp(
            -((x - x0) ** 2) / (2.0 * sx * sx) - ((y - y0) ** 2) / (2.0 * sy * sy)
        )
    return image


@pytest.fixture
def gaussian_image():
    """Factory rendering Gaussian peaks into an image."""
    return render_gaussians


@pytest.fixture
def single_peak_image():
    """One isolated symmetric Gaussian peak on a flat background."""
    truth = {"height": 100.0, "x": 15.3, "y": 16.2, "sigma": 1.5, "background": 10.0}
    image = render_gaussians(
        (32, 32),
        [(truth["height"], truth["x"], truth["sigma"], truth["y"], truth["sigma"])],
        background=truth["background"],
    )
    return image, truth


@pytest.fixture
def make_context():
    """Factory for fit contexts on a given image."""

    def _make(image, model="gaussian", background=None, **fit_options):
        config = FitConfig(**fit_options)
        psf = create_psf(PsfConfig(model=model))
        return FitContext(
            image,
            np.ones_like(image),
            psf,
            config=config,
            background=background,
        )

    return _make


@pytest.fixture
def default_config():
    """Default multifit configuration."""
    return MultiFitConfig()


@pytest.fixture
def sample_config_file(tmp_path):
    """Create a sample configuration file."""
    config_content = """
[fitting]
algorithm = "original"
tolerance = 1e-8
max_iterations = 50
hysteresis = 0.75

[damping]
start = 0.5
up = 10.0

[psf]
model = "gaussian_elliptical"
sigma = 2.0

[logging]
level = "debug"
log_format = "json"
"""
    config_file = tmp_path / "multifit.toml"
    config_file.write_text(config_content)
    return config_file
