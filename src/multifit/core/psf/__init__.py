"""Peak shape models.

Importing this package registers the built-in Gaussian models.
"""

from multifit.core.psf.base import BasePSF, PeakShapeModel
from multifit.core.psf.gaussian import (
    EllipticalGaussianPSF,
    FixedGaussianPSF,
    GaussianPeakData,
    GaussianPSF,
)
from multifit.core.psf.registry import create_psf, get_psf, list_psfs, register_psf

__all__ = [
    "BasePSF",
    "EllipticalGaussianPSF",
    "FixedGaussianPSF",
    "GaussianPSF",
    "GaussianPeakData",
    "PeakShapeModel",
    "create_psf",
    "get_psf",
    "list_psfs",
    "register_psf",
]
