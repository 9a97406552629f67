"""Peak shape model registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from multifit.core.shared.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from multifit.core.domain.config import PsfConfig
    from multifit.core.psf.base import BasePSF


# Global peak shape registry
PSFS: dict[str, type[BasePSF]] = {}


def register_psf(
    psf_names: str | Iterable[str],
) -> Callable[[type[BasePSF]], type[BasePSF]]:
    """Register a peak shape model class.

    Args:
        psf_names: Single name or iterable of names to register the model under

    Returns
    -------
        Decorator that registers the model class

    Example:
        @register_psf("gaussian")
        class GaussianPSF(BasePSF):
            ...
    """
    if isinstance(psf_names, str):
        psf_names = [psf_names]

    def decorator(psf_class: type[BasePSF]) -> type[BasePSF]:
        for name in psf_names:
            PSFS[name] = psf_class
        return psf_class

    return decorator


def get_psf(name: str) -> type[BasePSF]:
    """Get a peak shape model class by name.

    Raises
    ------
        ConfigError: If no model is registered under that name
    """
    try:
        return PSFS[name]
    except KeyError:
        msg = f"Unknown peak shape model '{name}' (available: {', '.join(list_psfs())})"
        raise ConfigError(msg) from None


def list_psfs() -> list[str]:
    """List all registered peak shape model names."""
    return list(PSFS.keys())


def create_psf(config: PsfConfig) -> BasePSF:
    """Instantiate the peak shape model described by ``config``."""
    psf_class = get_psf(config.model)
    return psf_class(
        sigma=config.sigma,
        aoi_sigmas=config.aoi_sigmas,
        max_aoi_radius=config.max_aoi_radius,
    )
