"""Configuration file loading and saving."""

import tomllib
from pathlib import Path

import tomli_w
from pydantic import ValidationError

from multifit.core.domain.config import MultiFitConfig
from multifit.core.shared.exceptions import ConfigError


def load_config(path: Path) -> MultiFitConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the TOML configuration file.

    Returns:
        MultiFitConfig: Validated configuration object.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ConfigError: If the file is not valid TOML or the configuration is invalid.
    """
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ConfigError(msg) from exc

    try:
        return MultiFitConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid configuration in {path}:\n{exc}"
        raise ConfigError(msg) from exc


def save_config(config: MultiFitConfig, path: Path) -> None:
    """Save configuration to a TOML file.

    Args:
        config: Configuration object to save.
        path: Path where to save the TOML file.
    """
    # Paths are serialized as strings in json mode; unset optional values are dropped
    data = config.model_dump(mode="json", exclude_none=True)

    with path.open("wb") as f:
        tomli_w.dump(data, f)


def generate_default_config() -> str:
    """Generate a default configuration file as a string.

    Returns:
        str: TOML-formatted default configuration.
    """
    return """# multifit Configuration File
# Generated automatically - edit as needed

[fitting]
algorithm = "lm"  # lm (Levenberg-Marquardt) or original (clamped steps)
tolerance = 1e-6
max_iterations = 200
minimum_height = 1.0
use_clamp = false
clamp_start = [1000.0, 1.0, 0.3, 1.0, 0.3, 100.0, 0.1]
hysteresis = 0.6
storage_increment = 500

[damping]
start = 1.0
down = 0.75
up = 4.0
minimum = 1e-3
maximum = 1e20

[psf]
model = "gaussian"  # gaussian_fixed, gaussian, gaussian_elliptical
sigma = 1.5
aoi_sigmas = 3.0
max_aoi_radius = 10

[logging]
level = "info"
verbose = false
log_format = "text"  # text or json
# log_file = "multifit.log"  # Uncomment to write a log file
"""
