"""I/O module for multifit.

Handles configuration file loading and saving (TOML).
"""

from multifit.io.config import generate_default_config, load_config, save_config

__all__ = [
    "generate_default_config",
    "load_config",
    "save_config",
]
