"""Terminal output and logging for multifit.

Submodules:
- console: Theme and console instance
- logging: Logger configuration (file and console handlers)
- tables: Table display utilities
"""

from multifit.ui.console import MULTIFIT_THEME, VERSION, console
from multifit.ui.logging import (
    close_logging,
    log,
    log_dict,
    log_section,
    setup_logging,
    setup_logging_from_config,
)
from multifit.ui.tables import create_table, print_diagnostics, print_peak_table, print_summary

__all__ = [
    "MULTIFIT_THEME",
    "VERSION",
    "close_logging",
    "console",
    "create_table",
    "log",
    "log_dict",
    "log_section",
    "print_diagnostics",
    "print_peak_table",
    "print_summary",
    "setup_logging",
    "setup_logging_from_config",
]
