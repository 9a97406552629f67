"""Console configuration and theme for multifit reporting.

This module provides the central console instance and theme used by the
logging and table helpers.
"""

from rich.console import Console
from rich.theme import Theme

from multifit import __version__ as VERSION

MULTIFIT_THEME = Theme(
    {
        # --- Semantic Status ---
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "info": "cyan",
        "neutral": "dim white",
        # --- UI Structure ---
        "header": "bold cyan",
        "subheader": "bold white",
        # --- Data & Values ---
        "key": "cyan",
        "value": "green",
        "metric": "bold green",
        "number": "green",
        "path": "blue underline",
    }
)

# Single console instance for the whole package
console = Console(theme=MULTIFIT_THEME, record=True)

STATUS_STYLES = {
    "RUNNING": "warning",
    "CONVERGED": "success",
    "ERROR": "error",
}

__all__ = [
    "MULTIFIT_THEME",
    "STATUS_STYLES",
    "VERSION",
    "console",
]
