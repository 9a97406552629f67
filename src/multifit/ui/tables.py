"""UI tables for displaying fit results and diagnostics.

This module provides functions for creating and displaying Rich tables
with consistent styling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich import box
from rich.table import Table

from multifit.core.constants import (
    BACKGROUND,
    HEIGHT,
    IERROR,
    STATUS,
    XCENTER,
    XWIDTH,
    YCENTER,
    YWIDTH,
    PeakStatus,
)
from multifit.ui.console import STATUS_STYLES, console

if TYPE_CHECKING:
    from multifit.core.fitting.diagnostics import FitDiagnostics
    from multifit.core.fitting.fitter import MultiFitter

__all__ = [
    "create_table",
    "print_diagnostics",
    "print_peak_table",
    "print_summary",
]


def create_table(title: str | None = None, show_header: bool = True) -> Table:
    """Create a standard table with consistent styling.

    Args:
        title: Optional table title
        show_header: Whether to show table header

    Returns
    -------
        Configured Table instance
    """
    return Table(
        title=title,
        title_style="header" if title else None,
        box=box.ROUNDED,
        show_header=show_header,
        header_style="bold cyan",
        border_style="dim",
    )


def print_summary(items: dict[str, Any], title: str = "Summary") -> Table:
    """Print a standard two-column summary table.

    Args:
        items: Dictionary of key-value pairs to display
        title: Table title
    """
    table = create_table(title, show_header=False)
    table.add_column("Item", style="metric")
    table.add_column("Value", style="value")

    for key, value in items.items():
        table.add_row(key, str(value))

    console.print(table)
    return table


def print_diagnostics(diagnostics: FitDiagnostics, title: str = "Fit Diagnostics") -> Table:
    """Print the diagnostic counters of a fit."""
    return print_summary(diagnostics.describe(), title=title)


def print_peak_table(fitter: MultiFitter, title: str = "Peaks", max_rows: int = 50) -> Table:
    """Print the fitted parameters and status of the first ``max_rows`` peaks."""
    results = fitter.get_results()
    iterations = fitter.get_peak_property("iterations")

    table = create_table(title)
    table.add_column("#", justify="right", style="key")
    for name in ("Height", "X", "Y", "Sigma X", "Sigma Y", "Background"):
        table.add_column(name, justify="right", style="number")
    table.add_column("Error", justify="right")
    table.add_column("Iter", justify="right")
    table.add_column("Status", justify="center")

    for i, (row, n_iter) in enumerate(zip(results[:max_rows], iterations, strict=False)):
        status = PeakStatus(int(row[STATUS])).name
        style = STATUS_STYLES[status]
        table.add_row(
            str(i),
            f"{row[HEIGHT]:.2f}",
            f"{row[XCENTER]:.3f}",
            f"{row[YCENTER]:.3f}",
            f"{row[XWIDTH]:.3f}",
            f"{row[YWIDTH]:.3f}",
            f"{row[BACKGROUND]:.2f}",
            f"{row[IERROR]:.4g}",
            str(int(n_iter)),
            f"[{style}]{status}[/{style}]",
        )
    if len(results) > max_rows:
        table.caption = f"{len(results) - max_rows} more peak(s) not shown"

    console.print(table)
    return table
