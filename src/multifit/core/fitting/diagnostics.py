"""Diagnostic counters of a fit context."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(slots=True)
class FitDiagnostics:
    """Counters for the recoverable failures seen while fitting.

    Each counter is incremented when a trial step (or a peak) is rejected for
    the corresponding reason. They are reset only when a context is created.
    """

    n_dposv: int = 0
    n_iterations: int = 0
    n_lost: int = 0
    n_margin: int = 0
    n_neg_fi: int = 0
    n_neg_height: int = 0
    n_neg_width: int = 0
    n_non_converged: int = 0
    n_non_decr: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def describe(self) -> dict[str, int]:
        """Counters keyed by a human readable description."""
        return {
            "Solver failures": self.n_dposv,
            "Iterations": self.n_iterations,
            "Lost peaks": self.n_lost,
            "Margin violations": self.n_margin,
            "Negative intensity": self.n_neg_fi,
            "Negative height": self.n_neg_height,
            "Negative width": self.n_neg_width,
            "Non-converged": self.n_non_converged,
            "Non-decreasing error": self.n_non_decr,
        }
