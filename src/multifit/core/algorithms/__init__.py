"""Numerical routines used by the fitting engine."""

from multifit.core.algorithms.linear_algebra import solve_normal_equations
from multifit.core.algorithms.overlap import (
    build_overlap_graph,
    color_peaks,
    group_overlapping_peaks,
    overlap_pairs,
)

__all__ = [
    "build_overlap_graph",
    "color_peaks",
    "group_overlapping_peaks",
    "overlap_pairs",
    "solve_normal_equations",
]
