"""Partition peaks by AOI overlap.

Peaks whose AOIs overlap update the same accumulator pixels, so they must
not be fit at the same time. Coloring the overlap graph gives batches of
mutually independent peaks; connected components give groups of peaks that
interact.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import networkx as nx


class AoiLike(Protocol):
    """Minimal interface required for overlap partitioning."""

    xi: int
    yi: int
    size_x: int
    size_y: int


def _overlaps(a: AoiLike, b: AoiLike) -> bool:
    return (
        a.xi < b.xi + b.size_x
        and b.xi < a.xi + a.size_x
        and a.yi < b.yi + b.size_y
        and b.yi < a.yi + a.size_y
    )


def overlap_pairs(peaks: Sequence[AoiLike]) -> list[tuple[int, int]]:
    """List the (i, j), i < j, position pairs of peaks whose AOIs overlap.

    Peaks are sorted along x so that only candidates whose x extents can
    intersect are compared.
    """
    order = sorted(range(len(peaks)), key=lambda k: peaks[k].xi)
    pairs = []
    for n, i in enumerate(order):
        x_end = peaks[i].xi + peaks[i].size_x
        for j in order[n + 1 :]:
            if peaks[j].xi >= x_end:
                break
            if _overlaps(peaks[i], peaks[j]):
                pairs.append((min(i, j), max(i, j)))
    return sorted(pairs)


def build_overlap_graph(peaks: Sequence[AoiLike]) -> nx.Graph:
    """Graph with one node per peak position and an edge per AOI overlap."""
    graph = nx.Graph()
    graph.add_nodes_from(range(len(peaks)))
    graph.add_edges_from(overlap_pairs(peaks))
    return graph


def group_overlapping_peaks(peaks: Sequence[AoiLike]) -> list[list[int]]:
    """Group peaks into connected components of the overlap graph.

    Returns
    -------
        Sorted lists of peak positions, ordered by their first member
    """
    graph = build_overlap_graph(peaks)
    return sorted(sorted(component) for component in nx.connected_components(graph))


def color_peaks(peaks: Sequence[AoiLike]) -> list[list[int]]:
    """Split peaks into batches whose members have pairwise disjoint AOIs.

    Uses a greedy coloring of the overlap graph (largest degree first).

    Returns
    -------
        List of batches, each a sorted list of peak positions
    """
    graph = build_overlap_graph(peaks)
    coloring = nx.greedy_color(graph, strategy="largest_first")
    batches: dict[int, list[int]] = {}
    for node, color in coloring.items():
        batches.setdefault(color, []).append(node)
    return [sorted(batches[color]) for color in sorted(batches)]
