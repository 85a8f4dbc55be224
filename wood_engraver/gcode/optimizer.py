"""Greedy nearest-neighbour ordering of burn points.

O(n^2) in time, O(n) extra memory.  The heuristic is not optimal and not
stable under input reordering: the tour always starts at the first input
point, and among equidistant candidates the one earliest in the input wins.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from wood_engraver.points import Point


def nearest_neighbor_order(points: Sequence[Point]) -> list[Point]:
    """Order *points* by repeatedly visiting the closest unvisited point.

    Parameters
    ----------
    points : Sequence[Point]
        Points in any order.  Not modified.

    Returns
    -------
    list[Point]
        Same points, tour order.  Empty input yields an empty list.
    """
    n = len(points)
    if n == 0:
        return []

    xs = np.fromiter((p.x for p in points), dtype=np.float64, count=n)
    ys = np.fromiter((p.y for p in points), dtype=np.float64, count=n)
    visited = np.zeros(n, dtype=bool)

    current = 0
    visited[current] = True
    order = [current]
    for _ in range(n - 1):
        dist = np.hypot(xs - xs[current], ys - ys[current])
        dist[visited] = np.inf
        current = int(np.argmin(dist))  # first minimum -> earliest input point
        visited[current] = True
        order.append(current)

    return [points[i] for i in order]


def tour_length(points: Sequence[Point]) -> float:
    """Total travel distance visiting *points* in the given order."""
    return sum(
        math.hypot(b.x - a.x, b.y - a.y) for a, b in zip(points, points[1:])
    )
