"""Tour evaluation helpers shared by the constructor, improver and assembler."""

from __future__ import annotations

from typing import Sequence

from .distance import DistanceMatrix
from .models import Tour


def node_offset(has_origin: bool) -> int:
    return 1 if has_origin else 0


def path_nodes(order: Sequence[int], has_origin: bool) -> list[int]:
    """Translate a tour of stop indices into matrix nodes, origin first when present."""

    offset = node_offset(has_origin)
    nodes = [offset + index for index in order]
    return [0, *nodes] if has_origin else nodes


def path_distance(nodes: Sequence[int], matrix: DistanceMatrix) -> float:
    total = 0.0
    for a, b in zip(nodes, nodes[1:]):
        total += matrix.distance(a, b)
    return total


def path_duration(nodes: Sequence[int], matrix: DistanceMatrix) -> float:
    total = 0.0
    for a, b in zip(nodes, nodes[1:]):
        total += matrix.duration(a, b)
    return total


def evaluate_tour(order: Sequence[int], matrix: DistanceMatrix, *, has_origin: bool) -> Tour:
    """Total distance and duration of ``order``, including the origin leg.

    No return leg is added; a caller wanting a closed loop appends the origin
    as a final stop.
    """
    nodes = path_nodes(order, has_origin)
    return Tour(
        order=tuple(order),
        distance_km=path_distance(nodes, matrix),
        duration_min=path_duration(nodes, matrix),
    )


def baseline_tour(stop_count: int, matrix: DistanceMatrix, *, has_origin: bool) -> Tour:
    """The caller's input order, evaluated for comparison only."""

    return evaluate_tour(range(stop_count), matrix, has_origin=has_origin)
