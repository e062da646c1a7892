"""Nearest-neighbour tour construction."""

from __future__ import annotations

from .distance import DistanceMatrix
from .tour import node_offset


def nearest_neighbor_tour(
    stop_count: int,
    matrix: DistanceMatrix,
    *,
    has_origin: bool,
    tie_tolerance_km: float = 1e-9,
) -> tuple[int, ...]:
    """Greedy visiting order: always go to the nearest unvisited stop.

    Starts at the origin when there is one, otherwise at the first input stop.
    Candidates are scanned in input order and only a strictly closer one
    (beyond ``tie_tolerance_km``) replaces the current best, so equidistant
    stops resolve to the lower input index.
    """
    if stop_count == 0:
        return ()

    offset = node_offset(has_origin)
    unvisited = list(range(stop_count))
    order: list[int] = []

    if has_origin:
        current_node = 0
    else:
        first = unvisited.pop(0)
        order.append(first)
        current_node = first

    while unvisited:
        best_position = 0
        best_distance = matrix.distance(current_node, offset + unvisited[0])
        for position in range(1, len(unvisited)):
            candidate_distance = matrix.distance(current_node, offset + unvisited[position])
            if candidate_distance < best_distance - tie_tolerance_km:
                best_position = position
                best_distance = candidate_distance

        chosen = unvisited.pop(best_position)
        order.append(chosen)
        current_node = offset + chosen

    return tuple(order)
