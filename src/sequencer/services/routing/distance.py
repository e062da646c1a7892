"""Pairwise distance and duration estimates between route nodes.

Node layout used across the routing engine: when an origin is supplied it is
node 0 and stop ``k`` is node ``k + 1``; without an origin stop ``k`` is node
``k``. Distances are kilometres, durations minutes, and both matrices are
symmetric with a zero diagonal.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from ...models.domain import Coordinate
from ..geospatial import haversine_km, travel_minutes
from .errors import ValidationError

logger = logging.getLogger(__name__)

METERS_PER_KM = 1000.0
SECONDS_PER_MINUTE = 60.0


@dataclass(frozen=True, slots=True)
class DistanceMatrix:
    distances_km: tuple[tuple[float, ...], ...]
    durations_min: tuple[tuple[float, ...], ...]
    source: str = "haversine"

    def __len__(self) -> int:
        return len(self.distances_km)

    def distance(self, a: int, b: int) -> float:
        return self.distances_km[a][b]

    def duration(self, a: int, b: int) -> float:
        return self.durations_min[a][b]


def estimate_leg(a: Coordinate, b: Coordinate, average_speed_kmh: float) -> tuple[float, float]:
    """Great-circle distance (km) and travel time (minutes) between two points."""

    distance_km = haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
    return distance_km, travel_minutes(distance_km, average_speed_kmh)


def build_haversine_matrix(points: Sequence[Coordinate], average_speed_kmh: float) -> DistanceMatrix:
    """Build the NxN matrix for ``points`` using the haversine estimate."""

    n = len(points)
    distances = [[0.0] * n for _ in range(n)]
    durations = [[0.0] * n for _ in range(n)]

    for i in range(n):
        for j in range(i + 1, n):
            distance_km, duration_min = estimate_leg(points[i], points[j], average_speed_kmh)
            distances[i][j] = distances[j][i] = distance_km
            durations[i][j] = durations[j][i] = duration_min

    return DistanceMatrix(
        distances_km=tuple(tuple(row) for row in distances),
        durations_min=tuple(tuple(row) for row in durations),
        source="haversine",
    )


def average_pair(forward: float, backward: float) -> float:
    """Mean of both travel directions between two nodes."""

    return (float(forward) + float(backward)) / 2.0


def matrix_from_osrm_table(
    osrm_table: dict,
    points: Sequence[Coordinate],
    average_speed_kmh: float,
) -> DistanceMatrix:
    """Convert an OSRM ``/table`` payload (metres, seconds) into a DistanceMatrix.

    Road distances are direction dependent; each pair is averaged so the
    2-opt segment reversal stays exact. Unreachable (``None``) cells fall back
    to the haversine estimate for that pair.
    """
    durations = osrm_table.get("durations")
    distances = osrm_table.get("distances")
    if durations is None or distances is None:
        raise ValueError("OSRM table response missing durations or distances.")

    n = len(points)
    if len(durations) != n or len(distances) != n:
        raise ValueError(
            f"OSRM matrix size mismatch: expected {n}, got durations={len(durations)}, distances={len(distances)}"
        )

    dist_out = [[0.0] * n for _ in range(n)]
    dur_out = [[0.0] * n for _ in range(n)]
    fallback_cells = 0

    for i in range(n):
        for j in range(i + 1, n):
            forward_m, backward_m = distances[i][j], distances[j][i]
            forward_s, backward_s = durations[i][j], durations[j][i]
            if None in (forward_m, backward_m, forward_s, backward_s):
                fallback_cells += 1
                distance_km, duration_min = estimate_leg(points[i], points[j], average_speed_kmh)
            else:
                distance_km = average_pair(forward_m, backward_m) / METERS_PER_KM
                duration_min = average_pair(forward_s, backward_s) / SECONDS_PER_MINUTE
            dist_out[i][j] = dist_out[j][i] = distance_km
            dur_out[i][j] = dur_out[j][i] = duration_min

    if fallback_cells:
        logger.warning(
            "OSRM returned %d unreachable pair(s); using haversine estimates for them", fallback_cells
        )

    return DistanceMatrix(
        distances_km=tuple(tuple(row) for row in dist_out),
        durations_min=tuple(tuple(row) for row in dur_out),
        source="osrm",
    )


def check_matrix_shape(matrix: DistanceMatrix, node_count: int) -> None:
    if len(matrix) != node_count or any(len(row) != node_count for row in matrix.distances_km):
        raise ValidationError(
            f"Distance matrix must be {node_count}x{node_count} (origin + stops), got {len(matrix)} rows.",
            field="matrix",
        )
    if any(len(row) != node_count for row in matrix.durations_min):
        raise ValidationError("Duration matrix shape does not match distance matrix.", field="matrix")


def symmetrize_matrix(matrix: DistanceMatrix) -> DistanceMatrix:
    """Average both directions of a caller-supplied matrix.

    2-opt scores a segment reversal from the edges at its two ends only, which
    is exact only when ``d(a, b) == d(b, a)``. Cells must be finite and
    non-negative; the diagonal is forced to zero.
    """
    n = len(matrix)
    for name, rows in (("distance", matrix.distances_km), ("duration", matrix.durations_min)):
        for i, row in enumerate(rows):
            for j, value in enumerate(row):
                if not math.isfinite(value) or value < 0:
                    raise ValidationError(
                        f"Matrix {name} at ({i}, {j}) must be finite and non-negative, got {value}.",
                        field="matrix",
                    )

    distances = [[0.0] * n for _ in range(n)]
    durations = [[0.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            distances[i][j] = distances[j][i] = average_pair(matrix.distance(i, j), matrix.distance(j, i))
            durations[i][j] = durations[j][i] = average_pair(matrix.duration(i, j), matrix.duration(j, i))

    return DistanceMatrix(
        distances_km=tuple(tuple(row) for row in distances),
        durations_min=tuple(tuple(row) for row in durations),
        source=matrix.source,
    )
