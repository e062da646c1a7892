"""Delivery route sequencing: nearest neighbour followed by 2-opt.

``optimize_route`` is a pure, synchronous computation. It does no I/O, keeps
no state between calls and returns identical results for identical input, so
separate batches can be optimized concurrently in threads or processes.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Coordinate, Stop
from ..geospatial import validate_coordinate
from .construction import nearest_neighbor_tour
from .distance import DistanceMatrix, build_haversine_matrix, check_matrix_shape, symmetrize_matrix
from .errors import ValidationError
from .improvement import two_opt
from .models import (
    Improvement,
    OptimizerOptions,
    RouteComparison,
    RouteResult,
    RouteStop,
    Tour,
    TwoOptOutcome,
    WaypointPlan,
)
from .tour import baseline_tour, evaluate_tour, path_nodes

logger = logging.getLogger(__name__)

SOLVER_NAME = "nearest_neighbor+2opt"


@dataclass(frozen=True, slots=True)
class ResolvedOptions:
    average_speed_kmh: float
    max_iterations: int
    epsilon: float
    tie_tolerance_km: float
    time_limit_seconds: Optional[float]


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def resolve_options(options: OptimizerOptions | None, stop_count: int) -> ResolvedOptions:
    """Merge per-call overrides with configured defaults and validate them."""

    overrides = options or OptimizerOptions()

    speed = overrides.average_speed_kmh if overrides.average_speed_kmh is not None else settings.average_speed_kmh
    if not _is_positive(speed):
        raise ValidationError(
            f"Average speed must be a positive finite number, got {speed}.",
            field="average_speed_kmh",
        )

    if overrides.max_iterations is not None:
        max_iterations = overrides.max_iterations
    elif settings.two_opt_max_iterations is not None:
        max_iterations = settings.two_opt_max_iterations
    else:
        max_iterations = settings.two_opt_iteration_factor * max(stop_count, 1)
    if max_iterations < 0:
        raise ValidationError(f"Iteration cap must be >= 0, got {max_iterations}.", field="max_iterations")

    epsilon = overrides.epsilon if overrides.epsilon is not None else settings.distance_epsilon
    if not _is_positive(epsilon):
        raise ValidationError(
            f"Epsilon must be a positive finite number, got {epsilon}.",
            field="epsilon",
        )

    tie_tolerance = (
        overrides.tie_tolerance_km if overrides.tie_tolerance_km is not None else settings.tie_tolerance_km
    )
    if not _is_positive(tie_tolerance):
        raise ValidationError(
            f"Tie tolerance must be a positive finite number, got {tie_tolerance}.",
            field="tie_tolerance_km",
        )

    time_limit = (
        overrides.time_limit_seconds
        if overrides.time_limit_seconds is not None
        else settings.optimizer_time_limit_seconds
    )
    if time_limit is not None and not _is_positive(time_limit):
        raise ValidationError(
            f"Time limit must be a positive finite number, got {time_limit}.",
            field="time_limit_seconds",
        )

    return ResolvedOptions(
        average_speed_kmh=float(speed),
        max_iterations=int(max_iterations),
        epsilon=float(epsilon),
        tie_tolerance_km=float(tie_tolerance),
        time_limit_seconds=time_limit,
    )


def validate_stops(stops: Sequence[Stop], origin: Coordinate | None = None) -> None:
    """Reject bad coordinates and duplicate or blank ids before any routing work."""

    if origin is not None:
        validate_coordinate(origin.latitude, origin.longitude, stop_id="origin")

    seen: set[str] = set()
    for stop in stops:
        if not stop.stop_id or not str(stop.stop_id).strip():
            raise ValidationError("Stop id must not be blank.", stop_id=stop.stop_id, field="stop_id")
        if stop.stop_id in seen:
            raise ValidationError(f"Duplicate stop id '{stop.stop_id}'.", stop_id=stop.stop_id, field="stop_id")
        seen.add(stop.stop_id)
        validate_coordinate(stop.latitude, stop.longitude, stop_id=stop.stop_id)


def route_points(stops: Sequence[Stop], origin: Coordinate | None = None) -> list[Coordinate]:
    """Coordinates in matrix node order: origin first when present."""

    points = [stop.coordinate for stop in stops]
    return [origin, *points] if origin is not None else points


def compute_improvement(baseline_km: float, optimized_km: float, stop_count: int) -> Improvement:
    saved = max(0.0, baseline_km - optimized_km)
    if stop_count < 2 or baseline_km <= 0:
        percentage = 0.0
    else:
        percentage = saved * 100.0 / baseline_km
    return Improvement(distance_saved_km=saved, percentage_improved=percentage)


def assemble_route(
    stops: Sequence[Stop],
    tour: Tour,
    matrix: DistanceMatrix,
    baseline: Tour,
    *,
    has_origin: bool,
    budget_exceeded: bool = False,
    metadata: dict | None = None,
) -> RouteResult:
    """Annotate the final order with sequence numbers and running totals."""

    nodes = path_nodes(tour.order, has_origin)
    legs = list(zip(nodes, nodes[1:]))
    if not has_origin:
        # The first stop has no inbound leg.
        legs = [(nodes[0], nodes[0]), *legs] if nodes else []

    route_stops: list[RouteStop] = []
    cumulative_distance = 0.0
    cumulative_duration = 0.0
    for sequence, (stop_index, (prev_node, node)) in enumerate(zip(tour.order, legs), start=1):
        leg_distance = matrix.distance(prev_node, node)
        cumulative_distance += leg_distance
        cumulative_duration += matrix.duration(prev_node, node)
        route_stops.append(
            RouteStop(
                sequence=sequence,
                stop=stops[stop_index],
                distance_from_prev_km=leg_distance,
                cumulative_distance_km=cumulative_distance,
                cumulative_duration_min=cumulative_duration,
            )
        )

    return RouteResult(
        stops=route_stops,
        total_distance_km=tour.distance_km,
        total_duration_min=tour.duration_min,
        baseline_distance_km=baseline.distance_km,
        improvement=compute_improvement(baseline.distance_km, tour.distance_km, len(stops)),
        budget_exceeded=budget_exceeded,
        metadata=metadata or {},
    )


def optimize_route(
    stops: Sequence[Stop],
    *,
    origin: Coordinate | None = None,
    options: OptimizerOptions | None = None,
    matrix: DistanceMatrix | None = None,
) -> RouteResult:
    """Sequence a driver's stops to minimise total travel distance.

    Args:
        stops: Geocoded stops. Their order is only used as the naive baseline
            and as one of the two improvement seeds.
        origin: Optional dispatching branch. It starts the path but never
            appears in the returned stops.
        options: Overrides for speed, iteration cap, epsilon and time limit.
        matrix: Precomputed distances over ``[origin?] + stops`` (e.g. road
            distances). Each pair is averaged over both directions before
            use. Haversine is used when omitted.

    Raises:
        ValidationError: invalid coordinates, duplicate ids, bad options, or a
            matrix of the wrong size or with negative or non-finite cells.
            Nothing is returned in that case.
    """
    stops = list(stops)
    validate_stops(stops, origin)
    resolved = resolve_options(options, len(stops))

    has_origin = origin is not None
    points = route_points(stops, origin)
    if matrix is None:
        matrix = build_haversine_matrix(points, resolved.average_speed_kmh)
    else:
        check_matrix_shape(matrix, len(points))
        matrix = symmetrize_matrix(matrix)

    baseline = baseline_tour(len(stops), matrix, has_origin=has_origin)
    metadata = {
        "solver": SOLVER_NAME,
        "distance_source": matrix.source,
        "stop_count": len(stops),
        "has_origin": has_origin,
    }

    if len(stops) < 2:
        tour = evaluate_tour(range(len(stops)), matrix, has_origin=has_origin)
        metadata.update({"iterations": 0, "initial_distance_km": tour.distance_km, "seed": "input"})
        return assemble_route(stops, tour, matrix, baseline, has_origin=has_origin, metadata=metadata)

    initial_order = nearest_neighbor_tour(
        len(stops), matrix, has_origin=has_origin, tie_tolerance_km=resolved.tie_tolerance_km
    )
    initial = evaluate_tour(initial_order, matrix, has_origin=has_origin)

    seeds = (("nearest_neighbor", initial_order), ("input", baseline.order))
    best_seed: str | None = None
    best_tour: Tour | None = None
    best_outcome: TwoOptOutcome | None = None
    total_iterations = 0
    # Both seeds draw on one iteration cap and one deadline.
    deadline = (
        time.monotonic() + resolved.time_limit_seconds if resolved.time_limit_seconds is not None else None
    )

    for seed_name, seed_order in seeds:
        outcome = two_opt(
            seed_order,
            matrix,
            has_origin=has_origin,
            max_iterations=resolved.max_iterations - total_iterations,
            epsilon=resolved.epsilon,
            deadline=deadline,
        )
        candidate = evaluate_tour(outcome.order, matrix, has_origin=has_origin)
        total_iterations += outcome.iterations
        if best_tour is None or candidate.distance_km < best_tour.distance_km:
            best_seed, best_tour, best_outcome = seed_name, candidate, outcome

    budget_exceeded = not best_outcome.converged
    if budget_exceeded:
        logger.warning(
            "2-opt budget exhausted after %d reversal(s) with improving moves left (cap=%d)",
            total_iterations,
            resolved.max_iterations,
        )
    logger.debug(
        "Optimized %d stops: baseline=%.3f km, nearest-neighbour=%.3f km, final=%.3f km (seed=%s)",
        len(stops),
        baseline.distance_km,
        initial.distance_km,
        best_tour.distance_km,
        best_seed,
    )

    metadata.update(
        {
            "iterations": total_iterations,
            "initial_distance_km": initial.distance_km,
            "seed": best_seed,
        }
    )
    return assemble_route(
        stops,
        best_tour,
        matrix,
        baseline,
        has_origin=has_origin,
        budget_exceeded=budget_exceeded,
        metadata=metadata,
    )


def compare_routes(original_stops: Sequence[Stop], result: RouteResult) -> RouteComparison:
    return RouteComparison(
        original_stops=list(original_stops),
        original_distance_km=result.baseline_distance_km,
        optimized_stops=[route_stop.stop for route_stop in result.stops],
        optimized_distance_km=result.total_distance_km,
        improvement=result.improvement,
    )


def build_waypoint_plan(result: RouteResult, origin: Coordinate | None = None) -> WaypointPlan:
    """Directions request for an optimized route.

    The path starts at ``origin`` (or the first stop) and ends at the last
    stop; every stop in between becomes a waypoint in visiting order.
    """
    if not result.stops:
        raise ValidationError("No stops provided for a waypoint plan.")

    coordinates = [route_stop.stop.coordinate for route_stop in result.stops]
    if origin is not None:
        return WaypointPlan(origin=origin, destination=coordinates[-1], waypoints=coordinates[:-1])
    return WaypointPlan(
        origin=coordinates[0],
        destination=coordinates[-1],
        waypoints=coordinates[1:-1],
    )
