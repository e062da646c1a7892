"""Routing orchestration service."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from ...models.domain import Coordinate, Stop
from ...schemas.routing import (
    ImprovementModel,
    RouteComparisonResponse,
    RouteOptimizationRequest,
    RouteOptimizationResponse,
)
from ..outputs.routing_formatter import route_result_to_csv, route_result_to_json
from .distance import DistanceMatrix, matrix_from_osrm_table
from .models import OptimizerOptions, RouteResult
from .osrm_client import OSRMClient
from .solver import (
    build_waypoint_plan,
    compare_routes,
    optimize_route,
    resolve_options,
    route_points,
    validate_stops,
)

logger = logging.getLogger(__name__)


def _build_stops(payload: RouteOptimizationRequest) -> list[Stop]:
    return [
        Stop(
            stop_id=item.id.strip(),
            label=item.label or item.id,
            coordinate=Coordinate(latitude=item.latitude, longitude=item.longitude),
            order_id=item.order_id,
        )
        for item in payload.stops
    ]


def _build_origin(payload: RouteOptimizationRequest) -> Coordinate | None:
    if payload.origin is None:
        return None
    return Coordinate(latitude=payload.origin.latitude, longitude=payload.origin.longitude)


def _build_options(payload: RouteOptimizationRequest) -> OptimizerOptions:
    overrides = payload.options
    if overrides is None:
        return OptimizerOptions()
    return OptimizerOptions(
        average_speed_kmh=overrides.average_speed_kmh,
        max_iterations=overrides.max_iterations,
        epsilon=overrides.epsilon,
        time_limit_seconds=overrides.time_limit_seconds,
    )


def _road_network_matrix(
    stops: Sequence[Stop],
    origin: Coordinate | None,
    average_speed_kmh: float,
) -> DistanceMatrix | None:
    """Fetch OSRM distances, or ``None`` so the engine falls back to haversine."""

    points = route_points(stops, origin)
    if len(points) < 2:
        return None

    try:
        osrm_client = OSRMClient()
    except ValueError as exc:
        logger.warning("Road network requested but OSRM is not configured: %s. Using haversine.", exc)
        return None

    try:
        osrm_table = osrm_client.table([point.as_tuple() for point in points])
        return matrix_from_osrm_table(osrm_table, points, average_speed_kmh)
    except (ConnectionError, ValueError) as exc:
        logger.warning("OSRM table request failed: %s. Using haversine fallback.", exc)
    except Exception as exc:
        logger.error("Unexpected error getting OSRM table: %s. Using haversine fallback.", exc)
    return None


def run_optimization(payload: RouteOptimizationRequest) -> tuple[list[Stop], RouteResult]:
    stops = _build_stops(payload)
    origin = _build_origin(payload)
    options = _build_options(payload)

    # Fail before any network call.
    validate_stops(stops, origin)
    resolved = resolve_options(options, len(stops))

    matrix = None
    if payload.use_road_network:
        matrix = _road_network_matrix(stops, origin, resolved.average_speed_kmh)

    result = optimize_route(stops, origin=origin, options=options, matrix=matrix)

    metadata = {**result.metadata, "road_network_requested": payload.use_road_network}
    if payload.batch_id:
        metadata["batch_id"] = payload.batch_id
    if result.stops:
        plan = build_waypoint_plan(result, origin)
        metadata["waypoint_plan"] = {
            "origin": plan.origin.as_tuple(),
            "destination": plan.destination.as_tuple(),
            "waypoints": [point.as_tuple() for point in plan.waypoints],
        }
    result = replace(result, metadata=metadata)

    logger.info(
        "Sequenced %d stop(s)%s: %.2f km (baseline %.2f km, saved %.1f%%)%s",
        len(stops),
        f" for batch '{payload.batch_id}'" if payload.batch_id else "",
        result.total_distance_km,
        result.baseline_distance_km,
        result.improvement.percentage_improved,
        " [iteration budget exhausted]" if result.budget_exceeded else "",
    )
    return stops, result


def optimize_delivery_route(payload: RouteOptimizationRequest) -> RouteOptimizationResponse:
    _, result = run_optimization(payload)
    return RouteOptimizationResponse.model_validate(route_result_to_json(result, batch_id=payload.batch_id))


def export_delivery_route_csv(payload: RouteOptimizationRequest) -> str:
    """Optimized route as CSV, one row per stop in visiting order."""

    _, result = run_optimization(payload)
    return route_result_to_csv(result, batch_id=payload.batch_id)


def compare_delivery_route(payload: RouteOptimizationRequest) -> RouteComparisonResponse:
    stops, result = run_optimization(payload)
    comparison = compare_routes(stops, result)
    return RouteComparisonResponse(
        batch_id=payload.batch_id,
        original_stop_ids=[stop.stop_id for stop in comparison.original_stops],
        original_distance_km=comparison.original_distance_km,
        optimized_stop_ids=[stop.stop_id for stop in comparison.optimized_stops],
        optimized_distance_km=comparison.optimized_distance_km,
        improvement=ImprovementModel(
            distance_saved_km=comparison.improvement.distance_saved_km,
            percentage_improved=comparison.improvement.percentage_improved,
        ),
    )
