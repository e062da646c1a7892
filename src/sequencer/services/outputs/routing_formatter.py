"""Serializers for routing outputs."""

from __future__ import annotations

import csv
import io

from ..routing.models import RouteResult


def route_result_to_json(result: RouteResult, *, batch_id: str | None = None) -> dict:
    return {
        "batch_id": batch_id,
        "total_distance_km": result.total_distance_km,
        "total_duration_min": result.total_duration_min,
        "baseline_distance_km": result.baseline_distance_km,
        "improvement": {
            "distance_saved_km": result.improvement.distance_saved_km,
            "percentage_improved": result.improvement.percentage_improved,
        },
        "budget_exceeded": result.budget_exceeded,
        "metadata": dict(result.metadata),
        "stops": [
            {
                "sequence": route_stop.sequence,
                "id": route_stop.stop.stop_id,
                "label": route_stop.stop.label,
                "latitude": route_stop.stop.latitude,
                "longitude": route_stop.stop.longitude,
                "order_id": route_stop.stop.order_id,
                "distance_from_prev_km": route_stop.distance_from_prev_km,
                "cumulative_distance_km": route_stop.cumulative_distance_km,
                "cumulative_duration_min": route_stop.cumulative_duration_min,
            }
            for route_stop in result.stops
        ],
    }


def route_result_to_csv(result: RouteResult, *, batch_id: str | None = None) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "batch_id",
        "sequence",
        "stop_id",
        "label",
        "order_id",
        "latitude",
        "longitude",
        "distance_from_prev_km",
        "cumulative_distance_km",
        "cumulative_duration_min",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for route_stop in result.stops:
        writer.writerow(
            {
                "batch_id": batch_id or "",
                "sequence": route_stop.sequence,
                "stop_id": route_stop.stop.stop_id,
                "label": route_stop.stop.label,
                "order_id": route_stop.stop.order_id or "",
                "latitude": route_stop.stop.latitude,
                "longitude": route_stop.stop.longitude,
                "distance_from_prev_km": round(route_stop.distance_from_prev_km, 3),
                "cumulative_distance_km": round(route_stop.cumulative_distance_km, 3),
                "cumulative_duration_min": round(route_stop.cumulative_duration_min, 1),
            }
        )
    return buffer.getvalue()
