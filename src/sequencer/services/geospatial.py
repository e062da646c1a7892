"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional

from .routing.errors import ValidationError

EARTH_RADIUS_KM = 6371.0
MINUTES_PER_HOUR = 60.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def travel_minutes(distance_km: float, average_speed_kmh: float) -> float:
    """Convert a distance into an estimated travel time at a constant speed."""

    if not math.isfinite(average_speed_kmh) or average_speed_kmh <= 0:
        raise ValidationError(
            f"Average speed must be a positive finite number, got {average_speed_kmh}.",
            field="average_speed_kmh",
        )
    if distance_km <= 0:
        return 0.0
    return distance_km / average_speed_kmh * MINUTES_PER_HOUR


def validate_coordinate(latitude: float, longitude: float, *, stop_id: Optional[str] = None) -> None:
    """Reject coordinates outside [-90, 90] x [-180, 180] or not finite."""

    label = f"stop '{stop_id}'" if stop_id is not None else "coordinate"
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid coordinate for {label}: ({latitude}, {longitude}).", stop_id=stop_id) from exc

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValidationError(f"Non-finite coordinate for {label}: ({lat}, {lon}).", stop_id=stop_id)
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(
            f"Latitude {lat} out of range [-90, 90] for {label}.", stop_id=stop_id, field="latitude"
        )
    if not -180.0 <= lon <= 180.0:
        raise ValidationError(
            f"Longitude {lon} out of range [-180, 180] for {label}.", stop_id=stop_id, field="longitude"
        )
