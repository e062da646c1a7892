"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Coordinate, Stop


@dataclass(frozen=True, slots=True)
class Tour:
    """A visiting order over stop indices plus its derived totals."""

    order: tuple[int, ...]
    distance_km: float
    duration_min: float

    def __len__(self) -> int:
        return len(self.order)


@dataclass(slots=True)
class OptimizerOptions:
    """Per-call overrides. ``None`` means "use the configured default"."""

    average_speed_kmh: Optional[float] = None
    max_iterations: Optional[int] = None
    epsilon: Optional[float] = None
    tie_tolerance_km: Optional[float] = None
    time_limit_seconds: Optional[float] = None


@dataclass(frozen=True, slots=True)
class TwoOptOutcome:
    order: tuple[int, ...]
    iterations: int
    converged: bool


@dataclass(frozen=True, slots=True)
class RouteStop:
    sequence: int
    stop: Stop
    distance_from_prev_km: float
    cumulative_distance_km: float
    cumulative_duration_min: float


@dataclass(frozen=True, slots=True)
class Improvement:
    distance_saved_km: float
    percentage_improved: float


@dataclass(frozen=True, slots=True)
class RouteResult:
    stops: List[RouteStop]
    total_distance_km: float
    total_duration_min: float
    baseline_distance_km: float
    improvement: Improvement
    budget_exceeded: bool = False
    metadata: dict = field(default_factory=dict)

    @property
    def stop_ids(self) -> list[str]:
        return [route_stop.stop.stop_id for route_stop in self.stops]


@dataclass(frozen=True, slots=True)
class RouteComparison:
    original_stops: List[Stop]
    original_distance_km: float
    optimized_stops: List[Stop]
    optimized_distance_km: float
    improvement: Improvement


@dataclass(frozen=True, slots=True)
class WaypointPlan:
    """Origin, destination and ordered intermediate points for a directions client."""

    origin: Coordinate
    destination: Coordinate
    waypoints: List[Coordinate]
