"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CoordinateModel(BaseModel):
    # Range checks are left to the engine so the offending stop is named.
    latitude: float
    longitude: float


class StopModel(BaseModel):
    id: str = Field(..., description="Order or customer identifier; unique within the batch.")
    label: str = Field(default="", description="Human-readable name shown to the driver.")
    latitude: float
    longitude: float
    order_id: Optional[str] = None


class OptimizerOptionsModel(BaseModel):
    average_speed_kmh: Optional[float] = None
    max_iterations: Optional[int] = None
    epsilon: Optional[float] = None
    time_limit_seconds: Optional[float] = None


class RouteOptimizationRequest(BaseModel):
    batch_id: Optional[str] = Field(default=None, description="Delivery batch the stops belong to.")
    stops: List[StopModel] = Field(default_factory=list)
    origin: Optional[CoordinateModel] = Field(
        default=None,
        description="Dispatching branch location. When omitted the route starts at the first stop.",
    )
    options: Optional[OptimizerOptionsModel] = None
    use_road_network: bool = Field(
        default=False,
        description="Use OSRM road distances instead of straight-line estimates when available.",
    )


class RouteStopModel(BaseModel):
    sequence: int
    id: str
    label: str
    latitude: float
    longitude: float
    order_id: Optional[str] = None
    distance_from_prev_km: float
    cumulative_distance_km: float
    cumulative_duration_min: float


class ImprovementModel(BaseModel):
    distance_saved_km: float
    percentage_improved: float


class RouteOptimizationResponse(BaseModel):
    batch_id: Optional[str] = None
    stops: List[RouteStopModel]
    total_distance_km: float
    total_duration_min: float
    baseline_distance_km: float
    improvement: ImprovementModel
    budget_exceeded: bool
    metadata: dict


class RouteComparisonResponse(BaseModel):
    batch_id: Optional[str] = None
    original_stop_ids: List[str]
    original_distance_km: float
    optimized_stop_ids: List[str]
    optimized_distance_km: float
    improvement: ImprovementModel
