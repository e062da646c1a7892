"""Domain models for delivery stops."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""

    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Stop:
    """One geocoded delivery destination within a batch.

    ``stop_id`` matches the originating order or customer record and must be
    unique within a batch.
    """

    stop_id: str
    label: str
    coordinate: Coordinate
    order_id: Optional[str] = None

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude
