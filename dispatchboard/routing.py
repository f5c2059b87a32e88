"""
Multi-stop route planning.

Distances are straight-line (haversine), meant as a rough estimate for
the dispatcher; the actual driving route comes from the Google Maps link.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from .config import BaseLocation
from .models import Coordinates, Job

EARTH_RADIUS_KM = 6371.0
MAPS_DIR_URL = "https://www.google.com/maps/dir/"

BASE_STOP_ID = 9999


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


@dataclass(frozen=True)
class Stop:
    id: int
    label: str
    coordinates: Coordinates


class RoutePlan:
    """Ordered stops; the depot may be added like any other stop."""

    def __init__(self, base: Optional[BaseLocation] = None):
        self.base = base or BaseLocation()
        self.stops: List[Stop] = []

    def add_base(self) -> Stop:
        stop = Stop(BASE_STOP_ID, self.base.name, Coordinates(self.base.lat, self.base.lng))
        self.stops.append(stop)
        return stop

    def add(self, job: Job) -> bool:
        """Append a job as the next stop. Jobs without coordinates cannot be routed."""
        if job.coordinates is None:
            return False
        self.stops.append(Stop(job.id, job.title, job.coordinates))
        return True

    def remove(self, job_id: int) -> None:
        self.stops = [s for s in self.stops if s.id != job_id]

    def clear(self) -> None:
        self.stops = []

    def leg_distances_km(self) -> List[float]:
        return [
            haversine_km(prev.coordinates, cur.coordinates)
            for prev, cur in zip(self.stops, self.stops[1:])
        ]

    def total_distance_km(self) -> float:
        return round(sum(self.leg_distances_km()), 1)

    def maps_link(self) -> str:
        if len(self.stops) < 2:
            return ""
        path = "/".join(f"{s.coordinates.lat},{s.coordinates.lng}" for s in self.stops)
        return MAPS_DIR_URL + path

    def __len__(self) -> int:
        return len(self.stops)
