"""Shared data structures for the itinerary graph.

Stops, POIs and days are plain dataclasses so the state builder, the focus
engine and the mutation service can all share one definition. Map keys and
transit endpoints are tagged with ``PlaceKind`` rather than bare strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from itinerary_map.api.planned_dates import PlannedDatesIndex


class PlaceKind(str, Enum):
    """Namespace of a storage key."""

    STOP = "stop"
    POI = "poi"
    DAY = "day"


@dataclass(frozen=True)
class ParsedKey:
    kind: PlaceKind
    id: str


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}

    def coord_key(self) -> str:
        """Key used to treat two points as the same spot (6 decimal places)."""
        return f"{self.lng:.6f},{self.lat:.6f}"


@dataclass
class Stop:
    """A multi-night lodging base."""

    id: str
    key: str
    name: str
    position: Position
    city: str = ""
    dates: str = ""  # free-text label, e.g. "25-28 Apr"
    details: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name,
            "city": self.city,
            "dates": self.dates,
            "details": self.details,
            "position": self.position.to_dict(),
        }


@dataclass
class Poi:
    """A single point of interest, never a Stop."""

    id: str
    key: str
    name: str
    position: Position
    location: str = ""
    details: str = ""

    def to_record(self) -> dict:
        return {
            "key": self.key,
            "name": self.name,
            "location": self.location,
            "details": self.details,
            "lat": self.position.lat,
            "lng": self.position.lng,
            "position": self.position.to_dict(),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name,
            "location": self.location,
            "details": self.details,
            "position": self.position.to_dict(),
        }


@dataclass
class Day:
    """One calendar day of the itinerary."""

    id: str
    key: str
    date: str
    stop_id: str = ""
    summary: str = ""
    poi_ids: List[str] = field(default_factory=list)

    def to_record(self) -> dict:
        return {
            "key": self.key,
            "date": self.date,
            "stopId": self.stop_id,
            "summary": self.summary,
            "poiIds": list(self.poi_ids),
        }


@dataclass(frozen=True)
class TransitEndpoint:
    kind: PlaceKind
    id: str
    position: Position

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "id": self.id, "position": self.position.to_dict()}


@dataclass(frozen=True)
class TransitLeg:
    """A straight hop shown when a day implies travel."""

    origin: TransitEndpoint
    destination: TransitEndpoint

    def to_dict(self) -> dict:
        return {"from": self.origin.to_dict(), "to": self.destination.to_dict()}


@dataclass
class ItineraryState:
    """The in-memory itinerary graph plus the values derived from it.

    The controller owns exactly one instance; services receive it by
    reference. ``replace`` swaps in a freshly built graph without changing
    the object identity.
    """

    stops: List[Stop] = field(default_factory=list)
    pois: Dict[str, Poi] = field(default_factory=dict)
    days: List[Day] = field(default_factory=list)
    planned: Optional[PlannedDatesIndex] = None
    focused_day_index: Optional[int] = None

    def __post_init__(self):
        if self.planned is None:
            self.rebuild_index()

    def get_stop(self, stop_id: str) -> Optional[Stop]:
        if not stop_id:
            return None
        for stop in self.stops:
            if stop.id == stop_id:
                return stop
        return None

    def get_poi(self, poi_id: str) -> Optional[Poi]:
        if not poi_id:
            return None
        return self.pois.get(poi_id)

    def get_day(self, day_index: int) -> Optional[Day]:
        if not isinstance(day_index, int) or isinstance(day_index, bool):
            return None
        if day_index < 0 or day_index >= len(self.days):
            return None
        return self.days[day_index]

    def replace(self, stops: List[Stop], pois: Dict[str, Poi], days: List[Day]) -> None:
        self.stops = stops
        self.pois = pois
        self.days = days
        self.rebuild_index()
        if self.focused_day_index is not None and self.get_day(self.focused_day_index) is None:
            self.focused_day_index = None

    def rebuild_index(self) -> None:
        self.planned = PlannedDatesIndex.build(self.days)


__all__ = [
    "PlaceKind",
    "ParsedKey",
    "Position",
    "Stop",
    "Poi",
    "Day",
    "TransitEndpoint",
    "TransitLeg",
    "ItineraryState",
]
