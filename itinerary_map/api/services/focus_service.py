# itinerary_map/api/services/focus_service.py
"""Transit legs and focus points for a single itinerary day."""

import logging
from typing import Dict, List, Optional

from itinerary_map.api.config import get_map_config
from itinerary_map.api.models import (
    ItineraryState,
    PlaceKind,
    Position,
    TransitEndpoint,
    TransitLeg,
)

logger = logging.getLogger(__name__)


class DayFocusService:
    """Derives what a "focus this day" camera move should show."""

    def __init__(self, state: ItineraryState, airport_poi_id: Optional[str] = None):
        self.state = state
        if airport_poi_id is None:
            airport_poi_id = get_map_config()["airport_poi_id"]
        self.airport_poi_id = airport_poi_id

    def _stop_endpoint(self, stop_id: str) -> Optional[TransitEndpoint]:
        stop = self.state.get_stop(stop_id)
        if stop is None:
            return None
        return TransitEndpoint(PlaceKind.STOP, stop.id, stop.position)

    def _poi_endpoint(self, poi_id: str) -> Optional[TransitEndpoint]:
        poi = self.state.get_poi(poi_id)
        if poi is None:
            return None
        return TransitEndpoint(PlaceKind.POI, poi.id, poi.position)

    def get_transit_leg_for_day(self, day_index: int) -> Optional[TransitLeg]:
        """Return the hop that brings the traveller to this day, if any.

        Rules, first match wins:
            1. First or last day that lists the airport POI and has a stop:
               airport -> stop on the first day, stop -> airport on the last.
            2. The stop differs from the previous day's stop: stop -> stop.
            3. Otherwise there is no leg.
        """
        days = self.state.days
        day = self.state.get_day(day_index)
        if day is None:
            return None

        last_index = len(days) - 1
        airport_id = self.airport_poi_id
        if airport_id and day_index in (0, last_index) and airport_id in day.poi_ids:
            airport = self._poi_endpoint(airport_id)
            stop = self._stop_endpoint(day.stop_id)
            if airport is not None and stop is not None:
                if day_index == 0:
                    return TransitLeg(origin=airport, destination=stop)
                return TransitLeg(origin=stop, destination=airport)

        if day_index == 0:
            return None
        prev_day = days[day_index - 1]
        if not day.stop_id or not prev_day.stop_id or day.stop_id == prev_day.stop_id:
            return None

        origin = self._stop_endpoint(prev_day.stop_id)
        destination = self._stop_endpoint(day.stop_id)
        if origin is None or destination is None:
            return None
        return TransitLeg(origin=origin, destination=destination)

    def get_day_focus_points(self, day_index: int, transit: Optional[TransitLeg] = None) -> List[Position]:
        """Stop, POIs and leg endpoints for the day, de-duplicated.

        Unknown stop or POI ids contribute nothing.
        """
        day = self.state.get_day(day_index)
        if day is None:
            return []

        points = []
        stop = self.state.get_stop(day.stop_id)
        if stop is not None:
            points.append(stop.position)
        for poi_id in day.poi_ids:
            poi = self.state.get_poi(poi_id)
            if poi is not None:
                points.append(poi.position)
        if transit is not None:
            points.append(transit.origin.position)
            points.append(transit.destination.position)

        seen = set()
        unique = []
        for point in points:
            key = point.coord_key()
            if key in seen:
                continue
            seen.add(key)
            unique.append(point)
        return unique

    @staticmethod
    def calculate_bounds(points: List[Position]) -> Optional[Dict[str, float]]:
        """Bounding box of ``points``, or None when there are none."""
        if not points:
            return None
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return {
            "north": max(lats),
            "south": min(lats),
            "east": max(lngs),
            "west": min(lngs),
        }

    def highlight_sets(self, day_index: Optional[int], transit: Optional[TransitLeg] = None):
        """Stop ids and POI ids to highlight for the focused day.

        Returns:
            Tuple of (stop_ids, poi_ids); both empty when nothing is focused.
        """
        stop_ids = set()
        poi_ids = set()
        day = self.state.get_day(day_index) if day_index is not None else None
        if day is None:
            return stop_ids, poi_ids

        if day.stop_id:
            stop_ids.add(day.stop_id)
        poi_ids.update(day.poi_ids)

        if transit is not None:
            for endpoint in (transit.origin, transit.destination):
                if endpoint.kind is PlaceKind.STOP:
                    stop_ids.add(endpoint.id)
                elif endpoint.kind is PlaceKind.POI:
                    poi_ids.add(endpoint.id)
        return stop_ids, poi_ids


__all__ = ["DayFocusService"]
