# itinerary_map/api/planned_dates.py
"""Which dates each stop and POI is planned for.

The index is derived data: it is always rebuilt from the full day list and
never patched in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from itinerary_map.api.dates import format_planned_dates_short


@dataclass
class PlannedDatesIndex:
    stop_dates: Dict[str, Set[str]] = field(default_factory=dict)
    poi_dates: Dict[str, Set[str]] = field(default_factory=dict)

    @classmethod
    def build(cls, days: Iterable) -> "PlannedDatesIndex":
        index = cls()
        for day in days or []:
            if day.stop_id:
                index.stop_dates.setdefault(day.stop_id, set()).add(day.date)
            for poi_id in day.poi_ids or []:
                index.poi_dates.setdefault(poi_id, set()).add(day.date)
        return index

    def dates_for_stop(self, stop_id: str) -> List[str]:
        return sorted(self.stop_dates.get(stop_id, ()))

    def dates_for_poi(self, poi_id: str) -> List[str]:
        return sorted(self.poi_dates.get(poi_id, ()))

    def stop_badge(self, stop_id: str) -> str:
        """Compact planned-date label for a stop marker, "" when unplanned."""
        return format_planned_dates_short(self.dates_for_stop(stop_id))

    def poi_badge(self, poi_id: str) -> str:
        return format_planned_dates_short(self.dates_for_poi(poi_id))


__all__ = ["PlannedDatesIndex"]
