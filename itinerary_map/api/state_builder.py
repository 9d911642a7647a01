# itinerary_map/api/state_builder.py
"""Build the in-memory itinerary graph from raw storage records."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from itinerary_map.api.config import get_map_config
from itinerary_map.api.dates import parse_day_date
from itinerary_map.api.keys import parse_day_key, parse_place_key
from itinerary_map.api.models import Day, PlaceKind, Poi, Position, Stop

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(record: Dict[str, Any], *names: str, default: str = "") -> str:
    """First string-valued field among ``names``."""
    for name in names:
        value = record.get(name)
        if isinstance(value, str):
            return value
    return default


def get_position_from_record(record: Dict[str, Any]) -> Optional[Position]:
    """Read ``lat``/``lng``, falling back to a nested ``position`` object."""
    nested = record.get("position")
    if not isinstance(nested, dict):
        nested = {}

    lat = record.get("lat") if _is_number(record.get("lat")) else nested.get("lat")
    lng = record.get("lng") if _is_number(record.get("lng")) else nested.get("lng")
    if _is_number(lat) and _is_number(lng):
        return Position(lat=float(lat), lng=float(lng))
    return None


def normalize_string_list(value: Any) -> List[str]:
    """Accept a list or a comma-separated string; drop blanks."""
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    elif isinstance(value, str):
        items = value.split(",")
    else:
        return []
    return [item.strip() for item in items if item.strip()]


def _first_present(record: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if record.get(name) is not None:
            return record[name]
    return None


def _date_sort_key(day: Day) -> Tuple:
    parsed = parse_day_date(day.date) or parse_day_date(day.id)
    if parsed is not None:
        return (0, parsed, "")
    return (1, None, str(day.id))


def build_state_from_records(
    records: Iterable[Any],
    default_center: Optional[Position] = None,
) -> Tuple[List[Stop], Dict[str, Poi], List[Day]]:
    """Turn a flat record list into ``(stops, pois, days)``.

    The function is intentionally lenient:
    * Records without a string ``key`` or with an unknown prefix are skipped.
    * Places with no usable coordinates are put at ``default_center``.
    * Day POI lists never contain stop ids, and no POI shares a stop's id.

    Days come back sorted by date (unparseable dates last, by id); stops are
    sorted by the first day that references them (unreferenced last, by id).
    """
    if default_center is None:
        center = get_map_config()["default_center"]
        default_center = Position(lat=center["lat"], lng=center["lng"])

    stops: List[Stop] = []
    pois: Dict[str, Poi] = {}
    days: List[Day] = []
    skipped = 0

    for record in records or []:
        if not isinstance(record, dict) or not isinstance(record.get("key"), str):
            skipped += 1
            continue
        key = record["key"]

        parsed = parse_place_key(key)
        if parsed is not None:
            position = get_position_from_record(record)
            if position is None:
                logger.debug(f"No usable coordinates for {key}, placing at default center")
                position = default_center
            if parsed.kind is PlaceKind.STOP:
                stops.append(Stop(
                    id=parsed.id,
                    key=key,
                    name=_text(record, "name", default=parsed.id),
                    city=_text(record, "city"),
                    dates=_text(record, "dates"),
                    details=_text(record, "details"),
                    position=position,
                ))
            else:
                pois[parsed.id] = Poi(
                    id=parsed.id,
                    key=key,
                    name=_text(record, "name", default=parsed.id),
                    location=_text(record, "location", "address"),
                    details=_text(record, "details"),
                    position=position,
                )
            continue

        parsed_day = parse_day_key(key)
        if parsed_day is not None:
            days.append(Day(
                id=parsed_day.id,
                key=key,
                date=_text(record, "date", "dateLabel", default=parsed_day.id),
                stop_id=_text(record, "stopId", "stop_id"),
                summary=_text(record, "summary"),
                poi_ids=normalize_string_list(_first_present(record, "poiIds", "pois", "poi_ids")),
            ))
            continue

        skipped += 1

    if skipped:
        logger.debug(f"Skipped {skipped} unrecognised storage records")

    # Stops are surfaced on their own; they never count as POIs.
    stop_ids = {stop.id for stop in stops if stop.id}
    for day in days:
        clean = []
        for poi_id in day.poi_ids:
            ref = parse_place_key(poi_id)
            if ref is not None and ref.kind is PlaceKind.STOP:
                continue
            if poi_id in stop_ids:
                continue
            clean.append(poi_id)
        day.poi_ids = clean

    for stop_id in stop_ids:
        if pois.pop(stop_id, None) is not None:
            logger.debug(f"Dropped POI '{stop_id}' that collides with a stop")

    days.sort(key=_date_sort_key)

    first_date = {}
    for day in days:
        if not day.stop_id:
            continue
        parsed_date = parse_day_date(day.date) or parse_day_date(day.id)
        if parsed_date is None:
            continue
        existing = first_date.get(day.stop_id)
        if existing is None or parsed_date < existing:
            first_date[day.stop_id] = parsed_date

    def stop_sort_key(stop: Stop) -> Tuple:
        if stop.id in first_date:
            return (0, first_date[stop.id], "")
        return (1, None, str(stop.id))

    stops.sort(key=stop_sort_key)

    logger.info(f"Built itinerary: {len(stops)} stops, {len(pois)} POIs, {len(days)} days")
    return stops, pois, days


__all__ = [
    "build_state_from_records",
    "get_position_from_record",
    "normalize_string_list",
]
