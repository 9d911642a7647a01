# itinerary_map/api/keys.py
"""Storage key parsing.

Records live in one collection and are told apart by a key prefix:
``stop:<id>``, ``poi:<id>`` and ``day:<id>``.
"""
from __future__ import annotations

from typing import Any, Optional

from itinerary_map.api.models import ParsedKey, PlaceKind

STOP_PREFIX = "stop:"
POI_PREFIX = "poi:"
DAY_PREFIX = "day:"


def _as_text(key: Any) -> str:
    return "" if key is None else str(key)


def parse_place_key(key: Any) -> Optional[ParsedKey]:
    """Parse a ``stop:`` or ``poi:`` key, or return None."""
    raw = _as_text(key)
    if raw.startswith(STOP_PREFIX):
        return ParsedKey(PlaceKind.STOP, raw[len(STOP_PREFIX):])
    if raw.startswith(POI_PREFIX):
        return ParsedKey(PlaceKind.POI, raw[len(POI_PREFIX):])
    return None


def parse_day_key(key: Any) -> Optional[ParsedKey]:
    """Parse a ``day:`` key, or return None."""
    raw = _as_text(key)
    if raw.startswith(DAY_PREFIX):
        return ParsedKey(PlaceKind.DAY, raw[len(DAY_PREFIX):])
    return None


def stop_key(stop_id: str) -> str:
    return f"{STOP_PREFIX}{stop_id}"


def poi_key(poi_id: str) -> str:
    return f"{POI_PREFIX}{poi_id}"


__all__ = [
    "parse_place_key",
    "parse_day_key",
    "stop_key",
    "poi_key",
]
