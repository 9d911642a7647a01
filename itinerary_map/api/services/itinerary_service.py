# itinerary_map/api/services/itinerary_service.py
"""Service layer for itinerary edits and their persistence."""

import hashlib
import logging
import math
import re
import threading
import time
import unicodedata
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from itinerary_map.api.keys import poi_key
from itinerary_map.api.models import Day, ItineraryState, Poi, Position
from itinerary_map.api.search import SearchResult
from itinerary_map.api.services.map_service import MapService
from itinerary_map.api.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 12
SALT_LENGTH = 6


@dataclass(frozen=True)
class SummaryEdit:
    """One edit session of a day summary, opened when the field gains focus."""

    day_index: int
    original: str


def slugify(text: str) -> str:
    """ASCII, lowercase, dash-separated; "poi" when nothing is left."""
    text = unicodedata.normalize("NFKD", str(text or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return text or "poi"


def _parse_coordinate(value: Any, fallback: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return parsed


class ItineraryService:
    """Applies user edits to the itinerary graph and persists them.

    Day edits are optimistic: the change is applied in memory, persisted,
    and rolled back if the storage call fails. POI edits and new POIs are
    persisted first and only then applied. Every successful change that
    touches day/POI associations ends with ``on_commit`` so the planned-dates
    index and the map are rebuilt.
    """

    def __init__(self, state: ItineraryState, storage: StorageClient,
                 on_commit: Optional[Callable[[], None]] = None,
                 on_status: Optional[Callable[[str], None]] = None):
        self.state = state
        self.storage = storage
        self.on_commit = on_commit
        self.on_status = on_status
        self._poi_saves_in_flight: Dict[str, str] = {}
        self._in_flight_lock = threading.Lock()

    def _status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    def _commit(self) -> None:
        self.state.rebuild_index()
        if self.on_commit is not None:
            self.on_commit()

    # ------------------------------------------------------------------ #
    # Day transactions
    # ------------------------------------------------------------------ #
    @contextmanager
    def _day_transaction(self, days: List[Day]):
        """Snapshot ``days``; restore them if the block raises StorageError."""
        snapshot = [(day, list(day.poi_ids), day.summary) for day in days]
        try:
            yield
        except StorageError:
            for day, poi_ids, summary in snapshot:
                day.poi_ids = poi_ids
                day.summary = summary
            logger.warning(f"Rolled back {len(snapshot)} day(s) after a failed save")
            raise

    def persist_day(self, day: Day) -> None:
        self.storage.upsert_record(day.to_record())

    def add_poi_to_day(self, day_index: int, poi_id: Any) -> bool:
        """Append a known POI to the day. Returns True if something changed."""
        day = self.state.get_day(day_index)
        clean_id = str(poi_id or "").strip()
        if day is None or not clean_id:
            return False
        if self.state.get_poi(clean_id) is None:
            self._status(f"Unknown POI id: {clean_id}")
            return False
        if clean_id in day.poi_ids:
            return False

        with self._day_transaction([day]):
            day.poi_ids.append(clean_id)
            self.persist_day(day)

        self._status("Day updated")
        self._commit()
        return True

    def remove_poi_from_day(self, day_index: int, poi_id: Any) -> bool:
        day = self.state.get_day(day_index)
        clean_id = str(poi_id or "").strip()
        if day is None or not clean_id or clean_id not in day.poi_ids:
            return False

        with self._day_transaction([day]):
            day.poi_ids = [p for p in day.poi_ids if p != clean_id]
            self.persist_day(day)

        self._status("Day updated")
        self._commit()
        return True

    def begin_summary_edit(self, day_index: int) -> Optional[SummaryEdit]:
        day = self.state.get_day(day_index)
        if day is None:
            return None
        return SummaryEdit(day_index=day_index, original=(day.summary or "").strip())

    def commit_summary_edit(self, edit: SummaryEdit, new_value: Any) -> bool:
        """Save the summary only if it differs from the edit's starting value."""
        day = self.state.get_day(edit.day_index)
        if day is None:
            return False
        value = str(new_value or "").strip()
        if value == (edit.original or "").strip():
            return False

        with self._day_transaction([day]):
            day.summary = value
            self.persist_day(day)

        self._status("Day updated")
        self._commit()
        return True

    def edit_day_summary(self, day_index: int, new_value: Any, original: Optional[str] = None) -> bool:
        """One-shot summary edit; ``original`` is the value the editor started from."""
        if original is None:
            edit = self.begin_summary_edit(day_index)
            if edit is None:
                return False
        else:
            edit = SummaryEdit(day_index=day_index, original=str(original))
        return self.commit_summary_edit(edit, new_value)

    def set_poi_days(self, poi_id: str, day_indices: Iterable[int]) -> bool:
        """Make ``poi_id`` appear on exactly the given days.

        Only days whose membership changes are touched; they are saved one
        after another. If any save fails every touched day is restored and
        the StorageError is re-raised.

        Raises:
            ValueError: If a day index is out of range.
            StorageError: If a save fails (after rollback).
        """
        if self.state.get_poi(poi_id) is None:
            self._status(f"Unknown POI id: {poi_id}")
            return False

        desired = set()
        for idx in day_indices:
            if self.state.get_day(idx) is None:
                raise ValueError(f"Day index out of range: {idx}")
            desired.add(idx)

        current = {i for i, day in enumerate(self.state.days) if poi_id in day.poi_ids}
        affected = sorted(current ^ desired)
        if not affected:
            return False

        days = [self.state.days[i] for i in affected]
        with self._day_transaction(days):
            for idx, day in zip(affected, days):
                if idx in desired:
                    day.poi_ids.append(poi_id)
                else:
                    day.poi_ids = [p for p in day.poi_ids if p != poi_id]
            for day in days:
                self.persist_day(day)

        logger.info(f"Reassigned POI {poi_id}: {len(affected)} day(s) updated")
        self._status("Days updated")
        self._commit()
        return True

    # ------------------------------------------------------------------ #
    # POIs
    # ------------------------------------------------------------------ #
    def update_poi(self, poi_id: str, name: Any = None, details: Any = None,
                   location: Any = None, lat: Any = None, lng: Any = None) -> bool:
        """Save edited POI fields as one upsert if anything actually changed.

        Fields left as None keep their current value. Coordinates that do
        not parse as numbers, or fall outside valid ranges, are ignored. An
        identical save already in flight for this POI is not repeated.
        """
        poi = self.state.get_poi(poi_id)
        if poi is None:
            return False

        next_name = poi.name.strip() if name is None else str(name).strip()
        next_details = poi.details.strip() if details is None else str(details).strip()
        next_location = poi.location.strip() if location is None else str(location).strip()
        next_lat = _parse_coordinate(lat, poi.position.lat)
        next_lng = _parse_coordinate(lng, poi.position.lng)
        if not MapService.validate_coordinates(next_lat, next_lng):
            next_lat, next_lng = poi.position.lat, poi.position.lng

        unchanged = (
            next_name == poi.name.strip()
            and next_details == poi.details.strip()
            and next_location == poi.location.strip()
            and next_lat == poi.position.lat
            and next_lng == poi.position.lng
        )
        if unchanged:
            return False

        fingerprint = "\n".join([next_name, next_details, next_location, repr(next_lat), repr(next_lng)])
        with self._in_flight_lock:
            if self._poi_saves_in_flight.get(poi_id) == fingerprint:
                logger.debug(f"Coalesced duplicate save for POI {poi_id}")
                return False
            self._poi_saves_in_flight[poi_id] = fingerprint

        updated = Poi(
            id=poi.id,
            key=poi.key,
            name=next_name,
            details=next_details,
            location=next_location,
            position=Position(lat=next_lat, lng=next_lng),
        )
        try:
            self.storage.upsert_record(updated.to_record())
        finally:
            with self._in_flight_lock:
                if self._poi_saves_in_flight.get(poi_id) == fingerprint:
                    del self._poi_saves_in_flight[poi_id]

        poi.name = updated.name
        poi.details = updated.details
        poi.location = updated.location
        poi.position = updated.position
        self._status("POI saved")
        self._commit()
        return True

    def generate_poi_id(self, name: str, lat: float, lng: float, now: Optional[float] = None) -> str:
        """Slug of ``name`` plus a short hash salt, unique among current POIs and stops."""
        slug = slugify(name)
        stamp = time.time() if now is None else now
        taken = set(self.state.pois) | {s.id for s in self.state.stops}

        attempt = 0
        while True:
            seed = f"{name}|{lat:.6f}|{lng:.6f}|{stamp}|{attempt}"
            salt = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:SALT_LENGTH]
            candidate = f"{slug}-{salt}"
            if candidate not in taken:
                return candidate
            attempt += 1

    def create_poi_from_search(self, result: SearchResult, day_index: Optional[int] = None) -> Poi:
        """Persist a new POI built from a search hit, then add it to state.

        If ``day_index`` is given the new POI is also added to that day.
        """
        name = (result.name or "").strip() or (result.location or "").strip()
        if not name:
            raise ValueError("Search result has no name")
        if not MapService.validate_coordinates(result.lat, result.lng):
            raise ValueError("Search result has invalid coordinates")

        new_id = self.generate_poi_id(name, result.lat, result.lng)
        poi = Poi(
            id=new_id,
            key=poi_key(new_id),
            name=name,
            location=(result.location or "").strip(),
            details="",
            position=Position(lat=result.lat, lng=result.lng),
        )
        self.storage.upsert_record(poi.to_record())
        self.state.pois[poi.id] = poi
        logger.info(f"Created POI {poi.id} from search result '{name}'")
        self._status("POI added")
        # The POI is saved even if the day save below fails.
        self._commit()

        if day_index is not None and self.state.get_day(day_index) is not None:
            self.add_poi_to_day(day_index, poi.id)
        return poi

    # ------------------------------------------------------------------ #
    # Suggestions
    # ------------------------------------------------------------------ #
    def all_pois_sorted(self) -> List[Dict[str, str]]:
        entries = [
            {"id": p.id, "name": (p.name or p.id).strip(), "details": (p.details or "").strip()}
            for p in self.state.pois.values()
            if p.id
        ]
        return sorted(entries, key=lambda e: e["name"].lower())

    def excluded_poi_ids(self, day_index: Optional[int]) -> set:
        day = self.state.get_day(day_index) if day_index is not None else None
        return set(day.poi_ids) if day is not None else set()

    def suggest_pois(self, query: str, day_index: Optional[int] = None,
                     limit: int = SUGGESTION_LIMIT) -> List[Dict[str, str]]:
        """POIs whose "name id" contains ``query``, skipping those on the day."""
        needle = (query or "").strip().lower()
        if not needle:
            return []
        exclude = self.excluded_poi_ids(day_index)
        matches = []
        for entry in self.all_pois_sorted():
            if entry["id"] in exclude:
                continue
            if needle in f"{entry['name']} {entry['id']}".lower():
                matches.append(entry)
            if len(matches) >= limit:
                break
        return matches

    def quick_add(self, day_index: int, typed: str) -> bool:
        """Add by exact id, or by a name that matches exactly one POI."""
        day = self.state.get_day(day_index)
        text = (typed or "").strip()
        if day is None or not text or text in day.poi_ids:
            return False
        if self.state.get_poi(text) is not None:
            return self.add_poi_to_day(day_index, text)

        by_name = [e for e in self.all_pois_sorted() if e["name"].lower() == text.lower()]
        if len(by_name) == 1:
            return self.add_poi_to_day(day_index, by_name[0]["id"])
        return False


__all__ = ["ItineraryService", "SummaryEdit", "slugify"]
