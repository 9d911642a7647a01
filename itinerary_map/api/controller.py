# itinerary_map/api/controller.py
"""Application controller: owns the itinerary state and drives re-renders."""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from itinerary_map.api.models import ItineraryState
from itinerary_map.api.search import PlaceSearch
from itinerary_map.api.services.focus_service import DayFocusService
from itinerary_map.api.services.itinerary_service import ItineraryService
from itinerary_map.api.services.map_service import MapService
from itinerary_map.api.services.map_surface import CommandMapSurface, MapSurface
from itinerary_map.api.state_builder import build_state_from_records
from itinerary_map.api.storage import CredentialStore, StorageClient, StorageError

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class ItineraryController:
    """Single owner of the ``ItineraryState``.

    Reads go through ``snapshot()``; writes go through ``refresh()`` or the
    ``mutate()`` wrapper around the itinerary service. After every committed
    change the listeners receive a fresh snapshot and the map overlays are
    rebuilt.
    """

    def __init__(self, storage: Optional[StorageClient] = None,
                 credentials: Optional[CredentialStore] = None,
                 surface: Optional[MapSurface] = None,
                 search: Optional[PlaceSearch] = None,
                 airport_poi_id: Optional[str] = None):
        self.credentials = credentials or CredentialStore()
        self.storage = storage or StorageClient(credentials=self.credentials)
        self.surface = surface or CommandMapSurface()
        self.search = search or PlaceSearch()

        self.state = ItineraryState()
        self.focus = DayFocusService(self.state, airport_poi_id=airport_poi_id)
        self.map = MapService(self.surface, self.state, self.focus)
        self.itinerary = ItineraryService(
            self.state,
            self.storage,
            on_commit=self.render,
            on_status=self.set_status,
        )

        self.status = ""
        self.map_error: Optional[str] = None
        self.lock = threading.RLock()
        self._refresh_seq = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def set_status(self, message: str) -> None:
        self.status = message or ""
        logger.info(f"Status: {self.status}")

    def render(self, fit: bool = False) -> None:
        """Push the current state to the map and to every listener."""
        if self.map_error is None:
            self.map.render_overlays(fit=fit)
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Render listener failed: {e}")

    def snapshot(self) -> Dict[str, Any]:
        state = self.state
        planned = state.planned
        focused = state.focused_day_index
        transit = self.focus.get_transit_leg_for_day(focused) if focused is not None else None

        return {
            "stops": [
                dict(stop.to_dict(), index=i, planned=planned.stop_badge(stop.id))
                for i, stop in enumerate(state.stops)
            ],
            "pois": [
                dict(poi.to_dict(), planned=planned.poi_badge(poi.id))
                for poi in state.pois.values()
            ],
            "days": [
                {
                    "index": i,
                    "id": day.id,
                    "key": day.key,
                    "date": day.date,
                    "stopId": day.stop_id,
                    "stopName": state.get_stop(day.stop_id).name if state.get_stop(day.stop_id) else "",
                    "summary": day.summary,
                    "poiIds": list(day.poi_ids),
                }
                for i, day in enumerate(state.days)
            ],
            "focusedDay": focused,
            "transit": transit.to_dict() if transit else None,
            "view": self.map.initial_view(),
            "status": self.status,
            "mapError": self.map_error,
            "hasCredential": bool(self.credentials.load()),
        }

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def refresh(self, reason: Optional[str] = None) -> bool:
        """Reload the whole collection and rebuild the graph.

        Only the most recently started refresh may apply its result; an
        older response that arrives late is dropped.

        Returns:
            True if this refresh's result (or failure) was applied.
        """
        with self.lock:
            self._refresh_seq += 1
            seq = self._refresh_seq

        auth = self.credentials.load()
        if not auth:
            with self.lock:
                if seq != self._refresh_seq:
                    return False
                self.state.replace([], {}, [])
                self.state.focused_day_index = None
                self.set_status("Enter your key to load the map.")
                self.render(fit=True)
            return True

        self.set_status("Loading from backend…")
        try:
            records = self.storage.fetch_collection(auth)
        except StorageError as e:
            with self.lock:
                if seq != self._refresh_seq:
                    logger.info(f"Ignoring failure of superseded refresh #{seq}")
                    return False
                logger.error(f"Backend load failed: {e}")
                self.set_status(f"Backend load failed: {e}")
                # Keep stops and POIs on screen; the day plan is unknown now.
                self.state.replace(self.state.stops, self.state.pois, [])
                self.state.focused_day_index = None
                self.render()
            return True

        with self.lock:
            if seq != self._refresh_seq:
                logger.info(f"Discarding stale refresh #{seq} (latest is #{self._refresh_seq})")
                return False
            stops, pois, days = build_state_from_records(records)
            self.state.replace(stops, pois, days)
            suffix = f" ({reason})" if reason else ""
            self.set_status(f"Loaded {len(records)} place records{suffix}.")
            self.render(fit=True)
        return True

    def set_credential(self, value: Optional[str]) -> bool:
        """Store a new access key and reload if it changed."""
        clean = str(value or "").strip()
        if clean == self.credentials.load():
            return False
        self.credentials.save(clean)
        self.refresh(reason="key updated")
        return True

    # ------------------------------------------------------------------ #
    # Mutations and map events
    # ------------------------------------------------------------------ #
    def mutate(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """Run an itinerary operation under the state lock.

        A StorageError is reported on the status line and re-raised for the
        caller.
        """
        with self.lock:
            try:
                return operation(*args, **kwargs)
            except StorageError as e:
                self.set_status(f"Update failed: {e}")
                raise

    def focus_day(self, day_index: int):
        with self.lock:
            return self.map.focus_day(day_index)

    def clear_focus(self) -> None:
        with self.lock:
            self.map.clear_focused_day()

    def select_stop(self, index: int, zoom: Optional[float] = None) -> bool:
        with self.lock:
            return self.map.select_stop(index, zoom=zoom)

    def on_map_loaded(self) -> None:
        """A new map widget finished its first style load: draw everything."""
        with self.lock:
            # A fresh widget starts a new session.
            self.map_error = None
            self.surface.reset()
            self.surface.set_style_loaded(True)
            self.render(fit=True)

    def on_map_ready(self, reset: bool = False) -> None:
        """The map style changed or finished (re)loading."""
        with self.lock:
            self.surface.set_style_loaded(True, reset=reset)
            self.map.on_style_ready()

    def report_map_failure(self, message: str) -> None:
        """The map widget could not load; this lasts for the session."""
        with self.lock:
            self.map_error = message or "Map failed to load."
            logger.error(f"Map failed to load: {self.map_error}")
            self._notify()


__all__ = ["ItineraryController"]
