# itinerary_map/api/search.py
"""Free-text place search used by the add-a-new-POI flow."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

from itinerary_map.api.config import get_google_maps_config

logger = logging.getLogger(__name__)


class SearchCancelled(Exception):
    """A newer search for the same input superseded this one."""


class SearchError(Exception):
    """The search service failed."""


@dataclass(frozen=True)
class SearchResult:
    name: str
    location: str
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"name": self.name, "location": self.location, "lat": self.lat, "lng": self.lng}


class CancelToken:
    """Cooperative cancellation flag for one in-flight search."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class PlaceSearch:
    """Google Places text search with per-field cancellation."""

    def __init__(self, client: Optional[googlemaps.Client] = None):
        self._client = client
        self._tokens: Dict[str, CancelToken] = {}
        self._lock = threading.Lock()

    def _get_client(self) -> googlemaps.Client:
        if self._client is None:
            cfg = get_google_maps_config()
            if not cfg.get("api_key"):
                raise ValueError("GOOGLE_MAPS_API_KEY not set")
            logger.info("Initializing Google Maps client for place search")
            self._client = googlemaps.Client(key=cfg["api_key"])
        return self._client

    def _issue_token(self, field_id: str) -> CancelToken:
        token = CancelToken()
        with self._lock:
            previous = self._tokens.get(field_id)
            if previous is not None:
                previous.cancel()
            self._tokens[field_id] = token
        return token

    def _release_token(self, field_id: str, token: CancelToken) -> None:
        with self._lock:
            if self._tokens.get(field_id) is token:
                del self._tokens[field_id]

    def search(self, field_id: str, query: str) -> List[SearchResult]:
        """Search for ``query`` on behalf of input ``field_id``.

        Raises:
            SearchCancelled: If another search for ``field_id`` started
                while this one was in flight.
        """
        query = (query or "").strip()
        token = self._issue_token(field_id)
        try:
            if not query:
                return []

            try:
                response = self._get_client().places(
                    query=query,
                    language=get_google_maps_config()["language"],
                )
            except (ApiError, TransportError, Timeout) as e:
                logger.error(f"Place search failed for '{query}': {e}")
                raise SearchError(f"Search failed: {e}") from e
            if token.cancelled:
                logger.info(f"Discarding superseded search for '{query}'")
                raise SearchCancelled(query)

            return [r for r in (self._to_result(item) for item in response.get("results", [])) if r]
        finally:
            self._release_token(field_id, token)

    @staticmethod
    def _to_result(item: dict) -> Optional[SearchResult]:
        try:
            loc = item["geometry"]["location"]
            return SearchResult(
                name=str(item.get("name") or "").strip(),
                location=str(item.get("formatted_address") or "").strip(),
                lat=float(loc["lat"]),
                lng=float(loc["lng"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Skipping search result without coordinates: {item.get('name')}")
            return None


__all__ = ["PlaceSearch", "SearchResult", "SearchCancelled", "SearchError", "CancelToken"]
