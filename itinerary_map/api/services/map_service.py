# itinerary_map/api/services/map_service.py
"""Service layer for map overlays, focus highlighting and the transit route."""

import logging
from typing import Any, Dict, Optional, Set

from markupsafe import escape

from itinerary_map.api.config import get_map_config
from itinerary_map.api.models import ItineraryState, Poi, Stop, TransitLeg
from itinerary_map.api.services.focus_service import DayFocusService
from itinerary_map.api.services.map_surface import MapSurface, MapSurfaceError

logger = logging.getLogger(__name__)

TRANSIT_ROUTE_SOURCE_ID = "itinerary-transit-route"
TRANSIT_ROUTE_LAYER_ID = "itinerary-transit-route-line"
HIGHLIGHT_CLASS = "is-highlight"

EMPTY_FEATURES = {"type": "FeatureCollection", "features": []}


def stop_marker_id(stop_id: str) -> str:
    return f"stop:{stop_id}"


def poi_marker_id(poi_id: str) -> str:
    return f"poi:{poi_id}"


def route_geojson(transit: TransitLeg) -> Dict[str, Any]:
    """Two-point line between the leg's endpoints."""
    start = transit.origin.position
    end = transit.destination.position
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[start.lng, start.lat], [end.lng, end.lat]],
                },
            }
        ],
    }


class MapService:
    """Projects the itinerary state onto a ``MapSurface``.

    Every call that touches the route layer first checks that the map style
    is loaded and quietly does nothing otherwise; ``on_style_ready`` replays
    the current focus once the style arrives.
    """

    def __init__(self, surface: MapSurface, state: ItineraryState,
                 focus_service: Optional[DayFocusService] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.surface = surface
        self.state = state
        self.focus = focus_service or DayFocusService(state)
        self.config = config or get_map_config()
        self.stop_markers: Dict[str, str] = {}
        self.poi_markers: Dict[str, str] = {}

    # ------------------------------------------------------------------ #
    # Overlays
    # ------------------------------------------------------------------ #
    def initial_view(self) -> Dict[str, Any]:
        """Camera for a freshly built map: first stop, or the default center."""
        if self.state.stops:
            return {
                "center": self.state.stops[0].position.to_dict(),
                "zoom": self.config["stop_zoom"],
            }
        return {"center": dict(self.config["default_center"]), "zoom": self.config["default_zoom"]}

    def clear_overlays(self) -> None:
        self.surface.close_popup()
        for marker_id in list(self.stop_markers.values()) + list(self.poi_markers.values()):
            self.surface.remove_marker(marker_id)
        self.stop_markers = {}
        self.poi_markers = {}

    def render_overlays(self, fit: bool = True) -> None:
        """Rebuild every marker from the current state and replay focus."""
        self.clear_overlays()
        planned = self.state.planned

        for idx, stop in enumerate(self.state.stops):
            marker_id = stop_marker_id(stop.id)
            element = {
                "kind": "stop",
                "label": str(idx + 1),
                "badge": planned.stop_badge(stop.id),
                "classes": [],
            }
            self.surface.add_marker(marker_id, stop.position, element, self.stop_popup_html(idx, stop))
            self.stop_markers[stop.id] = marker_id

        for poi in self.state.pois.values():
            marker_id = poi_marker_id(poi.id)
            element = {
                "kind": "poi",
                "label": "•",
                "badge": planned.poi_badge(poi.id),
                "classes": [],
            }
            self.surface.add_marker(marker_id, poi.position, element, self.poi_popup_html(poi))
            self.poi_markers[poi.id] = marker_id

        logger.debug(f"Rendered {len(self.stop_markers)} stop and {len(self.poi_markers)} POI markers")

        if fit:
            points = [s.position for s in self.state.stops] + [p.position for p in self.state.pois.values()]
            bounds = DayFocusService.calculate_bounds(points)
            if bounds:
                self.surface.fit_bounds(bounds, padding=self.config["overview_padding"])

        self.ensure_transit_layer()
        self.reapply_focus()

    def stop_popup_html(self, index: int, stop: Stop) -> str:
        return (
            '<div class="popup popup-stop">'
            f'<div class="popup-title">{index + 1}. {escape(stop.name)}</div>'
            f'<div class="popup-dates">{escape(stop.dates)}</div>'
            f'<div class="popup-details">{escape(stop.city)} • {escape(stop.details)}</div>'
            "</div>"
        )

    def poi_popup_html(self, poi: Poi) -> str:
        planned = self.state.planned.poi_badge(poi.id)
        planned_html = f'<div class="popup-planned">Planned: {escape(planned)}</div>' if planned else ""
        return (
            f'<div class="popup popup-poi" data-poi-id="{escape(poi.id)}">'
            f'<div class="popup-title">{escape(poi.name)}</div>'
            f"{planned_html}"
            f'<div class="popup-location">{escape(poi.location)}</div>'
            f'<div class="popup-details">{escape(poi.details)}</div>'
            "</div>"
        )

    def select_stop(self, index: int, zoom: Optional[float] = None, open_popup: bool = True) -> bool:
        """Ease to the stop at ``index`` and optionally open its popup."""
        if index < 0 or index >= len(self.state.stops):
            return False
        stop = self.state.stops[index]
        self.surface.ease_to(stop.position, zoom=zoom, duration=self.config["animation_ms"])

        marker_id = self.stop_markers.get(stop.id)
        if open_popup and marker_id is not None:
            try:
                self.surface.open_popup(marker_id)
            except MapSurfaceError as e:
                logger.warning(f"Could not open popup for stop {stop.id}: {e}")
        return True

    # ------------------------------------------------------------------ #
    # Focus
    # ------------------------------------------------------------------ #
    def focus_day(self, day_index: int) -> Optional[Dict[str, float]]:
        """Highlight the day and frame its focus points.

        Returns:
            The bounds the viewport was fitted to, or None when the day has
            no resolvable points.
        """
        if self.state.get_day(day_index) is None:
            return None

        transit = self.set_focused_day(day_index)
        points = self.focus.get_day_focus_points(day_index, transit)
        bounds = DayFocusService.calculate_bounds(points)
        if bounds is None:
            logger.info(f"Day {day_index} has no resolvable places to frame")
            return None

        self.surface.fit_bounds(bounds, padding=self.config["focus_padding"],
                                duration=self.config["animation_ms"])
        return bounds

    def set_focused_day(self, day_index: int) -> Optional[TransitLeg]:
        if self.state.get_day(day_index) is None:
            self.clear_focused_day()
            return None

        self.state.focused_day_index = day_index
        transit = self.focus.get_transit_leg_for_day(day_index)
        stop_ids, poi_ids = self.focus.highlight_sets(day_index, transit)
        self.apply_marker_highlight(stop_ids, poi_ids)
        self.apply_transit_route(transit)
        return transit

    def clear_focused_day(self) -> None:
        self.state.focused_day_index = None
        self.apply_marker_highlight(set(), set())
        self.apply_transit_route(None)

    def reapply_focus(self) -> None:
        if self.state.focused_day_index is None:
            self.apply_transit_route(None)
            return
        self.set_focused_day(self.state.focused_day_index)

    def on_style_ready(self) -> None:
        """Style loaded or changed: custom layers may be gone, so rebuild."""
        self.ensure_transit_layer()
        self.reapply_focus()

    def apply_marker_highlight(self, stop_ids: Set[str], poi_ids: Set[str]) -> None:
        """Set the highlight class on every marker; not a diff."""
        for stop_id, marker_id in self.stop_markers.items():
            self.surface.toggle_marker_class(marker_id, HIGHLIGHT_CLASS, stop_id in stop_ids)
        for poi_id, marker_id in self.poi_markers.items():
            self.surface.toggle_marker_class(marker_id, HIGHLIGHT_CLASS, poi_id in poi_ids)

    # ------------------------------------------------------------------ #
    # Transit route layer
    # ------------------------------------------------------------------ #
    def ensure_transit_layer(self) -> bool:
        if not self.surface.is_style_loaded():
            return False
        try:
            if not self.surface.has_source(TRANSIT_ROUTE_SOURCE_ID):
                self.surface.add_geojson_source(TRANSIT_ROUTE_SOURCE_ID, EMPTY_FEATURES)
            if not self.surface.has_layer(TRANSIT_ROUTE_LAYER_ID):
                self.surface.add_line_layer(
                    TRANSIT_ROUTE_LAYER_ID,
                    TRANSIT_ROUTE_SOURCE_ID,
                    layout={"line-cap": "round", "line-join": "round", "visibility": "none"},
                    paint={"line-color": "#333", "line-width": 4, "line-opacity": 0.75},
                )
        except MapSurfaceError as e:
            logger.debug(f"Transit layer not ready yet: {e}")
            return False
        return True

    def apply_transit_route(self, transit: Optional[TransitLeg]) -> bool:
        """Draw or hide the route line.

        Returns False without touching the map when the style is not
        loaded; the caller replays it from ``on_style_ready``.
        """
        if not self.ensure_transit_layer():
            return False
        try:
            if transit is None:
                self.surface.set_source_data(TRANSIT_ROUTE_SOURCE_ID, EMPTY_FEATURES)
                self.surface.set_layer_visibility(TRANSIT_ROUTE_LAYER_ID, False)
            else:
                self.surface.set_source_data(TRANSIT_ROUTE_SOURCE_ID, route_geojson(transit))
                self.surface.set_layer_visibility(TRANSIT_ROUTE_LAYER_ID, True)
        except MapSurfaceError as e:
            logger.debug(f"Transit route not applied: {e}")
            return False
        return True

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges."""
        return -90 <= lat <= 90 and -180 <= lng <= 180


__all__ = ["MapService", "TRANSIT_ROUTE_SOURCE_ID", "TRANSIT_ROUTE_LAYER_ID", "HIGHLIGHT_CLASS"]
