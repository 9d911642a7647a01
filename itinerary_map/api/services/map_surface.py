# itinerary_map/api/services/map_surface.py
"""Drawing contract between the itinerary core and the map widget.

The core never talks to the map library directly. ``MapSurface`` lists the
calls it needs; ``CommandMapSurface`` turns each call into a small JSON
command that the browser applies to MapLibre.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Set

from itinerary_map.api.models import Position

logger = logging.getLogger(__name__)


class MapSurfaceError(Exception):
    """The map widget rejected a drawing call."""


class MapSurface(ABC):
    """Operations the map widget must support."""

    def set_style_loaded(self, loaded: bool, reset: bool = False) -> None:
        """Readiness notification from the widget; ``reset`` means custom layers were dropped."""

    def reset(self) -> None:
        """The widget was recreated and holds no overlays."""

    @abstractmethod
    def is_style_loaded(self) -> bool:
        ...

    @abstractmethod
    def add_marker(self, marker_id: str, position: Position, element: Dict[str, Any],
                   popup_html: Optional[str] = None) -> None:
        ...

    @abstractmethod
    def remove_marker(self, marker_id: str) -> None:
        ...

    @abstractmethod
    def toggle_marker_class(self, marker_id: str, class_name: str, enabled: bool) -> None:
        ...

    @abstractmethod
    def open_popup(self, marker_id: str) -> None:
        ...

    @abstractmethod
    def close_popup(self) -> None:
        ...

    @abstractmethod
    def has_source(self, source_id: str) -> bool:
        ...

    @abstractmethod
    def add_geojson_source(self, source_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def set_source_data(self, source_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def has_layer(self, layer_id: str) -> bool:
        ...

    @abstractmethod
    def add_line_layer(self, layer_id: str, source_id: str,
                       layout: Dict[str, Any], paint: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def set_layer_visibility(self, layer_id: str, visible: bool) -> None:
        ...

    @abstractmethod
    def fit_bounds(self, bounds: Dict[str, float], padding: int, duration: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def ease_to(self, center: Position, zoom: Optional[float] = None, duration: Optional[int] = None) -> None:
        ...


class CommandMapSurface(MapSurface):
    """Map surface that emits drawing commands through ``emit``.

    It mirrors enough of the widget's state (markers, their classes, custom
    sources and layers, style readiness) to answer the queries in the
    contract without a round trip.
    """

    def __init__(self, emit: Optional[Callable[[Dict[str, Any]], None]] = None):
        self._emit = emit
        self.style_loaded = False
        self.markers: Dict[str, Position] = {}
        self.marker_classes: Dict[str, Set[str]] = {}
        self.sources: Dict[str, Dict[str, Any]] = {}
        self.layers: Dict[str, bool] = {}
        self.open_popup_id: Optional[str] = None

    def set_emitter(self, emit: Callable[[Dict[str, Any]], None]) -> None:
        self._emit = emit

    def _send(self, op: str, **payload) -> None:
        command = {"op": op}
        command.update(payload)
        if self._emit is not None:
            self._emit(command)

    def set_style_loaded(self, loaded: bool, reset: bool = False) -> None:
        """Record a style load; ``reset`` forgets custom sources and layers."""
        self.style_loaded = bool(loaded)
        if reset:
            self.sources.clear()
            self.layers.clear()

    def reset(self):
        self.style_loaded = False
        self.markers.clear()
        self.marker_classes.clear()
        self.sources.clear()
        self.layers.clear()
        self.open_popup_id = None

    def is_style_loaded(self) -> bool:
        return self.style_loaded

    def add_marker(self, marker_id, position, element, popup_html=None):
        self.markers[marker_id] = position
        self.marker_classes[marker_id] = set(element.get("classes", []))
        self._send("add_marker", id=marker_id, position=position.to_dict(), element=element, popup=popup_html)

    def remove_marker(self, marker_id):
        if self.markers.pop(marker_id, None) is None:
            return
        self.marker_classes.pop(marker_id, None)
        if self.open_popup_id == marker_id:
            self.open_popup_id = None
        self._send("remove_marker", id=marker_id)

    def toggle_marker_class(self, marker_id, class_name, enabled):
        classes = self.marker_classes.get(marker_id)
        if classes is None:
            raise MapSurfaceError(f"Unknown marker {marker_id}")
        if enabled:
            classes.add(class_name)
        else:
            classes.discard(class_name)
        self._send("toggle_marker_class", id=marker_id, className=class_name, enabled=bool(enabled))

    def open_popup(self, marker_id):
        if marker_id not in self.markers:
            raise MapSurfaceError(f"Unknown marker {marker_id}")
        if self.open_popup_id == marker_id:
            return
        self.open_popup_id = marker_id
        self._send("open_popup", id=marker_id)

    def close_popup(self):
        if self.open_popup_id is None:
            return
        self.open_popup_id = None
        self._send("close_popup")

    def has_source(self, source_id):
        return source_id in self.sources

    def add_geojson_source(self, source_id, data):
        if not self.style_loaded:
            raise MapSurfaceError("Style not loaded")
        self.sources[source_id] = data
        self._send("add_source", id=source_id, data=data)

    def set_source_data(self, source_id, data):
        if source_id not in self.sources:
            raise MapSurfaceError(f"Unknown source {source_id}")
        self.sources[source_id] = data
        self._send("set_source_data", id=source_id, data=data)

    def has_layer(self, layer_id):
        return layer_id in self.layers

    def add_line_layer(self, layer_id, source_id, layout, paint):
        if source_id not in self.sources:
            raise MapSurfaceError(f"Unknown source {source_id}")
        self.layers[layer_id] = layout.get("visibility", "visible") == "visible"
        self._send("add_layer", id=layer_id, source=source_id, type="line", layout=layout, paint=paint)

    def set_layer_visibility(self, layer_id, visible):
        if layer_id not in self.layers:
            raise MapSurfaceError(f"Unknown layer {layer_id}")
        self.layers[layer_id] = bool(visible)
        self._send("set_layer_visibility", id=layer_id, visible=bool(visible))

    def fit_bounds(self, bounds, padding, duration=None):
        self._send("fit_bounds", bounds=bounds, padding=padding, duration=duration)

    def ease_to(self, center, zoom=None, duration=None):
        self._send("ease_to", center=center.to_dict(), zoom=zoom, duration=duration)


__all__ = ["MapSurface", "CommandMapSurface", "MapSurfaceError"]
