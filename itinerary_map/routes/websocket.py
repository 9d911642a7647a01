# itinerary_map/routes/websocket.py
"""Socket.IO bridge between the controller and the browser's map widget."""

import logging

from flask import request
from flask_socketio import emit

from itinerary_map.api.config import get_websocket_config

logger = logging.getLogger(__name__)

NAMESPACE = get_websocket_config()["namespace"]


class MapSocketHandler:
    """Streams drawing commands and state to the page; receives map events.

    Server -> client: ``map_command`` (one drawing call), ``state``.
    Client -> server: ``style_loaded``, ``styledata``, ``map_error``.
    """

    def __init__(self, socketio, controller, namespace=NAMESPACE):
        self.socketio = socketio
        self.controller = controller
        self.namespace = namespace

    def emit_to_clients(self, event, data):
        """Broadcast to every page on the namespace."""
        try:
            self.socketio.emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to emit {event}: {e}")

    def log_event(self, event_name, data=None):
        sid = getattr(request, "sid", "?")
        if data:
            logger.info(f"[WS] {event_name} - Client: {sid}, Data: {data}")
        else:
            logger.info(f"[WS] {event_name} - Client: {sid}")

    def wire(self):
        """Route drawing commands and re-renders out through the socket."""
        surface = self.controller.surface
        if hasattr(surface, "set_emitter"):
            surface.set_emitter(lambda command: self.emit_to_clients("map_command", command))
        self.controller.subscribe(lambda snapshot: self.emit_to_clients("state", snapshot))

    def register_handlers(self):
        """Register map-related event handlers."""

        @self.socketio.on("connect", namespace=self.namespace)
        def handle_connect(auth=None):
            self.log_event("connect")
            emit("state", self.controller.snapshot(), namespace=self.namespace)

        @self.socketio.on("disconnect", namespace=self.namespace)
        def handle_disconnect(*args):
            self.log_event("disconnect")

        @self.socketio.on("style_loaded", namespace=self.namespace)
        def handle_style_loaded(data=None):
            """A fresh style: custom sources and layers must be re-created."""
            self.log_event("style_loaded")
            # New page, new map: rebuild the markers too.
            self.controller.on_map_loaded()

        @self.socketio.on("styledata", namespace=self.namespace)
        def handle_styledata(data=None):
            data = data or {}
            if not data.get("loaded", True):
                return
            self.controller.on_map_ready(reset=bool(data.get("reset")))

        @self.socketio.on("map_error", namespace=self.namespace)
        def handle_map_error(data=None):
            message = (data or {}).get("message") or "Map failed to load."
            self.log_event("map_error", {"message": message})
            self.controller.report_map_failure(message)


def register_websocket_handlers(socketio, controller):
    """Register all WebSocket event handlers with SocketIO.

    Args:
        socketio: Flask-SocketIO instance
        controller: The ItineraryController to bridge
    """
    logger.info(f"Registering map socket handlers for namespace: {NAMESPACE}")
    handler = MapSocketHandler(socketio, controller, NAMESPACE)
    handler.wire()
    handler.register_handlers()
    return handler


__all__ = ["register_websocket_handlers", "MapSocketHandler", "NAMESPACE"]
