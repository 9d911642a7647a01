# itinerary_map/routes/__init__.py
"""HTTP and Socket.IO surfaces of the itinerary map."""

from itinerary_map.routes.itinerary import create_itinerary_blueprint
from itinerary_map.routes.websocket import NAMESPACE, register_websocket_handlers

__all__ = ["create_itinerary_blueprint", "register_websocket_handlers", "NAMESPACE"]
