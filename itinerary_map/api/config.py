# itinerary_map/api/config.py
"""Configuration management for the itinerary map."""
import os
from dotenv import load_dotenv

load_dotenv()

CREDENTIAL_CACHE_KEY = "japan2026-key-v1"


def get_storage_config():
    """Get key/value storage service configuration."""
    timeout = os.getenv("STORAGE_TIMEOUT_SECONDS", "").strip()
    return {
        "api_base": os.getenv("STORAGE_API_BASE", "https://streetbot.fly.dev").rstrip("/"),
        "collection": os.getenv("STORAGE_COLLECTION", "japan2026"),
        "auth_header": os.getenv("STORAGE_AUTH_HEADER", "x-auth"),
        # None leaves timeouts to the storage service
        "timeout": float(timeout) if timeout else None,
        "fetch_attempts": int(os.getenv("STORAGE_FETCH_ATTEMPTS", "3")),
        "retry_backoff": float(os.getenv("STORAGE_RETRY_BACKOFF", "0.5")),
    }


def get_map_config():
    """Get map view configuration."""
    return {
        "style_url": os.getenv("MAP_STYLE_URL", "https://tiles.openfreemap.org/styles/liberty"),
        "default_center": {
            "lat": float(os.getenv("MAP_DEFAULT_LAT", "36.2048")),
            "lng": float(os.getenv("MAP_DEFAULT_LNG", "138.2529")),
        },
        "default_zoom": float(os.getenv("MAP_DEFAULT_ZOOM", "4.6")),
        "stop_zoom": float(os.getenv("MAP_STOP_ZOOM", "10")),
        "focus_padding": int(os.getenv("MAP_FOCUS_PADDING", "70")),
        "overview_padding": int(os.getenv("MAP_OVERVIEW_PADDING", "40")),
        "animation_ms": int(os.getenv("MAP_ANIMATION_MS", "650")),
        "airport_poi_id": os.getenv("AIRPORT_POI_ID", "kix").strip(),
    }


def get_credential_config():
    """Get local credential cache configuration."""
    default_path = os.path.join(os.path.expanduser("~"), ".itinerary_map", "local_state.json")
    return {
        "path": os.getenv("CREDENTIAL_STORE_PATH", default_path),
        "key": CREDENTIAL_CACHE_KEY,
    }


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "language": os.getenv("GOOGLE_MAPS_LANGUAGE", "en"),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))


def get_websocket_config():
    """Get WebSocket configuration."""
    return {
        "namespace": os.getenv("WEBSOCKET_NAMESPACE", "/itinerary/ws"),
        "cors_allowed_origins": os.getenv("WEBSOCKET_CORS_ORIGINS", "*").split(","),
    }
