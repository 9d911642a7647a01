"""
Itinerary map – main application entry point

* Flask app + Socket.IO. The browser page is a thin MapLibre shell: it
  applies the drawing commands pushed over `/itinerary/ws` and calls the JSON
  API under `/itinerary/api/` for every edit.
* One ItineraryController per process owns the itinerary state.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from itinerary_map.api.config import get_port, get_websocket_config  # noqa: E402
from itinerary_map.api.controller import ItineraryController  # noqa: E402
from itinerary_map.routes import create_itinerary_blueprint, register_websocket_handlers  # noqa: E402


def create_app(controller=None):
    """Build the Flask app, its Socket.IO server and the controller.

    Returns:
        Tuple of (app, socketio, controller)
    """
    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*", supports_credentials=True)

    ws_config = get_websocket_config()
    socketio = SocketIO(
        app,
        cors_allowed_origins=ws_config["cors_allowed_origins"],
        async_mode="threading",
        logger=False,
        engineio_logger=False,
    )
    logger.info("Socket.IO initialised (async_mode=threading)")

    controller = controller or ItineraryController()

    base_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "itinerary_map")
    app.register_blueprint(create_itinerary_blueprint(base_dir, controller))
    register_websocket_handlers(socketio, controller)

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "socketio_initialized": True,
            "endpoints": {
                "map": "/itinerary/",
                "state": "/itinerary/api/state",
                "websocket_namespace": ws_config["namespace"],
            },
        }

    return app, socketio, controller


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    app, socketio, controller = create_app()
    controller.refresh(reason="initial load")
    port = get_port()
    logger.info("Starting itinerary map on http://localhost:%d/itinerary/", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)
