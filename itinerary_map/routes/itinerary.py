# itinerary_map/routes/itinerary.py
"""Itinerary routes and blueprint configuration."""

import logging
import os

from flask import Blueprint, jsonify, render_template, request

from itinerary_map.api.config import get_map_config, get_websocket_config
from itinerary_map.api.search import SearchCancelled, SearchError, SearchResult
from itinerary_map.api.services.map_service import TRANSIT_ROUTE_LAYER_ID
from itinerary_map.api.storage import StorageError

logger = logging.getLogger(__name__)


def _json_body():
    return request.get_json(silent=True) or {}


def create_itinerary_blueprint(base_dir, controller):
    """Create and configure the itinerary blueprint.

    Args:
        base_dir: Absolute path to the package directory
        controller: The ItineraryController that owns the itinerary state

    Returns:
        Configured Flask Blueprint
    """
    itinerary_bp = Blueprint(
        "itinerary",
        __name__,
        template_folder=os.path.join(base_dir, "templates"),
        url_prefix="/itinerary",
    )

    @itinerary_bp.errorhandler(StorageError)
    def storage_failed(e):
        return jsonify({"error": str(e), "status": controller.status}), 502

    @itinerary_bp.errorhandler(SearchError)
    def search_failed(e):
        return jsonify({"error": str(e)}), 502

    @itinerary_bp.errorhandler(ValueError)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    def state_response(changed=None):
        payload = controller.snapshot()
        if changed is not None:
            payload["changed"] = bool(changed)
        return jsonify(payload)

    @itinerary_bp.route("/")
    def index():
        """Map page."""
        return render_template("map.html")

    @itinerary_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "itinerary"})

    @itinerary_bp.route("/api/config")
    def api_config():
        """Map settings the page needs before the first state arrives."""
        cfg = get_map_config()
        return jsonify({
            "style_url": cfg["style_url"],
            "view": controller.map.initial_view(),
            "namespace": get_websocket_config()["namespace"],
            "route_layer_id": TRANSIT_ROUTE_LAYER_ID,
        })

    @itinerary_bp.route("/api/state")
    def api_state():
        return state_response()

    @itinerary_bp.route("/api/refresh", methods=["POST"])
    def api_refresh():
        reason = _json_body().get("reason") or "manual refresh"
        controller.refresh(reason=reason)
        return state_response()

    @itinerary_bp.route("/api/auth", methods=["POST"])
    def api_auth():
        changed = controller.set_credential(_json_body().get("key", ""))
        return state_response(changed)

    @itinerary_bp.route("/api/days/<int:day_index>/pois", methods=["POST"])
    def api_add_poi(day_index):
        data = _json_body()
        if data.get("poi_id"):
            changed = controller.mutate(controller.itinerary.add_poi_to_day, day_index, data["poi_id"])
        else:
            changed = controller.mutate(controller.itinerary.quick_add, day_index, data.get("text", ""))
        return state_response(changed)

    @itinerary_bp.route("/api/days/<int:day_index>/pois/<poi_id>", methods=["DELETE"])
    def api_remove_poi(day_index, poi_id):
        changed = controller.mutate(controller.itinerary.remove_poi_from_day, day_index, poi_id)
        return state_response(changed)

    @itinerary_bp.route("/api/days/<int:day_index>/summary", methods=["PUT"])
    def api_day_summary(day_index):
        data = _json_body()
        changed = controller.mutate(
            controller.itinerary.edit_day_summary,
            day_index,
            data.get("summary", ""),
            data.get("original"),
        )
        return state_response(changed)

    @itinerary_bp.route("/api/days/<int:day_index>/suggest")
    def api_suggest(day_index):
        matches = controller.itinerary.suggest_pois(request.args.get("q", ""), day_index=day_index)
        return jsonify({"matches": matches})

    @itinerary_bp.route("/api/pois/<poi_id>", methods=["PATCH"])
    def api_update_poi(poi_id):
        data = _json_body()
        changed = controller.mutate(
            controller.itinerary.update_poi,
            poi_id,
            name=data.get("name"),
            details=data.get("details"),
            location=data.get("location"),
            lat=data.get("lat"),
            lng=data.get("lng"),
        )
        return state_response(changed)

    @itinerary_bp.route("/api/pois/<poi_id>/days", methods=["PUT"])
    def api_poi_days(poi_id):
        raw = _json_body().get("days")
        if not isinstance(raw, list):
            raise ValueError("'days' must be a list of day indexes")
        try:
            indices = [int(i) for i in raw]
        except (TypeError, ValueError):
            raise ValueError("'days' must be a list of day indexes")
        changed = controller.mutate(controller.itinerary.set_poi_days, poi_id, indices)
        return state_response(changed)

    @itinerary_bp.route("/api/pois", methods=["POST"])
    def api_create_poi():
        data = _json_body()
        try:
            result = SearchResult(
                name=str(data.get("name") or ""),
                location=str(data.get("location") or ""),
                lat=float(data["lat"]),
                lng=float(data["lng"]),
            )
        except (KeyError, TypeError, ValueError):
            raise ValueError("A search result needs name, lat and lng")
        day_index = data.get("day_index")
        poi = controller.mutate(
            controller.itinerary.create_poi_from_search,
            result,
            int(day_index) if day_index is not None else None,
        )
        payload = controller.snapshot()
        payload["created"] = poi.to_dict()
        return jsonify(payload), 201

    @itinerary_bp.route("/api/search")
    def api_search():
        query = request.args.get("q", "")
        field_id = request.args.get("field", "default")
        try:
            results = controller.search.search(field_id, query)
        except SearchCancelled:
            return jsonify({"cancelled": True, "results": []})
        return jsonify({"cancelled": False, "results": [r.to_dict() for r in results]})

    @itinerary_bp.route("/api/focus/<int:day_index>", methods=["POST"])
    def api_focus(day_index):
        if controller.state.get_day(day_index) is None:
            return jsonify({"error": f"No day {day_index}"}), 404
        bounds = controller.focus_day(day_index)
        payload = controller.snapshot()
        payload["bounds"] = bounds
        return jsonify(payload)

    @itinerary_bp.route("/api/focus", methods=["DELETE"])
    def api_clear_focus():
        controller.clear_focus()
        return state_response()

    @itinerary_bp.route("/api/stops/<int:stop_index>/select", methods=["POST"])
    def api_select_stop(stop_index):
        zoom = _json_body().get("zoom")
        if not controller.select_stop(stop_index, zoom=float(zoom) if zoom is not None else None):
            return jsonify({"error": f"No stop {stop_index}"}), 404
        return state_response()

    return itinerary_bp


__all__ = ["create_itinerary_blueprint"]
