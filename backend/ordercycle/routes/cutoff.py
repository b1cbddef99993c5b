# Overview: Flask API routes for the watched-category cutoff window; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import cutoff_service
from ..services.errors import ServiceError
from ..validation import ValidationError, require_str


cutoff_bp = Blueprint("cutoff", __name__, url_prefix="/api/cutoff")


@cutoff_bp.get("")
def get_cutoff_route():
    """Current window state."""
    return jsonify(cutoff_service.get_info().to_dict())


@cutoff_bp.post("/open")
def open_cutoff_route():
    try:
        info = cutoff_service.open_window()
        return jsonify(info.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open cutoff window")
        return jsonify({"error": "Failed to open cutoff window"}), 500


@cutoff_bp.post("/close")
def close_cutoff_route():
    """
    Close the window, generate purchase orders and message suppliers.

    Request body:
    {
        "actor": "manager-kim"   // required
    }

    Returns:
        {aggregated_order_count, purchase_order_numbers, generation_results,
         notification, promotions, cutoff}
    """
    data = request.get_json(silent=True) or {}
    try:
        actor = require_str(data, "actor")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = cutoff_service.close_window(actor)
        payload = result.to_dict()
        payload["cutoff"] = cutoff_service.get_info().to_dict()
        return jsonify(payload)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close cutoff window")
        return jsonify({"error": "Failed to close cutoff window"}), 500


@cutoff_bp.post("/close-only")
def close_only_cutoff_route():
    """Close the window without aggregating."""
    data = request.get_json(silent=True) or {}
    try:
        actor = require_str(data, "actor")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        info = cutoff_service.close_only(actor)
        return jsonify(info.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close cutoff window")
        return jsonify({"error": "Failed to close cutoff window"}), 500
