# Overview: Flask API routes for the daily order cycle (status, confirm, reset).

from flask import Blueprint, current_app, jsonify, request

from ..services import cycle_service
from ..services.errors import ServiceError
from ..validation import ValidationError, require_str


cycle_bp = Blueprint("cycle", __name__, url_prefix="/api/cycle")


@cycle_bp.get("")
def get_cycle_route():
    return jsonify(cycle_service.get_status().to_dict())


@cycle_bp.post("/confirm")
def confirm_cycle_route():
    """
    Confirm the current cycle.

    Request body:
    {
        "actor": "manager-kim"   // required
    }

    Purchase order generation failures are reported in the body
    (generation_results / generation_error); the confirmation itself
    still succeeds.
    """
    data = request.get_json(silent=True) or {}
    try:
        actor = require_str(data, "actor")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = cycle_service.confirm(actor)
        return jsonify(result.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to confirm order cycle")
        return jsonify({"error": "Failed to confirm order cycle"}), 500


@cycle_bp.post("/reset")
def reset_cycle_route():
    try:
        status = cycle_service.reset()
        return jsonify(status.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reset order cycle")
        return jsonify({"error": "Failed to reset order cycle"}), 500
