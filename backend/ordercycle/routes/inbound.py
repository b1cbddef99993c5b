# Overview: Flask API routes for inbound reconciliation and purchase ledgers; parses input and returns JSON responses.

"""
Inbound Routes

POST /api/inbound/<number>/complete is the only way a purchase order
becomes completed. Ledgers are read-only once written.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import inbound_service
from ..services.errors import ServiceError
from ..validation import ValidationError, optional_datetime, parse_inbound_items, require_str


inbound_bp = Blueprint("inbound", __name__, url_prefix="/api/inbound")


@inbound_bp.get("/pending")
def list_pending_inbound_route():
    """
    Confirmed purchase orders waiting to be received.

    Query parameters:
    - since: ISO-8601 (default: the cycle's reset_at)
    - category
    """
    try:
        since = optional_datetime(request.args.get("since"), "since")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    orders = inbound_service.list_pending_inbound(since=since, category=request.args.get("category") or None)
    return jsonify({
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
    })


@inbound_bp.post("/<string:number>/complete")
def complete_inbound_route(number: str):
    """
    Reconcile a delivery.

    Request body:
    {
        "received_by": "clerk-lee",   // required
        "items": [
            {"product_id": 1, "received_quantity": 5, "inbound_unit_price": 100}
        ],                            // required; inbound_unit_price optional
        "notes": "..."                // optional
    }

    Returns:
        Created PurchaseLedger with lines (201)
    """
    data = request.get_json(silent=True) or {}
    try:
        received_by = require_str(data, "received_by")
        items = parse_inbound_items(data.get("items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        ledger = inbound_service.complete_inbound(number, items, received_by, notes=data.get("notes"))
        return jsonify(ledger.to_dict()), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete inbound for %s", number)
        return jsonify({"error": "Failed to complete inbound"}), 500


@inbound_bp.get("/ledgers")
def list_purchase_ledgers_route():
    supplier_id = request.args.get("supplier_id", type=int)
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))
    offset = max(0, request.args.get("offset", 0, type=int))

    ledgers, total = inbound_service.list_purchase_ledgers(supplier_id=supplier_id, limit=limit, offset=offset)
    return jsonify({
        "items": [l.to_dict(include_lines=False) for l in ledgers],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@inbound_bp.get("/ledgers/<string:number>")
def get_purchase_ledger_route(number: str):
    try:
        return jsonify(inbound_service.get_purchase_ledger(number).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
