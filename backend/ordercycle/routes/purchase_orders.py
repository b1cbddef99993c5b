# Overview: Flask API routes for supplier purchase orders; listing, messaging, status and line edits.

from flask import Blueprint, current_app, jsonify, request

from ..services import notification_service, purchase_order_service
from ..services.errors import ServiceError
from ..validation import ValidationError, coerce_int, optional_datetime


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
def list_purchase_orders_route():
    """
    Query parameters:
    - status, category, supplier_id, since (ISO-8601), limit (default 100), offset
    """
    status = request.args.get("status")
    category = request.args.get("category")
    supplier_id = request.args.get("supplier_id", type=int)
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)
    try:
        since = optional_datetime(request.args.get("since"), "since")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    # Clamp limit
    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    orders, total = purchase_order_service.list_purchase_orders(
        status=status, category=category, supplier_id=supplier_id, since=since,
        limit=limit, offset=offset,
    )
    return jsonify({
        "items": [o.to_dict(include_lines=False) for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.get("/<string:number>")
def get_purchase_order_route(number: str):
    try:
        return jsonify(purchase_order_service.get_purchase_order(number).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/send-sms")
def send_purchase_order_messages_route():
    """
    Message the suppliers of the given purchase orders.

    Request body:
    {
        "purchase_order_numbers": ["PO-260301-001"],   // required
        "promote": true        // optional: confirm orders whose messages all went through
    }
    """
    data = request.get_json(silent=True) or {}
    numbers = data.get("purchase_order_numbers")
    if not isinstance(numbers, list) or not numbers or not all(isinstance(n, str) and n for n in numbers):
        return jsonify({"error": "purchase_order_numbers must be a non-empty list of strings"}), 400

    try:
        batch = notification_service.send_batch(numbers)
        payload = batch.to_dict()
        if data.get("promote", True):
            promotions = purchase_order_service.promote_notified(batch.results)
            payload["promotions"] = [p.to_dict() for p in promotions]
        return jsonify(payload)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send purchase order messages")
        return jsonify({"error": "Failed to send purchase order messages"}), 500


@purchase_orders_bp.post("/<string:number>/status")
def update_purchase_order_status_route(number: str):
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if not new_status:
        return jsonify({"error": "status is required"}), 400

    try:
        purchase_order = purchase_order_service.update_status(number, new_status)
        return jsonify(purchase_order.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase order %s", number)
        return jsonify({"error": "Failed to update purchase order"}), 500


@purchase_orders_bp.patch("/<string:number>/lines/<int:product_id>")
def update_purchase_order_line_route(number: str, product_id: int):
    """
    Request body:
    {
        "quantity": 12   // required, at least 1
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        quantity = coerce_int(data.get("quantity"), "quantity", minimum=1)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        purchase_order = purchase_order_service.update_line_quantity(number, product_id, quantity)
        return jsonify(purchase_order.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase order line %s/%s", number, product_id)
        return jsonify({"error": "Failed to update purchase order line"}), 500
