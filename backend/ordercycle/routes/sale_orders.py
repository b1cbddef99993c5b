# Overview: Flask API routes for customer sale orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import sale_order_service
from ..services.errors import ServiceError
from ..models import ORDER_TYPE_CUSTOMER
from ..validation import ValidationError, coerce_int, optional_datetime, parse_sale_order_items


sale_orders_bp = Blueprint("sale_orders", __name__, url_prefix="/api/sale-orders")


@sale_orders_bp.post("")
def create_sale_order_route():
    """
    Create a sale order.

    Request body:
    {
        "customer_id": 1,                              // required
        "items": [{"product_id": 1, "quantity": 3}],   // required
        "order_type": "customer",                      // optional: customer, staff_proxy
        "created_by": "..."                            // optional
    }

    Status and confirmation_status follow the order cycle; cutoff_status
    follows the cutoff window when a watched-category product is ordered.
    """
    data = request.get_json(silent=True) or {}
    try:
        customer_id = coerce_int(data.get("customer_id"), "customer_id", minimum=1)
        items = parse_sale_order_items(data.get("items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order = sale_order_service.create_sale_order(
            customer_id=customer_id,
            items=items,
            order_type=data.get("order_type") or ORDER_TYPE_CUSTOMER,
            created_by=data.get("created_by"),
        )
        return jsonify(order.to_dict()), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale order")
        return jsonify({"error": "Failed to create sale order"}), 500


@sale_orders_bp.get("")
def list_sale_orders_route():
    """
    Query parameters:
    - status, customer_id, since (ISO-8601), limit (default 100), offset
    """
    status = request.args.get("status")
    customer_id = request.args.get("customer_id", type=int)
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)
    try:
        since = optional_datetime(request.args.get("since"), "since")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    # Clamp limit
    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    orders, total = sale_order_service.list_sale_orders(
        status=status, customer_id=customer_id, since=since, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [o.to_dict(include_lines=False) for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@sale_orders_bp.get("/<string:number>")
def get_sale_order_route(number: str):
    try:
        return jsonify(sale_order_service.get_sale_order(number).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sale_orders_bp.post("/<string:number>/status")
def update_sale_order_status_route(number: str):
    """
    Request body:
    {
        "status": "pended",     // required
        "reason": "..."         // optional, kept for pended
    }
    """
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if not new_status:
        return jsonify({"error": "status is required"}), 400

    try:
        order = sale_order_service.update_status(number, new_status, reason=data.get("reason"))
        return jsonify(order.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale order %s", number)
        return jsonify({"error": "Failed to update sale order"}), 500


@sale_orders_bp.delete("/<string:number>")
def delete_sale_order_route(number: str):
    try:
        sale_order_service.delete_sale_order(number)
        return jsonify({"deleted": number})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale order %s", number)
        return jsonify({"error": "Failed to delete sale order"}), 500
