# Overview: Flask API routes for read-only demand aggregation of the current cycle.

from flask import Blueprint, jsonify, request

from ..services import aggregation_service
from ..validation import ValidationError, optional_datetime


aggregation_bp = Blueprint("aggregation", __name__, url_prefix="/api/aggregation")


@aggregation_bp.get("")
def get_aggregation_route():
    """
    Aggregate active sale orders.

    Query parameters:
    - since: lower bound (ISO-8601); defaults to the cycle's reset_at
    - category: restrict to one category
    """
    try:
        since = optional_datetime(request.args.get("since"), "since")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    summary = aggregation_service.aggregate_active_orders(
        since=since, category=request.args.get("category") or None,
    )
    return jsonify(summary.to_dict())


@aggregation_bp.get("/products/<int:product_id>")
def get_product_orders_route(product_id: int):
    try:
        since = optional_datetime(request.args.get("since"), "since")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(aggregation_service.get_product_order_details(product_id, since=since))
