# Overview: Flask API routes for supplier payable accounts and payments.

from flask import Blueprint, current_app, jsonify, request

from ..services import supplier_account_service
from ..services.errors import ServiceError
from ..validation import ValidationError, coerce_int, optional_datetime, require_str


supplier_accounts_bp = Blueprint("supplier_accounts", __name__, url_prefix="/api/supplier-accounts")


@supplier_accounts_bp.get("")
def list_supplier_accounts_route():
    """
    Query parameters:
    - with_balance: "true" to hide settled accounts
    """
    with_balance = request.args.get("with_balance", "").lower() in ("1", "true", "yes")
    accounts = supplier_account_service.list_supplier_accounts(with_balance_only=with_balance)
    return jsonify({
        "items": [a.to_dict() for a in accounts],
        "count": len(accounts),
    })


@supplier_accounts_bp.get("/<int:supplier_id>")
def get_supplier_account_route(supplier_id: int):
    try:
        account = supplier_account_service.get_supplier_account(supplier_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code

    payments, _ = supplier_account_service.list_payments(supplier_id=supplier_id, limit=20)
    payload = account.to_dict()
    payload["recent_payments"] = [p.to_dict() for p in payments]
    return jsonify(payload)


@supplier_accounts_bp.post("/<int:supplier_id>/payments")
def record_payment_route(supplier_id: int):
    """
    Record a payment to a supplier.

    Request body:
    {
        "amount": 50000,               // required, positive
        "payment_method": "transfer",  // required: cash, transfer, card, other
        "processed_by": "...",         // required
        "paid_at": "...",              // optional, ISO-8601
        "notes": "..."                 // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        amount = coerce_int(data.get("amount"), "amount", minimum=1)
        payment_method = require_str(data, "payment_method")
        processed_by = require_str(data, "processed_by")
        paid_at = optional_datetime(data.get("paid_at"), "paid_at")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        payment = supplier_account_service.record_payment(
            supplier_id=supplier_id,
            amount=amount,
            payment_method=payment_method,
            processed_by=processed_by,
            paid_at=paid_at,
            notes=data.get("notes"),
        )
        account = supplier_account_service.get_supplier_account(supplier_id)
        return jsonify({"payment": payment.to_dict(), "account": account.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment for supplier %s", supplier_id)
        return jsonify({"error": "Failed to record payment"}), 500
