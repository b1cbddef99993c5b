# Overview: Strict parsing helpers for JSON payload values; raise ValidationError (400).

from __future__ import annotations

from datetime import datetime
from typing import Any

from ordercycle.time_utils import parse_iso_datetime


# Largest amount or quantity accepted from clients
MAX_INT_VALUE = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion for JSON payload values.

    Accepts ints and plain digit strings; rejects bools, floats, decimals
    and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if abs(result) > MAX_INT_VALUE:
        raise ValidationError(f"{field} is too large")
    return result


def optional_int(value: Any, field: str, *, minimum: int | None = None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(value, field, minimum=minimum)


def require_str(payload: dict, field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    dt = parse_iso_datetime(value)
    if dt is None:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    return dt


def parse_sale_order_items(raw: Any) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    items = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        items.append({
            "product_id": coerce_int(item.get("product_id"), f"items[{index}].product_id", minimum=1),
            "quantity": coerce_int(item.get("quantity"), f"items[{index}].quantity", minimum=1),
        })
    return items


def parse_inbound_items(raw: Any) -> list[dict]:
    """
    Received items for inbound reconciliation. Quantity sign and price
    positivity are left to the service so it can answer with its own codes.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    items = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        items.append({
            "product_id": coerce_int(item.get("product_id"), f"items[{index}].product_id", minimum=1),
            "received_quantity": coerce_int(item.get("received_quantity"), f"items[{index}].received_quantity"),
            "inbound_unit_price": optional_int(item.get("inbound_unit_price"), f"items[{index}].inbound_unit_price"),
            "ordered_unit_price": optional_int(item.get("ordered_unit_price"), f"items[{index}].ordered_unit_price"),
        })
    return items
