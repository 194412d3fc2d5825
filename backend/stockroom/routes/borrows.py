# Overview: Flask API routes for loaned stock.

"""
Borrow routes.

Lifecycle: borrowed -> returned (stock restored) | sold (stock unchanged).
"""

from flask import Blueprint, request, jsonify

from ..models import Movement, BORROW_STATUSES
from ..validation import ModelValidationPolicy, validate_payload
from ..services import transaction_service
from ..decorators import require_auth
from .errors import error_response
from .movements import list_partition

BORROW_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "quantity", "borrower", "purpose"},
    required_on_create={"item_id", "quantity", "borrower", "purpose"},
)

borrows_bp = Blueprint("borrows", __name__, url_prefix="/api/borrows")


@borrows_bp.get("")
@require_auth
def list_borrows_route():
    """Query params: preset, start/end, status=borrowed|returned|sold."""
    status = request.args.get("status") or None
    if status is not None and status not in BORROW_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(BORROW_STATUSES)}"}), 400
    try:
        rows = list_partition("borrow", status=status)
    except Exception as e:
        return error_response(e, "list borrows")
    return jsonify({"borrows": rows}), 200


@borrows_bp.post("")
@require_auth
def create_borrow_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Movement, payload=payload, policy=BORROW_POLICY, partial=False)
        movement = transaction_service.borrow_item(**patch)
    except Exception as e:
        return error_response(e, "record borrow")
    return jsonify({"borrow": movement.to_dict()}), 201


@borrows_bp.post("/<int:movement_id>/return")
@require_auth
def return_borrow_route(movement_id: int):
    try:
        movement = transaction_service.return_borrowed(movement_id)
    except Exception as e:
        return error_response(e, "return borrowed stock")
    return jsonify({"borrow": movement.to_dict()}), 200


@borrows_bp.post("/<int:movement_id>/sold")
@require_auth
def sold_borrow_route(movement_id: int):
    try:
        movement = transaction_service.mark_borrowed_sold(movement_id)
    except Exception as e:
        return error_response(e, "mark borrow as sold")
    return jsonify({"borrow": movement.to_dict()}), 200
