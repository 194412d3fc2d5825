# Overview: Flask API routes for customer returns; parses input and returns JSON responses.

"""
Return Processing API Routes

Returned parcels (failed cash-on-delivery, damaged goods) are logged as
pending, then approved back into stock or rejected as unsellable.
"""

from flask import Blueprint, request, jsonify

from ..models import Movement, RETURN_STATUSES
from ..validation import ModelValidationPolicy, validate_payload
from ..services import transaction_service
from ..decorators import require_auth
from .errors import error_response
from .movements import list_partition

RETURN_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "quantity", "source", "store_name", "notes"},
    required_on_create={"item_id", "quantity", "source"},
)

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
def list_returns_route():
    """
    Query params: preset, start/end, status=pending|approved|rejected.

    Response also groups rows by source.
    """
    status = request.args.get("status") or None
    if status is not None and status not in RETURN_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(RETURN_STATUSES)}"}), 400
    try:
        rows = list_partition("return", status=status)
    except Exception as e:
        return error_response(e, "list returns")

    by_source: dict[str, list[dict]] = {}
    for row in rows:
        by_source.setdefault(row["source"], []).append(row)
    return jsonify({"returns": rows, "by_source": by_source}), 200


@returns_bp.post("")
@require_auth
def create_return_route():
    """
    Request body:
    {
        "item_id": 1,
        "quantity": 1,
        "source": "cod_failed" | "damaged",
        "store_name": "Toko A",  (optional)
        "notes": "..."  (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Movement, payload=payload, policy=RETURN_POLICY, partial=False)
        movement = transaction_service.record_return(**patch)
    except Exception as e:
        return error_response(e, "record return")
    return jsonify({"return": movement.to_dict()}), 201


@returns_bp.post("/<int:movement_id>/approve")
@require_auth
def approve_return_route(movement_id: int):
    try:
        snapshot = transaction_service.approve_return(movement_id)
    except Exception as e:
        return error_response(e, "approve return")
    return jsonify({"return": snapshot}), 200


@returns_bp.post("/<int:movement_id>/reject")
@require_auth
def reject_return_route(movement_id: int):
    try:
        movement = transaction_service.reject_return(movement_id)
    except Exception as e:
        return error_response(e, "reject return")
    return jsonify({"return": movement.to_dict()}), 200
