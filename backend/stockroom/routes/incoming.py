# Overview: Flask API routes for incoming stock.

from flask import Blueprint, request, jsonify

from ..models import Movement
from ..validation import ModelValidationPolicy, validate_payload
from ..services import transaction_service
from ..decorators import require_auth
from .errors import error_response
from .movements import list_partition

INCOMING_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "quantity"},
    required_on_create={"item_id", "quantity"},
)

incoming_bp = Blueprint("incoming", __name__, url_prefix="/api/incoming")


@incoming_bp.get("")
@require_auth
def list_incoming_route():
    """Query params: preset=today|current_month, or start/end (YYYY-MM-DD, inclusive)."""
    try:
        rows = list_partition("incoming")
    except Exception as e:
        return error_response(e, "list incoming stock")
    return jsonify({"incoming": rows}), 200


@incoming_bp.post("")
@require_auth
def record_incoming_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Movement, payload=payload, policy=INCOMING_POLICY, partial=False)
        movement = transaction_service.record_incoming(**patch)
    except Exception as e:
        return error_response(e, "record incoming stock")
    return jsonify({"incoming": movement.to_dict()}), 201
