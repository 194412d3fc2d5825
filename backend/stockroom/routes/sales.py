# Overview: Flask API routes for sales, including spreadsheet import.

import io

from flask import Blueprint, request, jsonify, send_file

from ..models import Movement
from ..validation import ModelValidationPolicy, validate_payload
from ..services import transaction_service, spreadsheet_service
from ..decorators import require_auth
from .errors import error_response
from .items import XLSX_MIMETYPE
from .movements import list_partition

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "quantity"},
    required_on_create={"item_id", "quantity"},
)

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: preset=today|current_month, or start/end (YYYY-MM-DD, inclusive)."""
    try:
        rows = list_partition("sale")
    except Exception as e:
        return error_response(e, "list sales")
    return jsonify({"sales": rows}), 200


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Request body:
    {
        "item_id": 1,
        "quantity": 2
    }

    Returns:
        201: sale recorded, stock decremented
        409: quantity exceeds stock (nothing written)
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Movement, payload=payload, policy=SALE_POLICY, partial=False)
        movement = transaction_service.record_sale(**patch)
    except Exception as e:
        return error_response(e, "record sale")
    return jsonify({"sale": movement.to_dict()}), 201


@sales_bp.post("/import")
@require_auth
def import_sales_route():
    """Multipart upload, field `file`: .xlsx or .csv with Kode Barang / Jumlah."""
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]
    try:
        rows = spreadsheet_service.read_rows(file.stream, file.filename or "", template="sales")
        result = transaction_service.import_sales(rows)
    except Exception as e:
        return error_response(e, "import sales")

    body = result.to_dict()
    if result.success_count == 0:
        return jsonify(dict(body, error="No rows were imported")), 400
    return jsonify(body), 201


@sales_bp.get("/template")
@require_auth
def sales_template_route():
    filename, content = spreadsheet_service.build_template("sales")
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )
