# Overview: Flask API routes for the item store; parses input and returns JSON responses.

"""
Item routes.

- Create / list / rename / delete items
- Bulk import from the items spreadsheet template
- Template download

Quantity is read-only here; it only changes through stock transactions.
"""
import io

from flask import Blueprint, request, jsonify, send_file

from ..models import Item
from ..validation import ModelValidationPolicy, validate_payload
from ..services import item_service, spreadsheet_service, transaction_service
from ..decorators import require_auth
from .errors import error_response

ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "category"},
    required_on_create={"code", "name", "category"},
)

ITEM_RENAME_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name"},
)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
def list_items_route():
    """
    Query params:
    - order_by: created_at (default, newest first) | code
    - search: case-insensitive match on code, name or category
    """
    order_by = request.args.get("order_by", "created_at")
    search = request.args.get("search")
    try:
        items = item_service.list_items(order_by, search=search)
    except Exception as e:
        return error_response(e, "list items")
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@items_bp.post("")
@require_auth
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Item,
            payload=payload,
            policy=ITEM_CREATE_POLICY,
            partial=False,
        )
        item = item_service.create_item(**patch)
    except Exception as e:
        return error_response(e, "create item")
    return jsonify({"item": item.to_dict()}), 201


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(item_id)
    except Exception as e:
        return error_response(e, "load item")
    return jsonify({"item": item.to_dict()}), 200


@items_bp.patch("/<int:item_id>")
@require_auth
def rename_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Item,
            payload=payload,
            policy=ITEM_RENAME_POLICY,
            partial=True,
        )
        item = item_service.rename_item(item_id, **patch)
    except Exception as e:
        return error_response(e, "update item")
    return jsonify({"item": item.to_dict()}), 200


@items_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    try:
        item_service.delete_item(item_id)
    except Exception as e:
        return error_response(e, "delete item")
    return jsonify({"message": "Item deleted"}), 200


@items_bp.post("/import")
@require_auth
def import_items_route():
    """Multipart upload, field `file`: .xlsx or .csv with Kode Barang / Nama Barang / Kategori."""
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]
    try:
        rows = spreadsheet_service.read_rows(file.stream, file.filename or "", template="items")
        result = transaction_service.import_items(rows)
    except Exception as e:
        return error_response(e, "import items")

    body = result.to_dict()
    if result.success_count == 0:
        return jsonify(dict(body, error="No rows were imported")), 400
    return jsonify(body), 201


@items_bp.get("/template")
@require_auth
def items_template_route():
    filename, content = spreadsheet_service.build_template("items")
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )
