import io

from flask import Blueprint, jsonify, request, send_file

from stockroom.decorators import require_auth
from stockroom.services import reporting_service
from .errors import error_response
from .items import XLSX_MIMETYPE


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_from_args() -> dict:
    return reporting_service.generate_restock_report(
        request.args.get("start"),
        request.args.get("end"),
        search=request.args.get("search"),
        status=request.args.get("status"),
        sort_by=request.args.get("sort"),
        direction=request.args.get("direction", "asc"),
    )


@reports_bp.get("/restock")
@require_auth
def restock_report():
    try:
        report = _report_from_args()
    except Exception as exc:
        return error_response(exc, "generate restock report")
    return jsonify(report), 200


@reports_bp.get("/restock/export")
@require_auth
def restock_report_export():
    try:
        report = _report_from_args()
        content = reporting_service.export_report_workbook(report["rows"])
    except Exception as exc:
        return error_response(exc, "export restock report")
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"laporan_stok_{report['start']}_{report['end']}.xlsx",
    )
