# Overview: Shared translation of service exceptions to JSON error responses.

from flask import jsonify, current_app

from ..validation import ValidationError, ConflictError
from ..services.item_service import ItemError, ItemNotFoundError
from ..services.ledger_service import LedgerError, MovementNotFoundError
from ..services.transaction_service import TransactionError, InsufficientStockError
from ..services.spreadsheet_service import SpreadsheetError
from ..services.reporting_service import ReportError


def error_response(exc: Exception, action: str):
    """
    Map a service exception to (json, status).

    Anything unexpected is logged with its traceback and reported as a
    generic 500; the operator retries the whole action.
    """
    if isinstance(exc, (ItemNotFoundError, MovementNotFoundError)):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (ConflictError, InsufficientStockError)):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, (ValidationError, TransactionError, ItemError, LedgerError, SpreadsheetError, ReportError)):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Operation failed"}), 500
