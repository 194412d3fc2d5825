# Overview: Transaction coordinator; pairs every ledger write with its quantity adjustment in one commit.

"""
Stock Transaction Coordinator

Every user action that touches stock is one DB transaction holding both
halves: the movement row and the cached quantity change on the item. If
either half fails the session is rolled back and nothing is applied.

VALIDATION ORDER:
- Input checks (quantity > 0, required fields) run before the unit starts.
- Stock checks run against the locked item row before the first write, so
  a rejected sale or borrow leaves zero writes behind.

STATE MACHINES:
- Borrow: borrowed -> returned (+qty back to stock) | sold (no change)
- Return: pending -> approved (+qty to stock) | rejected (no change)

RETURN APPROVAL:
Approved returns are kept with status='approved' so both outcomes stay on
record. DELETE_APPROVED_RETURNS=True restores the old delete-on-approve
behaviour; the ledger then no longer explains every unit of stock.

BULK IMPORTS:
Rows are validated against an in-memory snapshot of quantities taken before
the batch; accepted rows draw the snapshot down. Surviving rows commit
together or not at all.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import Item, Movement
from ..validation import (
    ValidationError,
    cell_text,
    coerce_int,
    enforce_rules_quantity,
    enforce_rules_borrow,
    enforce_rules_return,
    require_text,
)
from .concurrency import run_atomic
from .item_service import (
    ImportResult,
    ItemError,
    ItemNotFoundError,
    get_item,
    adjust_quantity,
    bulk_create_items,
)
from .ledger_service import (
    LedgerError,
    MovementNotFoundError,
    record_movement,
    update_status,
    remove_movement,
    get_movement,
)
from . import subscription_service


logger = logging.getLogger(__name__)


class TransactionError(ValueError):
    """Raised when a stock transaction cannot be applied."""


class InsufficientStockError(TransactionError):
    """Raised when a sale or borrow asks for more than is on hand."""


ITEM_IMPORT_COLUMNS = {"Kode Barang": "code", "Nama Barang": "name", "Kategori": "category"}
SALES_IMPORT_COLUMNS = {"Kode Barang": "code", "Jumlah": "quantity"}


def _require_stock(item: Item, quantity: int) -> None:
    if quantity > item.quantity:
        raise InsufficientStockError(
            f"Insufficient stock for {item.code}: requested {quantity}, available {item.quantity}"
        )


def _apply(func):
    """Run a coordinator unit, mapping store-level rule failures to TransactionError."""
    try:
        return run_atomic(func)
    except (ItemNotFoundError, MovementNotFoundError):
        raise
    except (ItemError, LedgerError) as e:
        raise TransactionError(str(e)) from e


def _committed(movement: Movement, action: str) -> None:
    logger.info(
        "%s: %s item=%s qty=%d status=%s",
        action, movement.kind, movement.item_code, movement.quantity, movement.status,
    )
    subscription_service.notify("items", subscription_service.PARTITION_BY_KIND[movement.kind])


# =============================================================================
# INCOMING / SALE
# =============================================================================

def record_incoming(*, item_id: int, quantity: Any) -> Movement:
    qty = enforce_rules_quantity(quantity)

    def _op():
        item = get_item(item_id, lock=True)
        movement = record_movement("incoming", item, qty)
        adjust_quantity(item, qty)
        return movement

    movement = _apply(_op)
    _committed(movement, "Recorded")
    return movement


def record_sale(*, item_id: int, quantity: Any) -> Movement:
    qty = enforce_rules_quantity(quantity)

    def _op():
        item = get_item(item_id, lock=True)
        _require_stock(item, qty)
        movement = record_movement("sale", item, qty)
        adjust_quantity(item, -qty)
        return movement

    movement = _apply(_op)
    _committed(movement, "Recorded")
    return movement


# =============================================================================
# BORROW LIFECYCLE
# =============================================================================

def borrow_item(*, item_id: int, quantity: Any, borrower: Any, purpose: Any) -> Movement:
    qty = enforce_rules_quantity(quantity)
    fields = require_text({"borrower": borrower, "purpose": purpose})
    enforce_rules_borrow(fields)

    def _op():
        item = get_item(item_id, lock=True)
        _require_stock(item, qty)
        movement = record_movement("borrow", item, qty, **fields)
        adjust_quantity(item, -qty)
        return movement

    movement = _apply(_op)
    _committed(movement, "Recorded")
    return movement


def return_borrowed(movement_id: int) -> Movement:
    """borrowed -> returned; the borrowed quantity goes back to stock."""
    def _op():
        movement = get_movement("borrow", movement_id, lock=True)
        if movement.status != "borrowed":
            raise TransactionError(f"Borrow {movement_id} is already {movement.status}")
        if movement.item_id is None:
            raise TransactionError(f"Item for borrow {movement_id} no longer exists")
        item = get_item(movement.item_id, lock=True)
        update_status("borrow", movement_id, "returned")
        adjust_quantity(item, movement.quantity)
        return movement

    movement = _apply(_op)
    _committed(movement, "Returned")
    return movement


def mark_borrowed_sold(movement_id: int) -> Movement:
    """borrowed -> sold; stock already left at borrow time, quantity untouched."""
    def _op():
        movement = get_movement("borrow", movement_id, lock=True)
        if movement.status != "borrowed":
            raise TransactionError(f"Borrow {movement_id} is already {movement.status}")
        return update_status("borrow", movement_id, "sold")

    movement = _apply(_op)
    _committed(movement, "Sold")
    return movement


# =============================================================================
# CUSTOMER RETURNS
# =============================================================================

def record_return(
    *,
    item_id: int,
    quantity: Any,
    source: Any,
    store_name: Any = None,
    notes: Any = None,
) -> Movement:
    """Log a returned parcel as pending. Stock is untouched until approval."""
    qty = enforce_rules_quantity(quantity)
    fields = {
        "source": str(source).strip() if source is not None else None,
        "store_name": str(store_name).strip() if store_name else None,
        "notes": str(notes).strip() if notes else None,
    }
    enforce_rules_return(fields)

    def _op():
        item = get_item(item_id)
        return record_movement("return", item, qty, **fields)

    movement = _apply(_op)
    _committed(movement, "Recorded")
    return movement


def approve_return(movement_id: int) -> dict:
    """
    pending -> approved: the returned quantity goes back to stock.

    Returns the movement as a dict with `removed` set when the legacy
    delete-on-approve mode dropped the record.
    """
    delete_record = bool(current_app.config.get("DELETE_APPROVED_RETURNS", False))

    def _op():
        movement = get_movement("return", movement_id, lock=True)
        if movement.status != "pending":
            raise TransactionError(f"Return {movement_id} is already {movement.status}")
        if movement.item_id is None:
            raise TransactionError(f"Item for return {movement_id} no longer exists")
        item = get_item(movement.item_id, lock=True)
        adjust_quantity(item, movement.quantity)
        if delete_record:
            snapshot = dict(movement.to_dict(), status="approved", removed=True)
            remove_movement("return", movement_id)
        else:
            update_status("return", movement_id, "approved")
            snapshot = dict(movement.to_dict(), removed=False)
        return snapshot

    snapshot = _apply(_op)
    logger.info(
        "Approved: return item=%s qty=%d removed=%s",
        snapshot["item_code"], snapshot["quantity"], snapshot["removed"],
    )
    subscription_service.notify("items", "returns")
    return snapshot


def reject_return(movement_id: int) -> Movement:
    """pending -> rejected: record kept, quantity untouched."""
    def _op():
        movement = get_movement("return", movement_id, lock=True)
        if movement.status != "pending":
            raise TransactionError(f"Return {movement_id} is already {movement.status}")
        return update_status("return", movement_id, "rejected")

    movement = _apply(_op)
    _committed(movement, "Rejected")
    return movement


# =============================================================================
# BULK IMPORTS
# =============================================================================

def _check_batch_size(rows: list) -> None:
    if not rows:
        raise ValidationError("File is empty or does not match the template")
    limit = current_app.config.get("MAX_IMPORT_ROWS", 5000)
    if len(rows) > limit:
        raise ValidationError(f"Import is limited to {limit} rows")


def _map_columns(values: dict[str, Any], columns: dict[str, str]) -> dict[str, Any]:
    return {field: values.get(header) for header, field in columns.items()}


def import_items(sheet_rows: Iterable) -> ImportResult:
    """Item template rows (Kode Barang, Nama Barang, Kategori) -> new items at quantity 0."""
    sheet_rows = list(sheet_rows)
    _check_batch_size(sheet_rows)
    rows = []
    for sheet_row in sheet_rows:
        mapped = _map_columns(sheet_row.values, ITEM_IMPORT_COLUMNS)
        mapped["row_number"] = sheet_row.row_number
        rows.append(mapped)
    return bulk_create_items(rows)


def import_sales(sheet_rows: Iterable) -> ImportResult:
    """
    Sales template rows (Kode Barang, Jumlah) -> one sale movement per row.

    Rejected rows: unknown item code, missing or non-positive quantity, or a
    quantity above what the pre-batch snapshot still has left for that item.
    """
    sheet_rows = list(sheet_rows)
    _check_batch_size(sheet_rows)

    result = ImportResult()
    snapshot = {item.code: (item.id, item.quantity) for item in db.session.query(Item).all()}
    remaining = {code: qty for code, (_, qty) in snapshot.items()}
    accepted: list[tuple[int, int]] = []

    for sheet_row in sheet_rows:
        mapped = _map_columns(sheet_row.values, SALES_IMPORT_COLUMNS)
        code = cell_text(mapped["code"])
        if not code:
            result.reject(sheet_row.row_number, "Missing required fields: code")
            continue
        if code not in snapshot:
            result.reject(sheet_row.row_number, f"Unknown item code: {code}")
            continue
        if mapped["quantity"] is None or mapped["quantity"] == "":
            result.reject(sheet_row.row_number, "Missing required fields: quantity")
            continue
        try:
            qty = coerce_int("quantity", mapped["quantity"])
        except ValidationError as e:
            result.reject(sheet_row.row_number, str(e))
            continue
        if qty <= 0:
            result.reject(sheet_row.row_number, "quantity must be > 0")
            continue
        if qty > remaining[code]:
            result.reject(
                sheet_row.row_number,
                f"Insufficient stock for {code}: requested {qty}, available {remaining[code]}",
            )
            continue
        remaining[code] -= qty
        accepted.append((snapshot[code][0], qty))

    if not accepted:
        logger.info("Sales import rejected all %d rows", result.error_count)
        return result

    def _op():
        locked: dict[int, Item] = {}
        for item_id, qty in accepted:
            item = locked.get(item_id)
            if item is None:
                item = locked[item_id] = get_item(item_id, lock=True)
            record_movement("sale", item, qty)
            adjust_quantity(item, -qty)

    _apply(_op)
    result.success_count = len(accepted)
    logger.info("Imported %d sales (%d rows rejected)", result.success_count, result.error_count)
    subscription_service.notify("items", "sales")
    return result
