# Overview: Item store; master data for stock items and the cached quantity field.

"""
Item Store Invariants

- One row per item; `code` is unique (uq_items_code) and checked here first
  so callers get a ConflictError instead of an IntegrityError.
- New items always start at quantity 0. Stock only arrives through the
  transaction service.
- Only code and name are editable directly. Category and quantity are not.
- Deletes are unconditional; movements keep their code/name snapshot and
  lose the item link.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item
from ..validation import ValidationError, ConflictError, require_text
from stockroom.time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from . import subscription_service


logger = logging.getLogger(__name__)


class ItemError(ValueError):
    """Raised for item store rule violations."""


class ItemNotFoundError(ItemError):
    """Raised when an item id does not exist."""


ITEM_ORDERINGS = {
    # listing view: newest first
    "created_at": (Item.created_at.desc(), Item.id.desc()),
    # selection pickers
    "code": (Item.code.asc(), Item.id.asc()),
}


@dataclass
class RowError:
    row_number: int
    message: str

    def to_dict(self) -> dict:
        return {"row_number": self.row_number, "message": self.message}


@dataclass
class ImportResult:
    success_count: int = 0
    error_count: int = 0
    errors: list[RowError] = field(default_factory=list)

    def reject(self, row_number: int, message: str) -> None:
        self.error_count += 1
        self.errors.append(RowError(row_number, message))

    def to_dict(self) -> dict:
        return {
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": [e.to_dict() for e in self.errors],
        }


def get_item(item_id: int, *, lock: bool = False) -> Item:
    query = db.session.query(Item).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found")
    return item


def get_item_by_code(code: str) -> Item | None:
    return db.session.query(Item).filter_by(code=code.strip()).first()


def list_items(order_by: str = "created_at", search: str | None = None) -> list[Item]:
    """Items in the given order, optionally filtered by a case-insensitive
    substring of code, name or category."""
    ordering = ITEM_ORDERINGS.get(order_by)
    if ordering is None:
        raise ValidationError(f"order_by must be one of: {', '.join(ITEM_ORDERINGS)}")
    query = db.session.query(Item)
    needle = (search or "").strip()
    if needle:
        pattern = f"%{needle}%"
        query = query.filter(
            db.or_(
                Item.code.ilike(pattern),
                Item.name.ilike(pattern),
                Item.category.ilike(pattern),
            )
        )
    return query.order_by(*ordering).all()


def _ensure_code_available(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(Item.code == code)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Item code already exists: {code}")


def create_item(*, code: Any, name: Any, category: Any) -> Item:
    fields = require_text({"code": code, "name": name, "category": category})

    def _op():
        _ensure_code_available(fields["code"])
        item = Item(
            code=fields["code"],
            name=fields["name"],
            category=fields["category"],
            quantity=0,
            created_at=utcnow(),
        )
        db.session.add(item)
        db.session.flush()
        return item

    try:
        item = run_atomic(_op)
    except IntegrityError:
        # lost a race with another insert of the same code
        raise ConflictError(f"Item code already exists: {fields['code']}")

    logger.info("Created item %s (%s)", item.code, item.id)
    subscription_service.notify("items")
    return item


def bulk_create_items(rows: Iterable[dict[str, Any]]) -> ImportResult:
    """
    Create many items as one all-or-nothing batch.

    Rows missing code, name or category, and rows whose code already exists
    (in the store or earlier in the same batch), are skipped and counted.
    Nothing is written when no row survives.
    """
    result = ImportResult()
    accepted: list[dict[str, str]] = []
    existing = {code for (code,) in db.session.query(Item.code).all()}

    for idx, row in enumerate(rows, start=1):
        row_number = int(row.get("row_number") or idx)
        try:
            fields = require_text({
                "code": row.get("code"),
                "name": row.get("name"),
                "category": row.get("category"),
            })
        except ValidationError as e:
            result.reject(row_number, str(e))
            continue
        if fields["code"] in existing:
            result.reject(row_number, f"Item code already exists: {fields['code']}")
            continue
        existing.add(fields["code"])
        accepted.append(fields)

    if not accepted:
        return result

    def _op():
        now = utcnow()
        for fields in accepted:
            db.session.add(Item(quantity=0, created_at=now, **fields))
        db.session.flush()

    try:
        run_atomic(_op)
    except IntegrityError:
        raise ConflictError("Item codes changed during import; nothing was imported")

    result.success_count = len(accepted)
    logger.info("Bulk created %d items (%d rows rejected)", result.success_count, result.error_count)
    subscription_service.notify("items")
    return result


def rename_item(item_id: int, *, code: Any = None, name: Any = None) -> Item:
    """Change code and/or name. Category and quantity are not editable here."""
    updates = {}
    if code is not None:
        updates["code"] = code
    if name is not None:
        updates["name"] = name
    if not updates:
        raise ValidationError("code or name is required")
    updates = require_text(updates)

    def _op():
        item = get_item(item_id, lock=True)
        if "code" in updates and updates["code"] != item.code:
            _ensure_code_available(updates["code"], exclude_id=item.id)
        for key, value in updates.items():
            setattr(item, key, value)
        db.session.flush()
        return item

    try:
        item = run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Item code already exists: {updates.get('code')}")

    subscription_service.notify("items")
    return item


def delete_item(item_id: int) -> None:
    def _op():
        item = get_item(item_id, lock=True)
        history = len(item.movements)
        if history:
            logger.warning("Deleting item %s with %d ledger movements; history keeps its snapshot", item.code, history)
        db.session.delete(item)

    run_atomic(_op)
    subscription_service.notify("items")


def adjust_quantity(item: Item, delta: int) -> int:
    """
    Apply delta to the cached quantity of an already-locked item.

    Does not commit; the caller stages this next to the ledger write that
    justifies it and commits both together.
    """
    new_quantity = item.quantity + delta
    if new_quantity < 0:
        raise ItemError(
            f"Adjustment would make quantity negative for {item.code}: {item.quantity} {delta:+d}"
        )
    item.quantity = new_quantity
    db.session.flush()
    return new_quantity


def subscribe_items(callback: Callable[[list[dict]], None], order_by: str = "created_at"):
    if order_by not in ITEM_ORDERINGS:
        raise ValidationError(f"order_by must be one of: {', '.join(ITEM_ORDERINGS)}")
    return subscription_service.subscribe(
        "items",
        lambda: [item.to_dict() for item in list_items(order_by)],
        callback,
    )
