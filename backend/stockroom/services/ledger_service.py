# Overview: Movement ledger; records, status changes and range queries for stock movements.

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from flask import current_app
from sqlalchemy import and_, case, func

from ..extensions import db
from ..models import Movement, MOVEMENT_KINDS
from stockroom.time_utils import utcnow, parse_iso_date, day_range, today_range, current_month_range
from .concurrency import lock_for_update
from . import subscription_service
"""
Stock Ledger Invariants (authoritative)

Partitions:
- incoming, sale: final on insert, no status.
- borrow: borrowed -> returned | sold (terminal).
- return: pending -> approved | rejected (terminal).

Signed deltas per movement (what the movement contributes to item.quantity):
- incoming            +quantity
- sale                -quantity
- borrow borrowed     -quantity
- borrow sold         -quantity   (stock left at borrow time, nothing reversed)
- borrow returned      0          (-quantity at borrow, +quantity on return)
- return pending       0
- return approved     +quantity
- return rejected      0

For every item: item.quantity == SUM(signed delta) over its movements.

Time:
- occurred_at is stamped with the system clock when the movement is recorded;
  callers cannot backdate.
- Range queries are inclusive on both ends.
"""


class LedgerError(ValueError):
    """Raised for ledger rule violations."""


class MovementNotFoundError(LedgerError):
    """Raised when a movement id does not exist in the requested partition."""


INITIAL_STATUS = {
    "incoming": None,
    "sale": None,
    "borrow": "borrowed",
    "return": "pending",
}

STATUS_TRANSITIONS = {
    "borrow": {"borrowed": {"returned", "sold"}},
    "return": {"pending": {"approved", "rejected"}},
}

EXTRA_FIELDS = {
    "incoming": set(),
    "sale": set(),
    "borrow": {"borrower", "purpose"},
    "return": {"source", "store_name", "notes"},
}

RANGE_PRESETS = ("today", "current_month")


def _check_kind(kind: str) -> None:
    if kind not in MOVEMENT_KINDS:
        raise LedgerError(f"Unknown movement kind: {kind}")


def signed_delta_expression():
    """SQL twin of signed_delta()."""
    return case(
        (Movement.kind == "incoming", Movement.quantity),
        (Movement.kind == "sale", -Movement.quantity),
        (and_(Movement.kind == "borrow", Movement.status.in_(("borrowed", "sold"))), -Movement.quantity),
        (and_(Movement.kind == "return", Movement.status == "approved"), Movement.quantity),
        else_=0,
    )


def signed_delta(movement: Movement) -> int:
    kind, status, qty = movement.kind, movement.status, movement.quantity
    if kind == "incoming":
        return qty
    if kind == "sale":
        return -qty
    if kind == "borrow":
        return -qty if status in ("borrowed", "sold") else 0
    if kind == "return":
        return qty if status == "approved" else 0
    raise LedgerError(f"Unknown movement kind: {kind}")


def record_movement(kind: str, item, quantity: int, **extra: Any) -> Movement:
    """
    Stage a new movement for `item` (no commit).

    Quantity is always the positive amount moved; direction comes from kind
    and status. Unknown extra fields for the kind are rejected.
    """
    _check_kind(kind)
    if quantity <= 0:
        raise LedgerError("Movement quantity must be positive")
    unexpected = set(extra) - EXTRA_FIELDS[kind]
    if unexpected:
        raise LedgerError(f"Fields not allowed for {kind}: {', '.join(sorted(unexpected))}")

    movement = Movement(
        kind=kind,
        item_id=item.id,
        item_code=item.code,
        item_name=item.name,
        quantity=quantity,
        status=INITIAL_STATUS[kind],
        occurred_at=utcnow(),
        created_at=utcnow(),
        **extra,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def get_movement(kind: str, movement_id: int, *, lock: bool = False) -> Movement:
    _check_kind(kind)
    query = db.session.query(Movement).filter_by(id=movement_id, kind=kind)
    if lock:
        query = lock_for_update(query)
    movement = query.first()
    if movement is None:
        raise MovementNotFoundError(f"{kind.capitalize()} {movement_id} not found")
    return movement


def update_status(kind: str, movement_id: int, new_status: str) -> Movement:
    """Move a borrow or return to its next status (no commit)."""
    movement = get_movement(kind, movement_id, lock=True)
    transitions = STATUS_TRANSITIONS.get(kind)
    if transitions is None:
        raise LedgerError(f"{kind} movements have no status")

    allowed = transitions.get(movement.status, set())
    if new_status not in allowed:
        raise LedgerError(
            f"Cannot change {kind} {movement_id} from {movement.status} to {new_status}"
        )

    movement.status = new_status
    movement.status_changed_at = utcnow()
    db.session.flush()
    return movement


def remove_movement(kind: str, movement_id: int) -> None:
    """Delete a movement (no commit). Only used for legacy approved returns."""
    movement = get_movement(kind, movement_id, lock=True)
    db.session.delete(movement)
    db.session.flush()


def resolve_range(
    *,
    preset: str | None = None,
    start: date | str | None = None,
    end: date | str | None = None,
    tz_name: str | None = None,
) -> tuple[datetime | None, datetime | None]:
    """
    Turn a preset or a pair of calendar dates into inclusive UTC-naive bounds.

    Presets are computed from the configured zone's clock at call time.
    A missing start or end leaves that side open.
    """
    tz_name = tz_name or current_app.config.get("STOCK_TIMEZONE", "UTC")
    if preset:
        if preset == "today":
            return today_range(tz_name)
        if preset == "current_month":
            return current_month_range(tz_name)
        raise LedgerError(f"preset must be one of: {', '.join(RANGE_PRESETS)}")

    try:
        start_date = parse_iso_date(start) if isinstance(start, str) else start
        end_date = parse_iso_date(end) if isinstance(end, str) else end
    except ValueError:
        raise LedgerError("start and end must be YYYY-MM-DD dates")

    if start_date and end_date and start_date > end_date:
        raise LedgerError("start must not be after end")

    start_dt = day_range(start_date, start_date, tz_name)[0] if start_date else None
    end_dt = day_range(end_date, end_date, tz_name)[1] if end_date else None
    return start_dt, end_dt


def list_movements(
    kind: str,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
    item_id: int | None = None,
) -> list[Movement]:
    """Newest first; start/end inclusive."""
    _check_kind(kind)
    query = db.session.query(Movement).filter(Movement.kind == kind)
    if start is not None:
        query = query.filter(Movement.occurred_at >= start)
    if end is not None:
        query = query.filter(Movement.occurred_at <= end)
    if status is not None:
        query = query.filter(Movement.status == status)
    if item_id is not None:
        query = query.filter(Movement.item_id == item_id)
    return query.order_by(Movement.occurred_at.desc(), Movement.id.desc()).all()


def query_by_date_range(kind: str, start: datetime, end: datetime) -> list[Movement]:
    return list_movements(kind, start=start, end=end)


def ledger_balance(item_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(signed_delta_expression()), 0)
    ).filter(Movement.item_id == item_id).scalar()
    return int(total or 0)


def ledger_balances() -> dict[int, int]:
    """Signed-delta totals for every item that has movements."""
    rows = db.session.query(
        Movement.item_id,
        func.coalesce(func.sum(signed_delta_expression()), 0),
    ).filter(Movement.item_id.isnot(None)).group_by(Movement.item_id).all()
    return {int(item_id): int(total or 0) for item_id, total in rows}


def subscribe_movements(
    kind: str,
    callback: Callable[[list[dict]], None],
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
):
    _check_kind(kind)
    return subscription_service.subscribe(
        subscription_service.PARTITION_BY_KIND[kind],
        lambda: [m.to_dict() for m in list_movements(kind, start=start, end=end, status=status)],
        callback,
    )
