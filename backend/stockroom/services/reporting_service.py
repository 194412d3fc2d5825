# Overview: Restock report; folds sales per item over a date range and classifies stock urgency.

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from stockroom.extensions import db
from stockroom.models import Item, Movement
from stockroom.time_utils import day_range, parse_iso_date, to_utc_z
from .spreadsheet_service import write_workbook


class ReportError(ValueError):
    """Raised when report generation fails."""


STOCK_SUFFICIENT = "stock_sufficient"
BUY_SOON = "buy_soon"
PREPARE_TO_BUY = "prepare_to_buy"

STOCK_STATUSES = (STOCK_SUFFICIENT, BUY_SOON, PREPARE_TO_BUY)

STOCK_STATUS_LABELS = {
    STOCK_SUFFICIENT: "Stock Mencukupi",
    BUY_SOON: "Segera Beli",
    PREPARE_TO_BUY: "Persiapan Beli",
}

# quantity above total_sales * 2.5 is comfortable, below * 1.75 is urgent
SUFFICIENT_FACTOR = 2.5
BUY_SOON_FACTOR = 1.75

SORT_KEYS = ("code", "name", "category", "quantity", "total_sales", "stock_status")


def classify_stock(quantity: int, total_sales: int) -> str:
    """Order matters: sufficient is checked before buy_soon."""
    if quantity > total_sales * SUFFICIENT_FACTOR:
        return STOCK_SUFFICIENT
    if quantity < total_sales * BUY_SOON_FACTOR:
        return BUY_SOON
    return PREPARE_TO_BUY


def _as_date(value: date | str | None, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ReportError(f"{name} must be a YYYY-MM-DD date")
    return parsed


def sales_totals(start_dt: datetime, end_dt: datetime) -> dict[int, int]:
    """Sum of sold quantity per item id with occurred_at in [start_dt, end_dt]."""
    rows = db.session.query(
        Movement.item_id,
        func.coalesce(func.sum(Movement.quantity), 0),
    ).filter(
        Movement.kind == "sale",
        Movement.item_id.isnot(None),
        Movement.occurred_at >= start_dt,
        Movement.occurred_at <= end_dt,
    ).group_by(Movement.item_id).all()
    return {int(item_id): int(total or 0) for item_id, total in rows}


def filter_rows(rows: Iterable[dict], *, search: str | None = None, status: str | None = None) -> list[dict]:
    if status and status != "all" and status not in STOCK_STATUSES:
        raise ReportError(f"status must be one of: all, {', '.join(STOCK_STATUSES)}")
    needle = (search or "").strip().lower()
    out = []
    for row in rows:
        if needle and needle not in row["code"].lower() and needle not in row["name"].lower():
            continue
        if status and status != "all" and row["stock_status"] != status:
            continue
        out.append(row)
    return out


def sort_rows(rows: Iterable[dict], key: str, direction: str = "asc") -> list[dict]:
    """Stable in both directions: tied rows keep their incoming order."""
    if key not in SORT_KEYS:
        raise ReportError(f"sort must be one of: {', '.join(SORT_KEYS)}")
    if direction not in ("asc", "desc"):
        raise ReportError("direction must be asc or desc")
    return sorted(rows, key=lambda row: row[key], reverse=(direction == "desc"))


def generate_restock_report(
    start_date: date | str | None,
    end_date: date | str | None,
    *,
    search: str | None = None,
    status: str | None = None,
    sort_by: str | None = None,
    direction: str = "asc",
) -> dict:
    start = _as_date(start_date, "start")
    end = _as_date(end_date, "end")
    if start > end:
        raise ReportError("start must not be after end")

    tz_name = current_app.config.get("STOCK_TIMEZONE", "UTC")
    start_dt, _ = day_range(start, start, tz_name)
    _, end_dt = day_range(end, end, tz_name)

    items = db.session.query(Item).order_by(Item.code.asc(), Item.id.asc()).all()
    totals = sales_totals(start_dt, end_dt)

    rows = []
    for item in items:
        total_sales = totals.get(item.id, 0)
        rows.append({
            "id": item.id,
            "code": item.code,
            "name": item.name,
            "category": item.category,
            "quantity": item.quantity,
            "total_sales": total_sales,
            "stock_status": classify_stock(item.quantity, total_sales),
        })

    rows = filter_rows(rows, search=search, status=status)
    if sort_by:
        rows = sort_rows(rows, sort_by, direction)

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "range_start": to_utc_z(start_dt),
        "range_end": to_utc_z(end_dt),
        "rows": rows,
    }


def export_report_workbook(rows: Iterable[dict]) -> bytes:
    headers = ("Kode Barang", "Nama Barang", "Kategori", "Stock", "Total Penjualan", "Status")
    return write_workbook(
        headers,
        (
            (
                row["code"],
                row["name"],
                row["category"],
                row["quantity"],
                row["total_sales"],
                STOCK_STATUS_LABELS[row["stock_status"]],
            )
            for row in rows
        ),
        title="Laporan",
    )
