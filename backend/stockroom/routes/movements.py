# Overview: Shared helpers for the ledger partition routes.

from flask import request

from ..services import ledger_service


def range_from_args():
    """
    Read `preset` (today | current_month) or `start` / `end` (YYYY-MM-DD)
    from the query string. Raises LedgerError on bad input.
    """
    return ledger_service.resolve_range(
        preset=request.args.get("preset") or None,
        start=request.args.get("start") or None,
        end=request.args.get("end") or None,
    )


def list_partition(kind: str, *, status: str | None = None) -> list[dict]:
    start, end = range_from_args()
    movements = ledger_service.list_movements(kind, start=start, end=end, status=status)
    return [m.to_dict() for m in movements]
