# Overview: Rebuilds cached item quantities from the movement ledger when the two disagree.

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Item
from .concurrency import run_atomic
from .ledger_service import LedgerError, ledger_balances
from . import subscription_service


logger = logging.getLogger(__name__)


@dataclass
class Divergence:
    item_id: int
    code: str
    cached: int
    expected: int
    repaired: bool = False

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "code": self.code,
            "cached": self.cached,
            "expected": self.expected,
            "repaired": self.repaired,
        }


def find_divergent_items() -> list[Divergence]:
    balances = ledger_balances()
    out = []
    for item in db.session.query(Item).order_by(Item.code.asc()).all():
        expected = balances.get(item.id, 0)
        if item.quantity != expected:
            out.append(Divergence(item.id, item.code, item.quantity, expected))
    return out


def reconcile_items(*, repair: bool = False) -> list[Divergence]:
    """
    Report (and with repair=True, fix) items whose cached quantity differs
    from the ledger's signed-delta total.

    Items whose ledger total is negative are reported but never written.
    """
    if repair and current_app.config.get("DELETE_APPROVED_RETURNS", False):
        raise LedgerError(
            "Cannot rebuild quantities while DELETE_APPROVED_RETURNS is on; "
            "approved returns are missing from the ledger"
        )

    if not repair:
        return find_divergent_items()

    def _op():
        divergences = find_divergent_items()
        for d in divergences:
            if d.expected < 0:
                logger.warning("Ledger total for %s is negative (%d); left as %d", d.code, d.expected, d.cached)
                continue
            item = db.session.query(Item).filter_by(id=d.item_id).first()
            if item is None:
                continue
            item.quantity = d.expected
            d.repaired = True
        db.session.flush()
        return divergences

    divergences = run_atomic(_op)
    for d in divergences:
        if d.repaired:
            logger.warning("Rebuilt quantity for %s: %d -> %d", d.code, d.cached, d.expected)
    if any(d.repaired for d in divergences):
        subscription_service.notify("items")
    return divergences
