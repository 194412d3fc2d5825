"""
Reconciliation tests: rebuilding cached quantity from the ledger.
"""

import pytest

from stockroom.models import Item
from stockroom.services import reconcile_service, transaction_service
from stockroom.services.ledger_service import LedgerError


def _drift(db_session, item_id, quantity):
    db_session.query(Item).filter_by(id=item_id).update({"quantity": quantity})
    db_session.commit()


class TestReconcile:
    def test_no_divergence_after_normal_use(self, db_session, stocked_item):
        transaction_service.record_sale(item_id=stocked_item.id, quantity=3)
        assert reconcile_service.reconcile_items() == []

    def test_report_only_does_not_write(self, db_session, stocked_item):
        _drift(db_session, stocked_item.id, 7)
        divergences = reconcile_service.reconcile_items()
        assert len(divergences) == 1
        assert divergences[0].cached == 7
        assert divergences[0].expected == 10
        assert divergences[0].repaired is False
        db_session.expire_all()
        assert db_session.get(Item, stocked_item.id).quantity == 7

    def test_repair_rewrites_quantity(self, db_session, stocked_item):
        _drift(db_session, stocked_item.id, 7)
        divergences = reconcile_service.reconcile_items(repair=True)
        assert divergences[0].repaired is True
        db_session.expire_all()
        assert db_session.get(Item, stocked_item.id).quantity == 10
        assert reconcile_service.reconcile_items() == []

    def test_repair_refused_in_legacy_return_mode(self, app, db_session, stocked_item):
        app.config["DELETE_APPROVED_RETURNS"] = True
        with pytest.raises(LedgerError):
            reconcile_service.reconcile_items(repair=True)
