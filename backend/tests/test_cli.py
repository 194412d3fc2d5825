"""
CLI command tests.
"""

from stockroom.models import Item
from stockroom.services import auth_service


class TestStockCommands:
    def test_reconcile_clean(self, app, db_session, stocked_item):
        result = app.test_cli_runner().invoke(args=["stock", "reconcile"])
        assert result.exit_code == 0
        assert "match the ledger" in result.output

    def test_reconcile_fix(self, app, db_session, stocked_item):
        db_session.query(Item).filter_by(id=stocked_item.id).update({"quantity": 1})
        db_session.commit()

        runner = app.test_cli_runner()
        result = runner.invoke(args=["stock", "reconcile"])
        assert "DIFF  BRG001: cached=1 ledger=10" in result.output

        result = runner.invoke(args=["stock", "reconcile", "--fix"])
        assert result.exit_code == 0
        assert "FIXED BRG001" in result.output
        db_session.expire_all()
        assert db_session.get(Item, stocked_item.id).quantity == 10

    def test_reconcile_fix_refused_in_legacy_mode(self, app, db_session, stocked_item):
        app.config["DELETE_APPROVED_RETURNS"] = True
        result = app.test_cli_runner().invoke(args=["stock", "reconcile", "--fix"])
        assert result.exit_code != 0


class TestAdminCommands:
    def test_hash_password(self, app):
        result = app.test_cli_runner().invoke(args=["admin", "hash-password"], input="s3cret\ns3cret\n")
        assert result.exit_code == 0
        hashed = result.output.strip().splitlines()[-1]
        assert auth_service.verify_password("s3cret", hashed)

    def test_cleanup_sessions(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["admin", "cleanup-sessions"])
        assert result.exit_code == 0
        assert "Deleted 0 session(s)" in result.output
