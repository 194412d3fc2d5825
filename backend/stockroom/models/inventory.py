from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


MOVEMENT_KINDS = ("incoming", "sale", "borrow", "return")

BORROW_STATUSES = ("borrowed", "returned", "sold")
RETURN_STATUSES = ("pending", "approved", "rejected")
RETURN_SOURCES = ("cod_failed", "damaged")


class Item(db.Model):
    """
    Stock item master data plus the cached on-hand quantity.

    CODE: user-assigned and unique across the store; enforced by
    uq_items_code so duplicates fail at the data layer, not only in forms.

    QUANTITY: a cached running total of the item's movements. Only the
    transaction service writes it, always in the same DB transaction as the
    movement that justifies the change. reconcile_service can rebuild it
    from the ledger.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_items_code"),
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        db.Index("ix_items_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.code!r} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Movement(db.Model):
    """
    One stock-affecting event. The four ledger partitions share this table
    and are told apart by `kind`.

    - incoming / sale: no status, always final
    - borrow: borrowed -> returned | sold
    - return: pending -> approved | rejected

    item_code / item_name are snapshots taken at record time so history
    stays readable after an item is renamed or deleted.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        db.Index("ix_movements_kind_occurred_at", "kind", "occurred_at"),
        db.Index("ix_movements_item_kind", "item_id", "kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    kind = db.Column(db.String(16), nullable=False, index=True)

    # Item deletes are not reconciled against history; the link is dropped.
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    item_code = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=True, index=True)
    status_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # borrow
    borrower = db.Column(db.String(255), nullable=True)
    purpose = db.Column(db.String(255), nullable=True)

    # return
    source = db.Column(db.String(32), nullable=True)
    store_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    item = db.relationship("Item", backref=db.backref("movements", lazy=True))

    def __repr__(self) -> str:
        return f"<Movement id={self.id} kind={self.kind} item_id={self.item_id} quantity={self.quantity} status={self.status}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "item_id": self.item_id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "status": self.status,
            "status_changed_at": to_utc_z(self.status_changed_at),
            "occurred_at": to_utc_z(self.occurred_at),
        }
        if self.kind == "borrow":
            data["borrower"] = self.borrower
            data["purpose"] = self.purpose
        elif self.kind == "return":
            data["source"] = self.source
            data["store_name"] = self.store_name
            data["notes"] = self.notes
        return data
