from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


class StockLedgerEntry(db.Model):
    """
    Current stock and weighted-average cost for one product in one shop.

    Key: (company_id, shop_id, category_id, product_id). supplier_ids is an
    associated set, not part of the identity.

    INVARIANTS:
    - total_quantity >= 0 and equals the sum of every non-cancelled delta
      applied since the entry was created.
    - weighted_average_cost_cents >= 0 and is value-weighted
      (sum(qty * cost) / sum(qty)), never a mean of unit costs.
    - Mutated ONLY through services.ledger_service.apply_incoming /
      apply_outgoing. Never hard-deleted.

    CONCURRENCY: version_id is an optimistic lock. A write against a stale
    version raises StaleDataError and the enclosing operation is retried.
    """
    __tablename__ = "stock_ledger_entries"
    __table_args__ = (
        db.UniqueConstraint(
            "company_id", "shop_id", "category_id", "product_id",
            name="uq_stock_ledger_key",
        ),
        db.Index("ix_stock_ledger_shop_product", "company_id", "shop_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # Business identifier, e.g. INV-12 (allocated per company/shop)
    entry_code = db.Column(db.String(64), nullable=False)

    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False)
    shop_id = db.Column(db.String(64), db.ForeignKey("shops.shop_id"), nullable=False)
    category_id = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.String(64), db.ForeignKey("products.product_id"), nullable=False)

    supplier_ids = db.Column(db.JSON, nullable=False, default=list)

    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    weighted_average_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    last_purchase_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    minimum_quantity = db.Column(db.Integer, nullable=False, default=0)

    # enabled | disabled
    toggle = db.Column(db.String(16), nullable=False, default="enabled")
    created_by = db.Column(db.String(64), nullable=False)

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
        return (
            f"<StockLedgerEntry {self.entry_code} product_id={self.product_id!r} "
            f"qty={self.total_quantity} wac={self.weighted_average_cost_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_code": self.entry_code,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "category_id": self.category_id,
            "product_id": self.product_id,
            "supplier_ids": list(self.supplier_ids or []),
            "total_quantity": self.total_quantity,
            "weighted_average_cost_cents": self.weighted_average_cost_cents,
            "last_purchase_cost_cents": self.last_purchase_cost_cents,
            "minimum_quantity": self.minimum_quantity,
            "toggle": self.toggle,
            "created_by": self.created_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
