from __future__ import annotations

import enum

from ..extensions import db
from shopstock.time_utils import to_utc_z
from .receipts import Direction, _enum_column


class MovementType(str, enum.Enum):
    PURCHASE = "Purchase"
    GRN = "GRN"
    SALES = "Sales"
    ADJUSTMENT = "Adjustment"
    WASTAGE = "Wastage"
    RETURN = "Return"


class MovementStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    PARTIALLY_RETURNED = "Partially Returned"


class StockMovement(db.Model):
    """
    Stock-affecting transaction posted by a sibling engine
    (sales, wastage, adjustments, returns, direct purchases).

    A movement either moves the finished good itself (finished_good_qty)
    or consumes raw materials listed in components (BOM lines), or both.
    The direction applies to every product the movement touches.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_shop_time", "company_id", "shop_id", "transaction_date_time"),
        db.UniqueConstraint("company_id", "shop_id", "transaction_code", name="uq_stock_movement_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_code = db.Column(db.String(64), nullable=False)

    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False)
    shop_id = db.Column(db.String(64), db.ForeignKey("shops.shop_id"), nullable=False)

    transaction_type = _enum_column(MovementType, nullable=False, index=True)
    direction = _enum_column(Direction, nullable=False)
    transaction_status = _enum_column(MovementStatus, nullable=False, default=MovementStatus.COMPLETED, index=True)

    finished_good_id = db.Column(db.String(64), nullable=True, index=True)
    finished_good_qty = db.Column(db.Integer, nullable=False, default=0)

    transaction_date_time = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    components = db.relationship(
        "StockMovementComponent",
        backref="movement",
        order_by="StockMovementComponent.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def quantity_impact(self, product_id: str) -> int:
        """Signed quantity this movement applies to product_id (In = +, Out = -)."""
        if self.finished_good_id == product_id:
            qty = self.finished_good_qty or 0
        else:
            qty = next(
                (c.quantity or 0 for c in self.components if c.product_id == product_id),
                0,
            )
        return qty if self.direction == Direction.IN else -qty

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_code": self.transaction_code,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "transaction_type": self.transaction_type.value,
            "direction": self.direction.value,
            "transaction_status": self.transaction_status.value,
            "finished_good_id": self.finished_good_id,
            "finished_good_qty": self.finished_good_qty,
            "components": [c.to_dict() for c in self.components],
            "transaction_date_time": to_utc_z(self.transaction_date_time),
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovementComponent(db.Model):
    """Raw material consumed (or restored) by a movement."""
    __tablename__ = "stock_movement_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    # WAC snapshot at posting time
    current_wac_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "current_wac_cents": self.current_wac_cents,
        }
