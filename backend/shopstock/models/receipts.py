from __future__ import annotations

import enum

from ..extensions import db
from shopstock.time_utils import to_utc_z


class ReceiptStatus(str, enum.Enum):
    """
    GRN status.

    Header: PENDING -> COMPLETED (settle), PENDING/COMPLETED -> CANCELLED.
    UPDATED is a line-level status only (lines rewritten by an update).
    """
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    UPDATED = "Updated"


class Direction(str, enum.Enum):
    IN = "In"
    OUT = "Out"


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


class ReceiptHeader(db.Model):
    """
    Goods-receipt note header.

    transaction_code (e.g. GRN-42) is the business key and the correlation
    key for the receipt lines. Exactly one header per code within a
    (company_id, shop_id) scope.

    outstanding_amount_cents starts equal to total_cost_cents; payment
    settlement against suppliers is handled outside this service.

    CONCURRENCY: version_id is an optimistic lock, so a settle and a cancel
    racing on the same header cannot both commit.
    """
    __tablename__ = "receipt_headers"
    __table_args__ = (
        db.UniqueConstraint("company_id", "shop_id", "transaction_code", name="uq_receipt_header_code"),
        db.Index("ix_receipt_headers_supplier", "company_id", "shop_id", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_code = db.Column(db.String(64), nullable=False)

    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False, index=True)
    shop_id = db.Column(db.String(64), db.ForeignKey("shops.shop_id"), nullable=False)
    supplier_id = db.Column(db.String(64), db.ForeignKey("suppliers.supplier_id"), nullable=False)

    transaction_date_time = db.Column(db.DateTime(timezone=True), nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, default="GRN")
    direction = _enum_column(Direction, nullable=False, default=Direction.IN)
    transaction_status = _enum_column(ReceiptStatus, nullable=False, default=ReceiptStatus.PENDING, index=True)

    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    outstanding_amount_cents = db.Column(db.Integer, nullable=False, default=0)

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

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "ReceiptLine",
        primaryjoin=(
            "and_(ReceiptHeader.transaction_code == foreign(ReceiptLine.transaction_code), "
            "ReceiptHeader.company_id == foreign(ReceiptLine.company_id), "
            "ReceiptHeader.shop_id == foreign(ReceiptLine.shop_id))"
        ),
        order_by="ReceiptLine.id",
        viewonly=True,
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<ReceiptHeader {self.transaction_code} status={self.transaction_status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_code": self.transaction_code,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "transaction_date_time": to_utc_z(self.transaction_date_time),
            "transaction_type": self.transaction_type,
            "direction": self.direction.value,
            "transaction_status": self.transaction_status.value,
            "total_cost_cents": self.total_cost_cents,
            "outstanding_amount_cents": self.outstanding_amount_cents,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ReceiptLine(db.Model):
    """
    One product received on a GRN.

    total_cost_cents == unit_cost_cents * quantity at write time.
    Cancelled lines are kept for audit with direction flipped to OUT.
    """
    __tablename__ = "receipt_lines"
    __table_args__ = (
        db.Index("ix_receipt_lines_code", "company_id", "shop_id", "transaction_code"),
        db.Index("ix_receipt_lines_product_time", "company_id", "shop_id", "product_id", "transaction_date_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # Business identifier, e.g. RMT-7
    line_code = db.Column(db.String(64), nullable=False)
    transaction_code = db.Column(db.String(64), nullable=False)

    company_id = db.Column(db.String(64), nullable=False)
    shop_id = db.Column(db.String(64), nullable=False)
    supplier_id = db.Column(db.String(64), nullable=False)
    category_id = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.String(64), db.ForeignKey("products.product_id"), nullable=False)

    transaction_date_time = db.Column(db.DateTime(timezone=True), nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, default="GRN")
    direction = _enum_column(Direction, nullable=False, default=Direction.IN)
    transaction_status = _enum_column(ReceiptStatus, nullable=False, default=ReceiptStatus.PENDING)

    unit_cost_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    remarks = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_code": self.line_code,
            "transaction_code": self.transaction_code,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "category_id": self.category_id,
            "product_id": self.product_id,
            "transaction_date_time": to_utc_z(self.transaction_date_time),
            "transaction_type": self.transaction_type,
            "direction": self.direction.value,
            "transaction_status": self.transaction_status.value,
            "unit_cost_cents": self.unit_cost_cents,
            "quantity": self.quantity,
            "total_cost_cents": self.total_cost_cents,
            "remarks": self.remarks,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
