from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data (read-only for the stock engine).

    GRN ELIGIBILITY:
    A product may be received through a GRN when its product_type is a raw
    material type (contains "raw", case-insensitive) or requires_grn is set.
    Composite products reference a bill of materials via bom_id; their
    components are consumed through stock movements, not receipts.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_company_name", "company_id", "name"),
    )

    product_id = db.Column(db.String(64), primary_key=True)
    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False, index=True)
    category_id = db.Column(db.String(64), db.ForeignKey("categories.category_id"), nullable=True, index=True)

    plu_code = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    # e.g. "Raw Material", "Finished Good", "Retail"
    product_type = db.Column(db.String(64), nullable=False)
    uom_id = db.Column(db.String(64), nullable=True)
    bom_id = db.Column(db.String(64), nullable=True)

    requires_grn = db.Column(db.Boolean, nullable=False, default=False)
    has_raw_materials = db.Column(db.Boolean, nullable=False, default=False)

    # Restock threshold copied onto new ledger entries
    minimum_quantity = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product product_id={self.product_id!r} name={self.name!r}>"

    @property
    def is_grn_eligible(self) -> bool:
        return "raw" in (self.product_type or "").lower() or bool(self.requires_grn)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "company_id": self.company_id,
            "category_id": self.category_id,
            "plu_code": self.plu_code,
            "name": self.name,
            "product_type": self.product_type,
            "uom_id": self.uom_id,
            "bom_id": self.bom_id,
            "requires_grn": self.requires_grn,
            "has_raw_materials": self.has_raw_materials,
            "minimum_quantity": self.minimum_quantity,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
