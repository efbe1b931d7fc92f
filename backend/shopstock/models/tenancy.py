from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


class Company(db.Model):
    """
    Tenant root. Companies own shops, suppliers, categories and products.

    Company CRUD lives outside this service; rows here are the reference
    data the stock engine reads (receipt detail views, tenant checks).
    """
    __tablename__ = "companies"

    company_id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    contact_no = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Company company_id={self.company_id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "name": self.name,
            "address": self.address,
            "contact_no": self.contact_no,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Shop(db.Model):
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_company", "company_id"),
    )

    shop_id = db.Column(db.String(64), primary_key=True)
    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("shops", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop shop_id={self.shop_id!r} company_id={self.company_id!r}>"

    def to_dict(self) -> dict:
        return {
            "shop_id": self.shop_id,
            "company_id": self.company_id,
            "name": self.name,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_company", "company_id"),
    )

    supplier_id = db.Column(db.String(64), primary_key=True)
    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    contact_no = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    # Days within which a GRN should be paid
    credit_period_days = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "company_id": self.company_id,
            "name": self.name,
            "address": self.address,
            "contact_no": self.contact_no,
            "email": self.email,
            "credit_period_days": self.credit_period_days,
            "created_at": to_utc_z(self.created_at),
        }


class Category(db.Model):
    __tablename__ = "categories"

    category_id = db.Column(db.String(64), primary_key=True)
    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "company_id": self.company_id,
            "name": self.name,
        }


class User(db.Model):
    """
    Actor identity as seen by the stock engine.

    Authentication (passwords, login) is handled elsewhere; this table only
    carries the role and tenant scope that authorization decisions need.
    """
    __tablename__ = "users"

    user_id = db.Column(db.String(64), primary_key=True)
    company_id = db.Column(db.String(64), db.ForeignKey("companies.company_id"), nullable=True, index=True)
    shop_id = db.Column(db.String(64), db.ForeignKey("shops.shop_id"), nullable=True)
    username = db.Column(db.String(64), nullable=False)
    # superAdmin | admin | stockManager | cashier
    role = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User user_id={self.user_id!r} role={self.role!r}>"


class SessionToken(db.Model):
    """
    Bearer session carrying the tenant context of the request.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute expiry; revocable
    - company_id / shop_id are captured when the session is issued
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.user_id"), nullable=False, index=True)
    company_id = db.Column(db.String(64), nullable=True)
    shop_id = db.Column(db.String(64), nullable=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
