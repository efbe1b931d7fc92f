from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


class CodeSequence(db.Model):
    """
    Atomic per-scope code counter.

    WHY: Scanning for the latest issued code and incrementing it races under
    concurrent creators. The counter is bumped with a single UPDATE.
    Scope: (company_id, shop_id, prefix).
    """
    __tablename__ = "code_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "shop_id", "prefix", name="uq_code_sequences_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.String(64), nullable=False)
    shop_id = db.Column(db.String(64), nullable=False)
    prefix = db.Column(db.String(32), nullable=False)
    last_number = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "prefix": self.prefix,
            "last_number": self.last_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class CodeAllocation(db.Model):
    """Append-only history of every issued code."""
    __tablename__ = "code_allocations"
    __table_args__ = (
        db.UniqueConstraint("company_id", "shop_id", "code_number", name="uq_code_allocations_code"),
        db.Index("ix_code_allocations_scope", "company_id", "shop_id", "prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.String(64), nullable=False)
    shop_id = db.Column(db.String(64), nullable=False)
    prefix = db.Column(db.String(32), nullable=False)
    sequence_number = db.Column(db.Integer, nullable=False)
    code_number = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(128), nullable=False)
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "prefix": self.prefix,
            "sequence_number": self.sequence_number,
            "code_number": self.code_number,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class AuditLogEntry(db.Model):
    """
    Append-only trail of who changed what.

    Written in a savepoint of the business transaction; never updated or deleted.
    """
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        db.Index("ix_audit_log_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.String(64), nullable=False)
    shop_id = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)
    message = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "created_by": self.created_by,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }


class OutboxEvent(db.Model):
    """
    Domain event waiting to be published.

    Appended in the same DB transaction as the write it describes and
    dispatched after commit, so a delivery failure can never undo or mask
    the business outcome.
    """
    __tablename__ = "outbox_events"
    __table_args__ = (
        db.Index("ix_outbox_status_id", "status", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    company_id = db.Column(db.String(64), nullable=True)
    shop_id = db.Column(db.String(64), nullable=True)
    payload = db.Column(db.JSON, nullable=False)

    # PENDING | DISPATCHED | FAILED
    status = db.Column(db.String(16), nullable=False, default="PENDING")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company_id": self.company_id,
            "shop_id": self.shop_id,
            "payload": self.payload,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
            "dispatched_at": to_utc_z(self.dispatched_at),
        }
