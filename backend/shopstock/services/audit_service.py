# Overview: Append-only audit trail of stock mutations and report generation.

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLogEntry


def record(company_id: str, shop_id: str | None, actor: str, message: str) -> AuditLogEntry | None:
    """
    Append an audit entry inside a savepoint of the caller's transaction.

    An audit failure must never fail the business operation: the savepoint
    is rolled back, the error is logged, and None is returned.
    """
    try:
        with db.session.begin_nested():
            entry = AuditLogEntry(
                company_id=company_id,
                shop_id=shop_id,
                created_by=actor or "system",
                message=message[:255],
            )
            db.session.add(entry)
        return entry
    except SQLAlchemyError:
        current_app.logger.warning(
            "Failed to write audit entry for company %s: %s", company_id, message, exc_info=True,
        )
        return None


def list_entries(company_id: str, shop_id: str | None = None, limit: int = 100) -> list[AuditLogEntry]:
    query = db.session.query(AuditLogEntry).filter_by(company_id=company_id)
    if shop_id is not None:
        query = query.filter(AuditLogEntry.shop_id == shop_id)
    return query.order_by(AuditLogEntry.id.desc()).limit(limit).all()
