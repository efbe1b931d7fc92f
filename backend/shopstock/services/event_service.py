# Overview: Transactional outbox for domain events (newGRN, updateInventory, ...).

"""
Event Outbox

enqueue() appends a PENDING row in the same transaction as the business
write, so an event exists if and only if its write committed.
dispatch_pending() runs after commit and hands each event to the
configured publisher.

Publisher contract: EVENT_PUBLISHER config value, a callable taking the
OutboxEvent. When unset, events are written to the application log.
A publisher failure marks the event FAILED (with attempts and last_error)
and is logged; it is never raised to the caller.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import OutboxEvent
from shopstock.time_utils import utcnow


STATUS_PENDING = "PENDING"
STATUS_DISPATCHED = "DISPATCHED"
STATUS_FAILED = "FAILED"


def enqueue(name: str, company_id: str | None, shop_id: str | None, document: dict) -> OutboxEvent:
    event = OutboxEvent(
        name=name,
        company_id=company_id,
        shop_id=shop_id,
        payload=document,
        status=STATUS_PENDING,
        attempts=0,
    )
    db.session.add(event)
    return event


def log_publisher(event: OutboxEvent) -> None:
    current_app.logger.info(
        "event %s company=%s shop=%s payload=%s",
        event.name, event.company_id, event.shop_id, event.payload,
    )


def _publisher():
    return current_app.config.get("EVENT_PUBLISHER") or log_publisher


def dispatch_pending(limit: int | None = None, *, include_failed: bool = False) -> dict:
    """
    Publish pending events in id order and commit their new status.

    Returns {"dispatched": n, "failed": m}.
    """
    if limit is None:
        limit = current_app.config.get("EVENT_DISPATCH_BATCH", 200)

    statuses = [STATUS_PENDING, STATUS_FAILED] if include_failed else [STATUS_PENDING]
    publish = _publisher()
    dispatched = 0
    failed = 0

    try:
        events = (
            db.session.query(OutboxEvent)
            .filter(OutboxEvent.status.in_(statuses))
            .order_by(OutboxEvent.id.asc())
            .limit(limit)
            .all()
        )

        for event in events:
            event.attempts = (event.attempts or 0) + 1
            try:
                publish(event)
            except Exception as exc:
                event.status = STATUS_FAILED
                event.last_error = str(exc)[:255]
                failed += 1
                current_app.logger.warning(
                    "Failed to publish event %s (id=%s, attempt %s): %s",
                    event.name, event.id, event.attempts, exc,
                )
                continue
            event.status = STATUS_DISPATCHED
            event.last_error = None
            event.dispatched_at = utcnow()
            dispatched += 1

        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Event dispatch pass aborted", exc_info=True)

    return {"dispatched": dispatched, "failed": failed}


def list_events(status: str | None = None, name: str | None = None) -> list[OutboxEvent]:
    query = db.session.query(OutboxEvent)
    if status:
        query = query.filter(OutboxEvent.status == status)
    if name:
        query = query.filter(OutboxEvent.name == name)
    return query.order_by(OutboxEvent.id.asc()).all()
