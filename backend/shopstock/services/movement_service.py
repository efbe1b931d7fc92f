# Overview: Shared entry point for sibling stock movements (sales, wastage, adjustments, returns).

from datetime import datetime

from ..extensions import db
from ..models import StockMovement, StockMovementComponent, MovementType, MovementStatus, Direction
from . import code_service, ledger_service, event_service, audit_service
from .concurrency import run_with_retry
from .ledger_service import EmptyCostPolicy, LedgerKey, LedgerEntryNotFoundError
from shopstock.time_utils import utcnow, normalize_datetime


CODE_PREFIXES = {
    MovementType.SALES: "SAL",
    MovementType.ADJUSTMENT: "ADJ",
    MovementType.WASTAGE: "WST",
    MovementType.RETURN: "RET",
    MovementType.PURCHASE: "PUR",
    MovementType.GRN: "PUR",
}


# Statuses a movement can be recorded with. Returned / Partially Returned
# are reached only through mark_returned() on a Completed movement.
RECORDABLE_STATUSES = {MovementStatus.PENDING, MovementStatus.COMPLETED, MovementStatus.CANCELLED}

RETURN_TRANSITIONS = {
    MovementStatus.COMPLETED: {MovementStatus.PARTIALLY_RETURNED, MovementStatus.RETURNED},
    MovementStatus.PARTIALLY_RETURNED: {MovementStatus.PARTIALLY_RETURNED, MovementStatus.RETURNED},
}


class MovementValidationError(Exception):
    """Raised when movement input fails validation."""
    pass


class MovementNotFoundError(Exception):
    def __init__(self, transaction_code: str):
        self.transaction_code = transaction_code
        super().__init__(f"Stock movement {transaction_code} not found")


class MovementStateError(Exception):
    def __init__(self, transaction_code: str, status: MovementStatus, target: MovementStatus):
        self.transaction_code = transaction_code
        self.status = status
        super().__init__(
            f"Stock movement {transaction_code} is {status.value}; cannot mark {target.value}"
        )


def _coerce_enum(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise MovementValidationError(f"Invalid {field}. Must be one of: {allowed}")


def _apply(entry, direction: Direction, quantity: int, created_by: str):
    # Sibling movements are valued at the entry's current WAC
    if direction == Direction.OUT:
        return ledger_service.apply_outgoing(
            entry,
            quantity=quantity,
            unit_cost_cents=entry.weighted_average_cost_cents,
            empty_cost=EmptyCostPolicy.HOLD,
        )
    return ledger_service.apply_incoming(
        entry,
        key=LedgerKey(entry.company_id, entry.shop_id, entry.category_id, entry.product_id),
        quantity=quantity,
        unit_cost_cents=entry.weighted_average_cost_cents,
        created_by=created_by,
    )


def record_movement(
    *,
    company_id: str,
    shop_id: str,
    transaction_type: MovementType | str,
    direction: Direction | str,
    created_by: str,
    finished_good_id: str | None = None,
    finished_good_qty: int = 0,
    components: list[dict] | None = None,
    occurred_at: datetime | str | None = None,
    status: MovementStatus | str = MovementStatus.COMPLETED,
    note: str | None = None,
) -> StockMovement:
    """
    Persist a stock movement and, when Completed, post it through the ledger.

    The finished good is moved only if it has a ledger entry (composite
    products usually don't); every component must have one. Out movements
    raise InsufficientStockError when stock is short, rolling back the whole
    movement.

    components: [{"product_id": ..., "quantity": ...}]
    """
    transaction_type = _coerce_enum(MovementType, transaction_type, "transaction_type")
    direction = _coerce_enum(Direction, direction, "direction")
    status = _coerce_enum(MovementStatus, status, "transaction_status")
    if status not in RECORDABLE_STATUSES:
        raise MovementValidationError(
            f"A movement cannot be recorded as {status.value}; record it Completed and mark it returned"
        )

    if not company_id or not shop_id:
        raise MovementValidationError("company_id and shop_id are required")
    if not isinstance(finished_good_qty, int) or finished_good_qty < 0:
        raise MovementValidationError("finished_good_qty must be a non-negative integer")

    component_inputs = []
    for raw in components or []:
        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        if not product_id:
            raise MovementValidationError("component product_id is required")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise MovementValidationError(f"component {product_id}: quantity must be a positive integer")
        component_inputs.append((product_id, quantity))

    if not finished_good_id and not component_inputs:
        raise MovementValidationError("A movement needs a finished good or at least one component")

    if occurred_at is None:
        occurred_dt = utcnow()
    else:
        try:
            occurred_dt = normalize_datetime(occurred_at)
        except ValueError:
            raise MovementValidationError("Invalid occurred_at format")

    def _work():
        movement = StockMovement(
            transaction_code=code_service.allocate(
                company_id, shop_id, created_by, CODE_PREFIXES[transaction_type]
            ),
            company_id=company_id,
            shop_id=shop_id,
            transaction_type=transaction_type,
            direction=direction,
            transaction_status=status,
            finished_good_id=finished_good_id,
            finished_good_qty=finished_good_qty,
            transaction_date_time=occurred_dt,
            note=note,
            created_by=created_by,
        )
        db.session.add(movement)

        touched = []
        if finished_good_id and finished_good_qty and status == MovementStatus.COMPLETED:
            entry = ledger_service.get_entry_for_product(company_id, shop_id, finished_good_id, lock=True)
            if entry is not None:
                touched.append(_apply(entry, direction, finished_good_qty, created_by))

        for product_id, quantity in component_inputs:
            entry = ledger_service.get_entry_for_product(company_id, shop_id, product_id, lock=True)
            if entry is None:
                raise LedgerEntryNotFoundError(product_id, shop_id)
            movement.components.append(StockMovementComponent(
                product_id=product_id,
                quantity=quantity,
                current_wac_cents=entry.weighted_average_cost_cents,
            ))
            if status == MovementStatus.COMPLETED:
                touched.append(_apply(entry, direction, quantity, created_by))

        db.session.flush()

        for entry in touched:
            event_service.enqueue("updateInventory", company_id, shop_id, entry.to_dict())
        event_service.enqueue("newStockMovement", company_id, shop_id, movement.to_dict())
        audit_service.record(
            company_id, shop_id, created_by,
            f"{transaction_type.value} recorded: {movement.transaction_code}",
        )

        db.session.commit()
        return movement

    return run_with_retry(_work)


def mark_returned(
    transaction_code: str,
    company_id: str,
    shop_id: str,
    actor: str,
    *,
    partial: bool = False,
) -> StockMovement:
    """
    Flag a Completed sale as Returned or Partially Returned.

    Only the status changes. The returned quantity is posted separately as
    a Return movement, so the ledger is not touched here.
    """
    target = MovementStatus.PARTIALLY_RETURNED if partial else MovementStatus.RETURNED

    def _work():
        movement = (
            db.session.query(StockMovement)
            .filter_by(transaction_code=transaction_code, company_id=company_id, shop_id=shop_id)
            .first()
        )
        if movement is None:
            raise MovementNotFoundError(transaction_code)
        if target not in RETURN_TRANSITIONS.get(movement.transaction_status, set()):
            raise MovementStateError(transaction_code, movement.transaction_status, target)

        movement.transaction_status = target
        db.session.flush()

        event_service.enqueue("updateStockMovement", company_id, shop_id, movement.to_dict())
        audit_service.record(company_id, shop_id, actor, f"{transaction_code} marked {target.value}")

        db.session.commit()
        return movement

    return run_with_retry(_work)


def list_movements(
    company_id: str,
    shop_id: str,
    statuses: list[MovementStatus] | None = None,
) -> list[StockMovement]:
    query = db.session.query(StockMovement).filter_by(company_id=company_id, shop_id=shop_id)
    if statuses:
        query = query.filter(StockMovement.transaction_status.in_(statuses))
    return query.order_by(StockMovement.transaction_date_time.asc(), StockMovement.id.asc()).all()
