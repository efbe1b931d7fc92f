# Overview: Goods-receipt notes (GRN); applies and reverses receipts against the stock ledger.

"""
GRN Service

LIFECYCLE (header):
1. Pending: created, stock already received into the ledger
2. Completed: settled with the supplier; ledger untouched
3. Cancelled: every line reversed out of the ledger (terminal)

Pending -> Completed, Pending -> Cancelled, Completed -> Cancelled.
"Updated" is a line status only: lines rewritten by update_receipt.

ATOMICITY: every mutating operation runs as a single unit of work inside
run_with_retry. Header, lines, ledger entries, code allocations, audit
entry and outbox events commit together or not at all.

VALIDATION FIRST: input shape, supplier and product eligibility are all
checked before the first write.
"""

from dataclasses import dataclass, asdict
from datetime import datetime

from ..extensions import db
from ..models import ReceiptHeader, ReceiptLine, ReceiptStatus, Direction, Product, Supplier
from . import code_service, ledger_service, audit_service, event_service, catalog_service
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import EmptyCostPolicy, LedgerKey, LedgerEntryNotFoundError
from shopstock.time_utils import utcnow, normalize_datetime


GRN_PREFIX = "GRN"
LINE_PREFIX = "RMT"

ALLOWED_TRANSITIONS = {
    ReceiptStatus.PENDING: {ReceiptStatus.COMPLETED, ReceiptStatus.CANCELLED},
    ReceiptStatus.COMPLETED: {ReceiptStatus.CANCELLED},
    ReceiptStatus.CANCELLED: set(),
}


class ReceiptError(Exception):
    pass


class ReceiptValidationError(ReceiptError):
    """Raised when receipt input fails validation."""
    pass


class ReceiptNotFoundError(ReceiptError):
    def __init__(self, transaction_code: str):
        self.transaction_code = transaction_code
        super().__init__(f"GRN {transaction_code} not found")


class ReceiptStateError(ReceiptError):
    """Raised when an operation is invalid for the receipt's current status."""

    def __init__(self, transaction_code: str, status: ReceiptStatus, target: str):
        self.transaction_code = transaction_code
        self.status = status
        super().__init__(f"GRN {transaction_code} is {status.value}; cannot {target}")


class ProductNotGRNEligibleError(ReceiptError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} cannot be received through a GRN")


@dataclass(frozen=True)
class ReceiptLineInput:
    category_id: str | None
    product_id: str
    unit_cost_cents: int
    quantity: int
    remarks: str | None = None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_lines(raw_lines) -> list[ReceiptLineInput]:
    """Validate request line dicts into ReceiptLineInput values (no DB access)."""
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ReceiptValidationError("At least one line is required")

    parsed = []
    for index, raw in enumerate(raw_lines, start=1):
        if isinstance(raw, ReceiptLineInput):
            raw = asdict(raw)
        if not isinstance(raw, dict):
            raise ReceiptValidationError(f"Line {index} must be an object")

        product_id = raw.get("product_id")
        if not product_id:
            raise ReceiptValidationError(f"Line {index}: product_id is required")

        quantity = raw.get("quantity")
        if not _is_int(quantity) or quantity <= 0:
            raise ReceiptValidationError(f"Line {index}: quantity must be a positive integer")

        unit_cost_cents = raw.get("unit_cost_cents")
        if not _is_int(unit_cost_cents) or unit_cost_cents < 0:
            raise ReceiptValidationError(f"Line {index}: unit_cost_cents must be a non-negative integer")

        parsed.append(ReceiptLineInput(
            category_id=raw.get("category_id") or None,
            product_id=str(product_id),
            unit_cost_cents=unit_cost_cents,
            quantity=quantity,
            remarks=raw.get("remarks"),
        ))
    return parsed


def _parse_transaction_date_time(value) -> datetime:
    if value is None or value == "":
        return utcnow()
    try:
        return normalize_datetime(value)
    except ValueError:
        raise ReceiptValidationError("Invalid transaction_date_time format")


def _require_scope(company_id: str, shop_id: str) -> None:
    if not company_id or not shop_id:
        raise ReceiptValidationError("company_id and shop_id are required")
    shop = catalog_service.find_shop(shop_id)
    if shop is None or shop.company_id != company_id:
        raise ReceiptValidationError(f"Shop {shop_id} does not belong to company {company_id}")


def _check_products(company_id: str, lines: list[ReceiptLineInput]) -> dict[str, Product]:
    """Every product must exist in the company and be GRN-eligible."""
    products = {}
    for line in lines:
        product = catalog_service.get_product(line.product_id, company_id)
        if not product.is_grn_eligible:
            raise ProductNotGRNEligibleError(product.product_id)
        if not (line.category_id or product.category_id):
            raise ReceiptValidationError(f"Product {product.product_id} has no category")
        products[product.product_id] = product
    return products


def _get_header(transaction_code: str, company_id: str, shop_id: str, *, lock: bool = False) -> ReceiptHeader:
    query = db.session.query(ReceiptHeader).filter_by(
        transaction_code=transaction_code,
        company_id=company_id,
        shop_id=shop_id,
    )
    if lock:
        query = lock_for_update(query)
    header = query.first()
    if header is None:
        raise ReceiptNotFoundError(transaction_code)
    return header


def _get_lines(header: ReceiptHeader) -> list[ReceiptLine]:
    return (
        db.session.query(ReceiptLine)
        .filter_by(
            transaction_code=header.transaction_code,
            company_id=header.company_id,
            shop_id=header.shop_id,
        )
        .order_by(ReceiptLine.id.asc())
        .all()
    )


def _ensure_transition(header: ReceiptHeader, target: ReceiptStatus, action: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(header.transaction_status, set()):
        raise ReceiptStateError(header.transaction_code, header.transaction_status, action)


def _receive_lines(
    header: ReceiptHeader,
    lines: list[ReceiptLineInput],
    products: dict[str, Product],
    *,
    status: ReceiptStatus,
    line_event: str,
) -> int:
    """Write receipt lines and post each into the ledger, in input order. Returns the total cost."""
    total = 0
    for item in lines:
        product = products[item.product_id]
        category_id = item.category_id or product.category_id
        line_total = item.unit_cost_cents * item.quantity
        total += line_total

        line = ReceiptLine(
            line_code=code_service.allocate(header.company_id, header.shop_id, header.created_by, LINE_PREFIX),
            transaction_code=header.transaction_code,
            company_id=header.company_id,
            shop_id=header.shop_id,
            supplier_id=header.supplier_id,
            category_id=category_id,
            product_id=item.product_id,
            transaction_date_time=header.transaction_date_time,
            transaction_type="GRN",
            direction=Direction.IN,
            transaction_status=status,
            unit_cost_cents=item.unit_cost_cents,
            quantity=item.quantity,
            total_cost_cents=line_total,
            remarks=item.remarks,
            created_by=header.created_by,
        )
        db.session.add(line)

        key = LedgerKey(header.company_id, header.shop_id, category_id, item.product_id)
        entry = ledger_service.get_entry(
            key.company_id, key.shop_id, key.category_id, key.product_id, lock=True
        )
        is_new = entry is None
        entry = ledger_service.apply_incoming(
            entry,
            key=key,
            quantity=item.quantity,
            unit_cost_cents=item.unit_cost_cents,
            created_by=header.created_by,
            supplier_id=header.supplier_id,
            minimum_quantity=product.minimum_quantity,
        )

        event_service.enqueue(line_event, header.company_id, header.shop_id, line.to_dict())
        event_service.enqueue(
            "newInventory" if is_new else "updateInventory",
            header.company_id, header.shop_id, entry.to_dict(),
        )
    return total


def _reverse_line(line: ReceiptLine, empty_cost: EmptyCostPolicy):
    entry = ledger_service.get_entry(
        line.company_id, line.shop_id, line.category_id, line.product_id, lock=True
    )
    if entry is None:
        raise LedgerEntryNotFoundError(line.product_id, line.shop_id)
    return ledger_service.apply_outgoing(
        entry,
        quantity=line.quantity,
        unit_cost_cents=line.unit_cost_cents,
        empty_cost=empty_cost,
    )


def create_receipt(
    *,
    company_id: str,
    shop_id: str,
    supplier_id: str,
    created_by: str,
    lines,
    transaction_date_time: datetime | str | None = None,
) -> ReceiptHeader:
    """
    Create a Pending GRN and receive every line into the ledger.

    Args:
        company_id / shop_id: Receiving scope
        supplier_id: Supplier the goods came from (must exist in the company)
        created_by: Acting user id
        lines: [{category_id, product_id, unit_cost_cents, quantity, remarks}]
        transaction_date_time: Business time of the receipt (default: now)

    Raises:
        ReceiptValidationError, SupplierNotFoundError, ProductNotFoundError,
        ProductNotGRNEligibleError
    """
    line_inputs = parse_lines(lines)
    occurred_at = _parse_transaction_date_time(transaction_date_time)
    if not supplier_id:
        raise ReceiptValidationError("supplier_id is required")
    if not created_by:
        raise ReceiptValidationError("created_by is required")

    def _work():
        _require_scope(company_id, shop_id)
        catalog_service.get_supplier(supplier_id, company_id)
        products = _check_products(company_id, line_inputs)

        header = ReceiptHeader(
            transaction_code=code_service.allocate(company_id, shop_id, created_by, GRN_PREFIX),
            company_id=company_id,
            shop_id=shop_id,
            supplier_id=supplier_id,
            transaction_date_time=occurred_at,
            transaction_type="GRN",
            direction=Direction.IN,
            transaction_status=ReceiptStatus.PENDING,
            created_by=created_by,
        )
        db.session.add(header)
        db.session.flush()

        total = _receive_lines(
            header, line_inputs, products,
            status=ReceiptStatus.PENDING,
            line_event="newGRNTransaction",
        )
        header.total_cost_cents = total
        header.outstanding_amount_cents = total
        db.session.flush()

        event_service.enqueue("newGRN", company_id, shop_id, header.to_dict())
        audit_service.record(company_id, shop_id, created_by, f"GRN Created: {header.transaction_code}")

        db.session.commit()
        return header

    return run_with_retry(_work)


def cancel_receipt(transaction_code: str, company_id: str, shop_id: str, actor: str) -> ReceiptHeader:
    """
    Cancel a Pending or Completed GRN, reversing every line out of the ledger.

    Quantity that has already been consumed cannot be reversed: the first
    line that would drive a ledger entry negative raises
    InsufficientStockError and the whole cancellation is rolled back.
    An emptied entry keeps its last WAC.
    """
    def _work():
        header = _get_header(transaction_code, company_id, shop_id, lock=True)
        _ensure_transition(header, ReceiptStatus.CANCELLED, "cancel")

        for line in _get_lines(header):
            entry = _reverse_line(line, EmptyCostPolicy.HOLD)
            line.transaction_status = ReceiptStatus.CANCELLED
            line.direction = Direction.OUT
            event_service.enqueue("updateInventory", company_id, shop_id, entry.to_dict())
            event_service.enqueue("cancelGRNTransaction", company_id, shop_id, line.to_dict())

        header.transaction_status = ReceiptStatus.CANCELLED
        db.session.flush()

        event_service.enqueue("cancelGRN", company_id, shop_id, header.to_dict())
        audit_service.record(company_id, shop_id, actor, f"GRN Cancelled: {transaction_code}")

        db.session.commit()
        return header

    return run_with_retry(_work)


def settle_receipt(transaction_code: str, company_id: str, shop_id: str, actor: str) -> ReceiptHeader:
    """Mark a Pending GRN and its lines Completed. The ledger is not touched."""
    def _work():
        header = _get_header(transaction_code, company_id, shop_id, lock=True)
        _ensure_transition(header, ReceiptStatus.COMPLETED, "settle")

        for line in _get_lines(header):
            line.transaction_status = ReceiptStatus.COMPLETED
            event_service.enqueue("settleGRNTransaction", company_id, shop_id, line.to_dict())

        header.transaction_status = ReceiptStatus.COMPLETED
        db.session.flush()

        event_service.enqueue("settleGRN", company_id, shop_id, header.to_dict())
        audit_service.record(company_id, shop_id, actor, f"GRN Settled: {transaction_code}")

        db.session.commit()
        return header

    return run_with_retry(_work)


def update_receipt(
    transaction_code: str,
    company_id: str,
    shop_id: str,
    *,
    supplier_id: str,
    lines,
    actor: str,
    transaction_date_time: datetime | str | None = None,
) -> ReceiptHeader:
    """
    Replace the lines of a Pending GRN.

    Existing lines are reversed out of the ledger (an emptied entry has its
    WAC reset to 0) and deleted; the new lines are received with status
    Updated. Header supplier, date, totals and created_by are overwritten.
    """
    line_inputs = parse_lines(lines)
    occurred_at = _parse_transaction_date_time(transaction_date_time)
    if not supplier_id:
        raise ReceiptValidationError("supplier_id is required")
    if not actor:
        raise ReceiptValidationError("actor is required")

    def _work():
        header = _get_header(transaction_code, company_id, shop_id, lock=True)
        if header.transaction_status != ReceiptStatus.PENDING:
            raise ReceiptStateError(transaction_code, header.transaction_status, "update")

        catalog_service.get_supplier(supplier_id, company_id)
        products = _check_products(company_id, line_inputs)

        for line in _get_lines(header):
            entry = _reverse_line(line, EmptyCostPolicy.RESET)
            event_service.enqueue("reverseInventoryUpdate", company_id, shop_id, entry.to_dict())
            db.session.delete(line)
        db.session.flush()

        header.supplier_id = supplier_id
        header.transaction_date_time = occurred_at
        header.created_by = actor

        total = _receive_lines(
            header, line_inputs, products,
            status=ReceiptStatus.UPDATED,
            line_event="updateGRNTransaction",
        )
        header.total_cost_cents = total
        header.outstanding_amount_cents = total
        db.session.flush()

        event_service.enqueue("updateGRN", company_id, shop_id, header.to_dict())
        audit_service.record(company_id, shop_id, actor, f"GRN Updated: {transaction_code}")

        db.session.commit()
        return header

    return run_with_retry(_work)


def list_receipts() -> list[ReceiptHeader]:
    return db.session.query(ReceiptHeader).order_by(ReceiptHeader.id.desc()).all()


def list_receipts_by_company(company_id: str) -> list[ReceiptHeader]:
    return (
        db.session.query(ReceiptHeader)
        .filter_by(company_id=company_id)
        .order_by(ReceiptHeader.id.desc())
        .all()
    )


def list_receipts_by_shop(company_id: str, shop_id: str) -> list[ReceiptHeader]:
    return (
        db.session.query(ReceiptHeader)
        .filter_by(company_id=company_id, shop_id=shop_id)
        .order_by(ReceiptHeader.id.desc())
        .all()
    )


def list_receipts_by_supplier(company_id: str, shop_id: str, supplier_id: str) -> list[ReceiptHeader]:
    return (
        db.session.query(ReceiptHeader)
        .filter_by(company_id=company_id, shop_id=shop_id, supplier_id=supplier_id)
        .order_by(ReceiptHeader.id.desc())
        .all()
    )


def get_receipt_with_lines(transaction_code: str, company_id: str, shop_id: str) -> dict:
    header = _get_header(transaction_code, company_id, shop_id)
    return {
        "grn": header.to_dict(),
        "transactions": [line.to_dict() for line in _get_lines(header)],
    }


def get_receipt_with_details(transaction_code: str, company_id: str, shop_id: str) -> dict:
    """Receipt and lines plus the company, shop and supplier records they reference."""
    result = get_receipt_with_lines(transaction_code, company_id, shop_id)
    company = catalog_service.find_company(company_id)
    shop = catalog_service.find_shop(shop_id)
    supplier = db.session.get(Supplier, result["grn"]["supplier_id"])
    result["company"] = company.to_dict() if company else None
    result["shop"] = shop.to_dict() if shop else None
    result["supplier"] = supplier.to_dict() if supplier else None
    return result
