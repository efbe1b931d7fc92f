# Overview: Stock ledger primitives; the only code allowed to change quantity or WAC.

from __future__ import annotations

"""
Stock Ledger Invariants (authoritative)

Ownership:
- apply_incoming / apply_outgoing are the ONLY mutation entry points for
  StockLedgerEntry quantity and cost fields. GRN, sales, wastage, adjustment
  and return flows all call through here so WAC math cannot diverge.

Numeric policy:
- Costs are integer cents, rounded half-up after every mutation.
- Quantities are exact integers.

Weighted average cost:
- incoming: (old_qty * old_wac + qty * unit_cost) / (old_qty + qty)
- outgoing: (old_qty * old_wac - qty * unit_cost) / (old_qty - qty)
  floored at 0; when the result quantity is exactly 0 the cost is either
  held (EmptyCostPolicy.HOLD) or reset to 0 (EmptyCostPolicy.RESET).

Guards:
- A mutation that would leave total_quantity < 0 raises and leaves the
  entry untouched. The caller's transaction is rolled back by run_with_retry.
"""

import enum
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import StockLedgerEntry
from .concurrency import lock_for_update
from . import code_service


LEDGER_CODE_PREFIX = "INV"


class LedgerError(Exception):
    """Base class for ledger guard violations."""
    pass


class InsufficientStockError(LedgerError):
    """Raised when an outgoing movement would drive quantity below zero."""

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available {available}, requested {requested}"
        )


class NegativeQuantityError(LedgerError):
    """Raised when an incoming movement would leave a negative quantity."""

    def __init__(self, product_id: str, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"Quantity for product {product_id} would become {quantity}")


class LedgerEntryNotFoundError(LedgerError):
    """Raised when a ledger entry is required but absent."""

    def __init__(self, product_id: str, shop_id: str):
        self.product_id = product_id
        self.shop_id = shop_id
        super().__init__(f"No stock ledger entry for product {product_id} in shop {shop_id}")


class EmptyCostPolicy(enum.Enum):
    """What happens to WAC when an outgoing movement empties the entry."""
    HOLD = "hold"    # keep the last cost (cancellations, sales)
    RESET = "reset"  # collapse to 0 (receipt edits re-cost from scratch)


@dataclass(frozen=True)
class LedgerKey:
    company_id: str
    shop_id: str
    category_id: str
    product_id: str


def round_cents(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded half-up to a whole cent."""
    value = Decimal(numerator) / Decimal(denominator)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def get_entry(
    company_id: str,
    shop_id: str,
    category_id: str,
    product_id: str,
    *,
    lock: bool = False,
) -> StockLedgerEntry | None:
    query = db.session.query(StockLedgerEntry).filter_by(
        company_id=company_id,
        shop_id=shop_id,
        category_id=category_id,
        product_id=product_id,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_entry_for_product(
    company_id: str, shop_id: str, product_id: str, *, lock: bool = False
) -> StockLedgerEntry | None:
    """Ledger lookup when the caller does not know the category."""
    query = db.session.query(StockLedgerEntry).filter_by(
        company_id=company_id,
        shop_id=shop_id,
        product_id=product_id,
    ).order_by(StockLedgerEntry.id.asc())
    if lock:
        query = lock_for_update(query)
    return query.first()


def list_entries(company_id: str, shop_id: str, category_id: str | None = None) -> list[StockLedgerEntry]:
    query = db.session.query(StockLedgerEntry).filter_by(company_id=company_id, shop_id=shop_id)
    if category_id:
        query = query.filter(StockLedgerEntry.category_id == category_id)
    return query.order_by(StockLedgerEntry.id.asc()).all()


def apply_incoming(
    entry: StockLedgerEntry | None,
    *,
    key: LedgerKey,
    quantity: int,
    unit_cost_cents: int,
    created_by: str,
    supplier_id: str | None = None,
    minimum_quantity: int | None = None,
) -> StockLedgerEntry:
    """
    Add quantity at unit_cost_cents, creating the entry on first receipt.

    supplier_id marks a purchase: it is unioned into supplier_ids and the
    unit cost becomes last_purchase_cost_cents. Non-purchase inflows
    (returns, positive adjustments) pass supplier_id=None.
    """
    if entry is None:
        if quantity < 0:
            raise NegativeQuantityError(key.product_id, quantity)
        if minimum_quantity is None:
            minimum_quantity = current_app.config.get("DEFAULT_MINIMUM_QUANTITY", 0)
        try:
            with db.session.begin_nested():
                entry = StockLedgerEntry(
                    entry_code=code_service.allocate(
                        key.company_id, key.shop_id, created_by, LEDGER_CODE_PREFIX
                    ),
                    company_id=key.company_id,
                    shop_id=key.shop_id,
                    category_id=key.category_id,
                    product_id=key.product_id,
                    supplier_ids=[supplier_id] if supplier_id else [],
                    total_quantity=quantity,
                    weighted_average_cost_cents=unit_cost_cents,
                    last_purchase_cost_cents=unit_cost_cents if supplier_id else 0,
                    minimum_quantity=minimum_quantity,
                    toggle="enabled",
                    created_by=created_by,
                )
                db.session.add(entry)
            return entry
        except IntegrityError:
            # Another writer created the entry first; apply on top of theirs
            entry = get_entry(key.company_id, key.shop_id, key.category_id, key.product_id, lock=True)
            if entry is None:
                raise

    old_qty = entry.total_quantity
    old_wac = entry.weighted_average_cost_cents
    new_qty = old_qty + quantity
    if new_qty < 0:
        raise NegativeQuantityError(entry.product_id, new_qty)

    if new_qty == 0:
        new_wac = old_wac
    else:
        new_wac = round_cents(old_qty * old_wac + quantity * unit_cost_cents, new_qty)

    entry.total_quantity = new_qty
    entry.weighted_average_cost_cents = max(new_wac, 0)
    if supplier_id:
        entry.last_purchase_cost_cents = unit_cost_cents
        suppliers = list(entry.supplier_ids or [])
        if supplier_id not in suppliers:
            # reassign so the JSON column is marked dirty
            entry.supplier_ids = suppliers + [supplier_id]

    db.session.flush()
    return entry


def apply_outgoing(
    entry: StockLedgerEntry,
    *,
    quantity: int,
    unit_cost_cents: int,
    empty_cost: EmptyCostPolicy = EmptyCostPolicy.HOLD,
) -> StockLedgerEntry:
    """
    Remove quantity valued at unit_cost_cents.

    Raises InsufficientStockError (entry untouched) when the result would be
    negative.
    """
    old_qty = entry.total_quantity
    old_wac = entry.weighted_average_cost_cents
    new_qty = old_qty - quantity
    if new_qty < 0:
        raise InsufficientStockError(entry.product_id, available=old_qty, requested=quantity)

    if new_qty == 0:
        new_wac = old_wac if empty_cost is EmptyCostPolicy.HOLD else 0
    else:
        new_wac = round_cents(old_qty * old_wac - quantity * unit_cost_cents, new_qty)

    entry.total_quantity = new_qty
    entry.weighted_average_cost_cents = max(new_wac, 0)

    db.session.flush()
    return entry
