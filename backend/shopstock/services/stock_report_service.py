# Overview: Period stock reports derived by replaying stock movements and GRN lines.

"""
Stock Report Semantics (authoritative)

Sources replayed for a (company, shop):
- StockMovement rows with status Completed or Partially Returned
- ReceiptLine rows with status Completed (type GRN)

Impact of a transaction on a product: +qty for direction In, -qty for Out,
whether the product is the finished good or a BOM component.

Per ledger entry in scope:
- beginning  = current_quantity - sum(impact before range start)
- in range:    Purchase/GRN -> incoming (abs), Sales -> outgoing (abs),
               Adjustment -> adjustments (signed), Wastage -> wastage (abs),
               Return -> returns (abs)
- ending     = beginning + incoming - outgoing + adjustments - wastage + returns

Range bounds are inclusive: start date 00:00:00 through end date 23:59:59.999999.
Entries whose product cannot be resolved are skipped. Read-only with
respect to the ledger; generating a report writes an audit entry.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from ..extensions import db
from ..models import (
    StockMovement,
    MovementStatus,
    MovementType,
    ReceiptLine,
    ReceiptStatus,
    Direction,
    Product,
)
from . import audit_service, ledger_service
from shopstock.time_utils import parse_iso_date, normalize_datetime, to_utc_z, utcnow


INVALID_DATE_MESSAGE = "Invalid date format. Please use YYYY-MM-DD format."
INVALID_MONTH_MESSAGE = "Invalid year or month format. Month should be 1-12."

REPORTABLE_MOVEMENT_STATUSES = [MovementStatus.COMPLETED, MovementStatus.PARTIALLY_RETURNED]


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


@dataclass
class _Replayed:
    """A movement or receipt line reduced to what the replay needs."""
    occurred_at: datetime
    transaction_type: str
    source: object

    def impact(self, product_id: str) -> int:
        if isinstance(self.source, ReceiptLine):
            if self.source.product_id != product_id:
                return 0
            qty = self.source.quantity or 0
            return qty if self.source.direction == Direction.IN else -qty
        return self.source.quantity_impact(product_id)


def _coerce_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_iso_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise ReportError(INVALID_DATE_MESSAGE)
    return parsed


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def daily_range(value) -> tuple[date, date]:
    day = _coerce_date(value)
    return day, day


def weekly_range(value) -> tuple[date, date]:
    """Sunday through Saturday of the week containing value."""
    day = _coerce_date(value)
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def monthly_range(year, month) -> tuple[date, date]:
    try:
        year_num = int(year)
        month_num = int(month)
    except (TypeError, ValueError):
        raise ReportError(INVALID_MONTH_MESSAGE)
    if not 1 <= month_num <= 12 or not 1 <= year_num <= 9999:
        raise ReportError(INVALID_MONTH_MESSAGE)
    last_day = calendar.monthrange(year_num, month_num)[1]
    return date(year_num, month_num, 1), date(year_num, month_num, last_day)


def _load_history(company_id: str, shop_id: str, until: datetime) -> list[_Replayed]:
    movements = (
        db.session.query(StockMovement)
        .filter(
            StockMovement.company_id == company_id,
            StockMovement.shop_id == shop_id,
            StockMovement.transaction_status.in_(REPORTABLE_MOVEMENT_STATUSES),
            StockMovement.transaction_date_time <= until,
        )
        .all()
    )
    lines = (
        db.session.query(ReceiptLine)
        .filter(
            ReceiptLine.company_id == company_id,
            ReceiptLine.shop_id == shop_id,
            ReceiptLine.transaction_status == ReceiptStatus.COMPLETED,
            ReceiptLine.transaction_date_time <= until,
        )
        .all()
    )

    history = [
        _Replayed(m.transaction_date_time, m.transaction_type.value, m) for m in movements
    ]
    history.extend(
        _Replayed(line.transaction_date_time, MovementType.GRN.value, line) for line in lines
    )
    history.sort(key=lambda r: r.occurred_at)
    return history


def compute_stock_report(
    company_id: str,
    shop_id: str,
    start_date,
    end_date,
    category_id: str | None = None,
    *,
    actor: str | None = None,
) -> list[dict]:
    """
    Opening, movement buckets and closing stock per product for a date range.

    Rows are sorted by product name. Raises ReportError for malformed or
    reversed dates.
    """
    start = _coerce_date(start_date)
    end = _coerce_date(end_date)
    if start > end:
        raise ReportError("startDate must be on or before endDate")
    range_start, range_end = day_bounds(start, end)

    entries = ledger_service.list_entries(company_id, shop_id, category_id)
    history = _load_history(company_id, shop_id, range_end)

    rows = []
    for entry in entries:
        product = db.session.get(Product, entry.product_id)
        if product is None:
            continue

        beginning = entry.total_quantity
        incoming = outgoing = adjustments = wastage = returns = 0

        for item in history:
            impact = item.impact(entry.product_id)
            if impact == 0:
                continue
            if item.occurred_at < range_start:
                beginning -= impact
                continue

            if item.transaction_type in (MovementType.PURCHASE.value, MovementType.GRN.value):
                incoming += abs(impact)
            elif item.transaction_type == MovementType.SALES.value:
                outgoing += abs(impact)
            elif item.transaction_type == MovementType.ADJUSTMENT.value:
                adjustments += impact
            elif item.transaction_type == MovementType.WASTAGE.value:
                wastage += abs(impact)
            elif item.transaction_type == MovementType.RETURN.value:
                returns += abs(impact)

        ending = beginning + incoming - outgoing + adjustments - wastage + returns
        rows.append({
            "product_id": entry.product_id,
            "product_name": product.name,
            "category_id": entry.category_id,
            "beginning_stock": beginning,
            "incoming_stock": incoming,
            "outgoing_stock": outgoing,
            "adjustments": adjustments,
            "wastage": wastage,
            "returns": returns,
            "ending_stock": ending,
            "current_stock": entry.total_quantity,
            "uom_id": product.uom_id or "N/A",
            "min_qty": entry.minimum_quantity,
        })

    rows.sort(key=lambda r: r["product_name"].lower())

    audit_service.record(
        company_id, shop_id, actor or "system",
        f"Generated inventory stock report from {start.isoformat()} to {end.isoformat()}",
    )
    db.session.commit()
    return rows


def daily_report(company_id: str, shop_id: str, day, category_id: str | None = None, *, actor=None):
    start, end = daily_range(day)
    return start, end, compute_stock_report(company_id, shop_id, start, end, category_id, actor=actor)


def weekly_report(company_id: str, shop_id: str, day, category_id: str | None = None, *, actor=None):
    start, end = weekly_range(day)
    return start, end, compute_stock_report(company_id, shop_id, start, end, category_id, actor=actor)


def monthly_report(company_id: str, shop_id: str, year, month, category_id: str | None = None, *, actor=None):
    start, end = monthly_range(year, month)
    return start, end, compute_stock_report(company_id, shop_id, start, end, category_id, actor=actor)


def low_stock_report(
    company_id: str,
    shop_id: str,
    category_id: str | None = None,
    *,
    actor: str | None = None,
) -> list[dict]:
    """Entries at or below their minimum quantity, largest deficit first."""
    rows = []
    for entry in ledger_service.list_entries(company_id, shop_id, category_id):
        if entry.total_quantity > entry.minimum_quantity:
            continue
        product = db.session.get(Product, entry.product_id)
        if product is None:
            continue
        rows.append({
            "product_id": entry.product_id,
            "product_name": product.name,
            "category_id": entry.category_id,
            "current_stock": entry.total_quantity,
            "minimum_quantity": entry.minimum_quantity,
            "deficit": entry.minimum_quantity - entry.total_quantity,
            "uom_id": product.uom_id or "N/A",
        })

    rows.sort(key=lambda r: r["deficit"], reverse=True)

    audit_service.record(company_id, shop_id, actor or "system", "Generated low stock inventory report")
    db.session.commit()
    return rows


class NoInventoryError(ReportError):
    """Raised when a shop has no ledger entries to report on."""
    pass


INVALID_PAST_DATE_MESSAGE = "Invalid pastDate provided. It must be a valid date in the past."
DEFAULT_MOVEMENT_WINDOW = timedelta(days=7)


def _coerce_past_date(value, now: datetime) -> datetime:
    if value is None or value == "":
        return now - DEFAULT_MOVEMENT_WINDOW
    if isinstance(value, date) and not isinstance(value, datetime):
        past = datetime.combine(value, time.min)
    else:
        try:
            past = normalize_datetime(value)
        except ValueError:
            raise ReportError(INVALID_PAST_DATE_MESSAGE)
    if past > now:
        raise ReportError(INVALID_PAST_DATE_MESSAGE)
    return past


def inventory_movement_report(
    company_id: str,
    shop_id: str,
    past_date=None,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime, list[dict]]:
    """
    Purchases and sales per ledger entry since past_date (default: 7 days ago).

    purchases: non-cancelled GRN lines with direction In
    sales: Out sales of the product as the finished good (non-raw products
           and requires_grn products), plus its use as a component of
           sales (raw materials)
    opening = current - purchases + sales

    Rows are sorted by sales, highest first. Returns (past_date, now, rows).
    Raises NoInventoryError when the shop has no ledger entries.
    """
    now = now or utcnow()
    past = _coerce_past_date(past_date, now)

    entries = ledger_service.list_entries(company_id, shop_id)
    if not entries:
        raise NoInventoryError("No inventory items found.")

    lines = (
        db.session.query(ReceiptLine)
        .filter(
            ReceiptLine.company_id == company_id,
            ReceiptLine.shop_id == shop_id,
            ReceiptLine.transaction_status != ReceiptStatus.CANCELLED,
            ReceiptLine.transaction_type == MovementType.GRN.value,
            ReceiptLine.direction == Direction.IN,
            ReceiptLine.transaction_date_time >= past,
            # GRN lines dated later today still count
            ReceiptLine.transaction_date_time < now + timedelta(days=1),
        )
        .all()
    )
    sales = (
        db.session.query(StockMovement)
        .filter(
            StockMovement.company_id == company_id,
            StockMovement.shop_id == shop_id,
            StockMovement.transaction_status != MovementStatus.CANCELLED,
            StockMovement.transaction_type == MovementType.SALES,
            StockMovement.direction == Direction.OUT,
            StockMovement.transaction_date_time >= past,
            StockMovement.transaction_date_time <= now,
        )
        .all()
    )

    rows = []
    for entry in entries:
        product = db.session.get(Product, entry.product_id)
        if product is None or product.company_id != company_id:
            continue

        is_raw = "raw" in (product.product_type or "").lower()
        purchased = sum(line.quantity for line in lines if line.product_id == entry.product_id)

        sold = 0
        if not is_raw or product.requires_grn:
            sold += sum(
                m.finished_good_qty or 0 for m in sales if m.finished_good_id == entry.product_id
            )
        if is_raw:
            for movement in sales:
                used = next((c for c in movement.components if c.product_id == entry.product_id), None)
                if used is not None:
                    sold += used.quantity

        minimum = entry.minimum_quantity or product.minimum_quantity or 0
        rows.append({
            "product_id": entry.product_id,
            "product_name": product.name,
            "product_type": product.product_type,
            "plu_code": product.plu_code,
            "category_id": product.category_id,
            "opening_inventory": entry.total_quantity - purchased + sold,
            "current_inventory": entry.total_quantity,
            "purchases_during_period": purchased,
            "sales_during_period": sold,
            "needs_restock": entry.total_quantity < minimum,
        })

    rows.sort(key=lambda r: r["sales_during_period"], reverse=True)

    audit_service.record(
        company_id, shop_id, actor or "system",
        f"Inventory movement report generated from {to_utc_z(past)} to {to_utc_z(now)}",
    )
    db.session.commit()
    return past, now, rows
