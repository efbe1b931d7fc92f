# Overview: Pytest coverage for period stock reports and the low-stock report.

from datetime import date, datetime

import pytest

from conftest import receive
from shopstock.models import AuditLogEntry, MovementStatus
from shopstock.services import stock_report_service, receipt_service, movement_service
from shopstock.services.stock_report_service import ReportError, NoInventoryError


def _move(kind, direction, qty, when, product_id="P1", status=MovementStatus.COMPLETED):
    return movement_service.record_movement(
        company_id="C-A", shop_id="S-A1", transaction_type=kind, direction=direction,
        created_by="U-ADMIN", components=[{"product_id": product_id, "quantity": qty}],
        occurred_at=when, status=status,
    )


@pytest.fixture
def january_history(db_session, products):
    """
    P1: GRN +10 (Jan 1, settled), sale -3 (Jan 10), adjustment +2 (Jan 15),
    wastage -1 (Jan 20), return +1 (Jan 25). Ledger ends at 9.
    P2: GRN +4 (Jan 12, left Pending so it is not replayed).
    """
    receive([("P1", 10, 1000)], when=datetime(2024, 1, 1, 9, 0))
    receipt_service.settle_receipt("GRN-1", "C-A", "S-A1", "U-ADMIN")
    receive([("P2", 4, 500)], when=datetime(2024, 1, 12, 9, 0))

    _move("Sales", "Out", 3, datetime(2024, 1, 10, 12, 0))
    _move("Adjustment", "In", 2, datetime(2024, 1, 15, 12, 0))
    _move("Wastage", "Out", 1, datetime(2024, 1, 20, 12, 0))
    _move("Return", "In", 1, datetime(2024, 1, 25, 23, 59, 59))


def _row(rows, product_id):
    return next(r for r in rows if r["product_id"] == product_id)


def _reconciles(row):
    return row["ending_stock"] == (
        row["beginning_stock"] + row["incoming_stock"] - row["outgoing_stock"]
        + row["adjustments"] - row["wastage"] + row["returns"]
    )


class TestComputeStockReport:
    def test_full_range_buckets(self, db_session, january_history):
        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31")

        p1 = _row(rows, "P1")
        assert p1["current_stock"] == 9
        assert p1["beginning_stock"] == 9
        assert p1["incoming_stock"] == 10
        assert p1["outgoing_stock"] == 3
        assert p1["adjustments"] == 2
        assert p1["wastage"] == 1
        assert p1["returns"] == 1
        assert p1["ending_stock"] == 9 + 10 - 3 + 2 - 1 + 1
        assert p1["uom_id"] == "kg"
        assert p1["min_qty"] == 10

    def test_beginning_backs_out_history_before_start(self, db_session, january_history):
        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-11", "2024-01-20")

        p1 = _row(rows, "P1")
        # before Jan 11: GRN +10, sale -3
        assert p1["beginning_stock"] == 9 - (10 - 3)
        assert p1["incoming_stock"] == 0
        assert p1["outgoing_stock"] == 0
        assert p1["adjustments"] == 2
        assert p1["wastage"] == 1
        assert p1["returns"] == 0

    def test_end_date_is_inclusive_through_end_of_day(self, db_session, january_history):
        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-25", "2024-01-25")
        assert _row(rows, "P1")["returns"] == 1

    def test_pending_receipt_lines_are_not_replayed(self, db_session, january_history):
        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31")
        p2 = _row(rows, "P2")
        assert p2["incoming_stock"] == 0
        assert p2["beginning_stock"] == 4

    def test_partially_returned_counts_and_pending_does_not(self, db_session, products):
        receive([("P1", 10, 1000)], when=datetime(2024, 2, 1))
        sale = _move("Sales", "Out", 2, datetime(2024, 2, 2))
        movement_service.mark_returned(sale.transaction_code, "C-A", "S-A1", "U-ADMIN", partial=True)
        _move("Sales", "Out", 5, datetime(2024, 2, 3), status=MovementStatus.PENDING)

        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-02-01", "2024-02-28")
        p1 = _row(rows, "P1")
        assert p1["outgoing_stock"] == 2
        # the counted sale left the ledger
        assert p1["current_stock"] == 8

    def test_finished_good_movements_count_for_the_finished_good(self, db_session, products):
        receive([("P1", 10, 1000)], when=datetime(2024, 3, 1))
        movement_service.record_movement(
            company_id="C-A", shop_id="S-A1", transaction_type="Sales", direction="Out",
            created_by="U-ADMIN", finished_good_id="P1", finished_good_qty=4,
            occurred_at=datetime(2024, 3, 2),
        )

        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-03-01", "2024-03-31")
        assert _row(rows, "P1")["outgoing_stock"] == 4
        assert _row(rows, "P1")["current_stock"] == 6

    def test_every_row_reconciles(self, db_session, january_history):
        for start, end in [("2024-01-01", "2024-01-31"), ("2024-01-11", "2024-01-20"), ("2023-12-01", "2024-02-01")]:
            rows = stock_report_service.compute_stock_report("C-A", "S-A1", start, end)
            assert rows
            assert all(_reconciles(r) for r in rows)

    def test_rows_sorted_by_product_name(self, db_session, january_history):
        rows = stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31")
        assert [r["product_name"] for r in rows] == ["Butter", "Flour"]

    def test_category_filter(self, db_session, january_history):
        assert stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31", "CAT-X") == []
        assert len(stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31", "CAT-A")) == 2

    def test_records_audit_entry(self, db_session, january_history):
        stock_report_service.compute_stock_report("C-A", "S-A1", "2024-01-01", "2024-01-31", actor="U-STOCK")

        entry = db_session.query(AuditLogEntry).order_by(AuditLogEntry.id.desc()).first()
        assert entry.message == "Generated inventory stock report from 2024-01-01 to 2024-01-31"
        assert entry.created_by == "U-STOCK"

    @pytest.mark.parametrize("start,end", [
        ("2024-13-01", "2024-01-31"),
        ("yesterday", "2024-01-31"),
        (None, "2024-01-31"),
        ("2024-02-01", "2024-01-01"),
    ])
    def test_invalid_dates(self, db_session, products, start, end):
        with pytest.raises(ReportError):
            stock_report_service.compute_stock_report("C-A", "S-A1", start, end)


class TestRanges:
    def test_daily(self):
        assert stock_report_service.daily_range("2024-05-15") == (date(2024, 5, 15), date(2024, 5, 15))

    def test_weekly_is_sunday_to_saturday(self):
        # 2024-05-15 is a Wednesday
        assert stock_report_service.weekly_range("2024-05-15") == (date(2024, 5, 12), date(2024, 5, 18))
        assert stock_report_service.weekly_range("2024-05-12") == (date(2024, 5, 12), date(2024, 5, 18))
        assert stock_report_service.weekly_range("2024-05-18") == (date(2024, 5, 12), date(2024, 5, 18))

    def test_monthly(self):
        assert stock_report_service.monthly_range("2024", "2") == (date(2024, 2, 1), date(2024, 2, 29))
        assert stock_report_service.monthly_range(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))

    @pytest.mark.parametrize("year,month", [("2024", "13"), ("2024", "0"), ("abc", "1"), (None, None)])
    def test_monthly_invalid(self, year, month):
        with pytest.raises(ReportError):
            stock_report_service.monthly_range(year, month)

    def test_weekly_report_uses_week_window(self, db_session, january_history):
        start, end, rows = stock_report_service.weekly_report("C-A", "S-A1", "2024-01-17")
        assert (start, end) == (date(2024, 1, 14), date(2024, 1, 20))
        p1 = _row(rows, "P1")
        assert p1["adjustments"] == 2
        assert p1["wastage"] == 1
        assert p1["outgoing_stock"] == 0


class TestLowStock:
    def test_only_entries_at_or_below_minimum(self, db_session, products):
        receive([("P1", 5, 100), ("P2", 20, 100)])

        rows = stock_report_service.low_stock_report("C-A", "S-A1")

        assert [r["product_id"] for r in rows] == ["P1"]
        assert rows[0]["deficit"] == 5
        assert rows[0]["current_stock"] == 5
        assert rows[0]["minimum_quantity"] == 10

    def test_sorted_by_deficit_descending(self, db_session, products):
        receive([("P1", 9, 100), ("P2", 2, 100), ("P3", 40, 100)])

        rows = stock_report_service.low_stock_report("C-A", "S-A1")

        assert [(r["product_id"], r["deficit"]) for r in rows] == [("P3", 60), ("P2", 8), ("P1", 1)]

    def test_exactly_at_minimum_is_included(self, db_session, products):
        receive([("P1", 10, 100)])
        rows = stock_report_service.low_stock_report("C-A", "S-A1")
        assert rows[0]["deficit"] == 0


NOW = datetime(2024, 6, 10, 12, 0)


@pytest.fixture
def june_history(db_session, products):
    """
    P1: GRN +10 (Jun 8), used x4 as a component of a Cake sale (Jun 9).
    P3: GRN +20 (Jun 8), sold directly x5 (Jun 9).
    P2: GRN +20 (Jun 1), outside the default 7-day window.
    """
    receive([("P2", 20, 500)], when=datetime(2024, 6, 1, 9, 0))
    receive([("P1", 10, 1000), ("P3", 20, 50)], when=datetime(2024, 6, 8, 9, 0))
    movement_service.record_movement(
        company_id="C-A", shop_id="S-A1", transaction_type="Sales", direction="Out",
        created_by="U-CASHIER", finished_good_id="FG", finished_good_qty=2,
        components=[{"product_id": "P1", "quantity": 4}], occurred_at=datetime(2024, 6, 9, 10, 0),
    )
    movement_service.record_movement(
        company_id="C-A", shop_id="S-A1", transaction_type="Sales", direction="Out",
        created_by="U-CASHIER", finished_good_id="P3", finished_good_qty=5,
        occurred_at=datetime(2024, 6, 9, 11, 0),
    )


class TestInventoryMovementReport:
    def test_default_window_is_last_seven_days(self, db_session, june_history):
        past, now, rows = stock_report_service.inventory_movement_report("C-A", "S-A1", now=NOW)

        assert (past, now) == (datetime(2024, 6, 3, 12, 0), NOW)
        assert [r["product_id"] for r in rows] == ["P3", "P1", "P2"]

        p1 = _row(rows, "P1")
        assert p1["purchases_during_period"] == 10
        assert p1["sales_during_period"] == 4
        assert p1["current_inventory"] == 6
        assert p1["opening_inventory"] == 0
        assert p1["needs_restock"] is True

        p3 = _row(rows, "P3")
        assert p3["sales_during_period"] == 5
        assert p3["current_inventory"] == 15

        p2 = _row(rows, "P2")
        assert p2["purchases_during_period"] == 0
        assert p2["opening_inventory"] == 20
        assert p2["needs_restock"] is False

    def test_past_date_widens_window(self, db_session, june_history):
        _, _, rows = stock_report_service.inventory_movement_report("C-A", "S-A1", "2024-05-31", now=NOW)
        p2 = _row(rows, "P2")
        assert p2["purchases_during_period"] == 20
        assert p2["opening_inventory"] == 0

    def test_cancelled_receipt_and_sale_are_ignored(self, db_session, products):
        receive([("P1", 10, 1000)], when=datetime(2024, 6, 8))
        receive([("P1", 3, 1000)], when=datetime(2024, 6, 8))
        receipt_service.cancel_receipt("GRN-2", "C-A", "S-A1", "U-ADMIN")
        _move("Sales", "Out", 2, datetime(2024, 6, 9), status=MovementStatus.CANCELLED)

        _, _, rows = stock_report_service.inventory_movement_report("C-A", "S-A1", now=NOW)
        p1 = _row(rows, "P1")
        assert p1["purchases_during_period"] == 10
        assert p1["sales_during_period"] == 0

    def test_records_audit_entry(self, db_session, june_history):
        stock_report_service.inventory_movement_report("C-A", "S-A1", "2024-06-01", actor="U-STOCK", now=NOW)

        entry = db_session.query(AuditLogEntry).order_by(AuditLogEntry.id.desc()).first()
        assert entry.message == (
            "Inventory movement report generated from 2024-06-01T00:00:00Z to 2024-06-10T12:00:00Z"
        )
        assert entry.created_by == "U-STOCK"

    @pytest.mark.parametrize("past_date", ["soon", "2024-06-11", "2024-13-01"])
    def test_invalid_past_date(self, db_session, june_history, past_date):
        with pytest.raises(ReportError):
            stock_report_service.inventory_movement_report("C-A", "S-A1", past_date, now=NOW)

    def test_shop_without_inventory(self, db_session, products):
        with pytest.raises(NoInventoryError):
            stock_report_service.inventory_movement_report("C-A", "S-A1", now=NOW)
