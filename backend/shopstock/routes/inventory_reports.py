from flask import Blueprint, jsonify, request, g, current_app

from shopstock.decorators import require_auth, resolve_scope
from shopstock.services import stock_report_service
from shopstock.services.stock_report_service import ReportError


inventory_reports_bp = Blueprint("inventory_reports", __name__, url_prefix="/api/inventoryReports")


def _scope_or_error():
    company_id, shop_id = resolve_scope()
    if not company_id or not shop_id:
        return None, (jsonify({"error": "companyId and shopId are required"}), 400)
    return (company_id, shop_id), None


def _range_response(start, end, rows):
    return jsonify({
        "message": "Inventory stock report generated successfully",
        "timeRange": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        "data": rows,
    }), 200


@inventory_reports_bp.get("/report")
@require_auth
def stock_report():
    scope, error = _scope_or_error()
    if error:
        return error
    company_id, shop_id = scope

    start_date = request.args.get("startDate")
    end_date = request.args.get("endDate")
    category_id = request.args.get("categoryId") or None

    try:
        rows = stock_report_service.compute_stock_report(
            company_id, shop_id, start_date, end_date, category_id,
            actor=g.current_user.user_id,
        )
        return jsonify({
            "message": "Inventory stock report generated successfully",
            "timeRange": {"startDate": start_date, "endDate": end_date},
            "data": rows,
        }), 200
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate inventory stock report")
        return jsonify({"error": "Internal server error"}), 500


@inventory_reports_bp.get("/daily-report")
@require_auth
def daily_report():
    scope, error = _scope_or_error()
    if error:
        return error

    try:
        start, end, rows = stock_report_service.daily_report(
            *scope, request.args.get("date"), request.args.get("categoryId") or None,
            actor=g.current_user.user_id,
        )
        return _range_response(start, end, rows)
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate daily inventory report")
        return jsonify({"error": "Internal server error"}), 500


@inventory_reports_bp.get("/weekly-report")
@require_auth
def weekly_report():
    scope, error = _scope_or_error()
    if error:
        return error

    try:
        start, end, rows = stock_report_service.weekly_report(
            *scope, request.args.get("date"), request.args.get("categoryId") or None,
            actor=g.current_user.user_id,
        )
        return _range_response(start, end, rows)
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate weekly inventory report")
        return jsonify({"error": "Internal server error"}), 500


@inventory_reports_bp.get("/monthly-report")
@require_auth
def monthly_report():
    scope, error = _scope_or_error()
    if error:
        return error

    try:
        start, end, rows = stock_report_service.monthly_report(
            *scope, request.args.get("year"), request.args.get("month"),
            request.args.get("categoryId") or None,
            actor=g.current_user.user_id,
        )
        return _range_response(start, end, rows)
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate monthly inventory report")
        return jsonify({"error": "Internal server error"}), 500


@inventory_reports_bp.get("/low-stock")
@require_auth
def low_stock_report():
    scope, error = _scope_or_error()
    if error:
        return error

    try:
        rows = stock_report_service.low_stock_report(
            *scope, request.args.get("categoryId") or None,
            actor=g.current_user.user_id,
        )
        return jsonify({
            "message": "Low stock inventory report generated successfully",
            "data": rows,
        }), 200
    except Exception:
        current_app.logger.exception("Failed to generate low stock report")
        return jsonify({"error": "Internal server error"}), 500
