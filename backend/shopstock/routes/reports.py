from flask import Blueprint, jsonify, request, g, current_app

from shopstock.decorators import require_auth, resolve_scope
from shopstock.services import stock_report_service
from shopstock.services.stock_report_service import ReportError, NoInventoryError
from shopstock.time_utils import to_utc_z


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/inventoryReport")
@require_auth
def inventory_movement_report():
    company_id, shop_id = resolve_scope()
    if not company_id or not shop_id:
        return jsonify({"error": "companyId and shopId are required"}), 400

    try:
        past, now, rows = stock_report_service.inventory_movement_report(
            company_id, shop_id, request.args.get("pastDate"),
            actor=g.current_user.user_id,
        )
        return jsonify({
            "message": "Inventory movement report generated successfully",
            "fromDate": to_utc_z(past),
            "toDate": to_utc_z(now),
            "reportData": rows,
        }), 200
    except NoInventoryError as exc:
        return jsonify({"error": str(exc)}), 404
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate inventory movement report")
        return jsonify({"error": "Internal server error"}), 500
