# Overview: Flask API routes for goods-receipt notes (GRN); parses input and returns JSON responses.

# backend/shopstock/routes/grns.py
"""GRN API routes with role and tenant enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import receipt_service, event_service
from ..services.receipt_service import (
    ReceiptValidationError,
    ReceiptNotFoundError,
    ReceiptStateError,
    ProductNotGRNEligibleError,
)
from ..services.catalog_service import ProductNotFoundError, SupplierNotFoundError
from ..services.ledger_service import InsufficientStockError, LedgerEntryNotFoundError, NegativeQuantityError
from ..services.code_service import CodeAllocationError
from ..decorators import (
    require_auth,
    require_role,
    require_company_access,
    can_access_company,
    STOCK_WRITE_ROLES,
    SUPER_ADMIN,
)


grns_bp = Blueprint("grns", __name__, url_prefix="/api/grns")

SERVICE_ERRORS = (
    ReceiptValidationError,
    CodeAllocationError,
    ProductNotGRNEligibleError,
    ReceiptNotFoundError,
    ProductNotFoundError,
    SupplierNotFoundError,
    LedgerEntryNotFoundError,
    InsufficientStockError,
    NegativeQuantityError,
    ReceiptStateError,
)


def _error_response(exc: Exception):
    """Map a service exception to its JSON body and status code."""
    body = {"error": str(exc)}
    for attr in ("product_id", "transaction_code", "supplier_id"):
        value = getattr(exc, attr, None)
        if value is not None:
            body[attr] = value

    if isinstance(exc, InsufficientStockError):
        body["available"] = exc.available
        body["requested"] = exc.requested
        return jsonify(body), 409
    if isinstance(exc, (ReceiptStateError, NegativeQuantityError)):
        return jsonify(body), 409
    if isinstance(exc, (ReceiptNotFoundError, ProductNotFoundError, SupplierNotFoundError, LedgerEntryNotFoundError)):
        return jsonify(body), 404
    return jsonify(body), 400


def _dispatch_events():
    event_service.dispatch_pending()


@grns_bp.post("")
@require_auth
@require_role(*STOCK_WRITE_ROLES)
def create_grn_route():
    """
    Create a GRN and receive its lines into stock.

    Body: {company_id, shop_id, supplier_id, transaction_date_time?,
           lines: [{category_id, product_id, unit_cost_cents, quantity, remarks?}]}
    Available to: superAdmin, admin, stockManager
    """
    data = request.get_json(silent=True) or {}
    company_id = data.get("company_id") or g.company_id
    shop_id = data.get("shop_id") or g.shop_id

    if not can_access_company(company_id):
        return jsonify({"error": "Access denied for company", "company_id": company_id}), 403

    try:
        header = receipt_service.create_receipt(
            company_id=company_id,
            shop_id=shop_id,
            supplier_id=data.get("supplier_id"),
            created_by=g.current_user.user_id,
            lines=data.get("lines"),
            transaction_date_time=data.get("transaction_date_time"),
        )
        _dispatch_events()
        return jsonify({"message": "GRN created successfully", "grn": header.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create GRN")
        return jsonify({"error": "Internal server error"}), 500


@grns_bp.post("/cancel/<transaction_code>/<company_id>/<shop_id>")
@require_auth
@require_role(*STOCK_WRITE_ROLES)
@require_company_access
def cancel_grn_route(transaction_code: str, company_id: str, shop_id: str):
    try:
        header = receipt_service.cancel_receipt(
            transaction_code, company_id, shop_id, g.current_user.user_id
        )
        _dispatch_events()
        return jsonify({"message": "GRN cancelled successfully", "grn": header.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel GRN")
        return jsonify({"error": "Internal server error"}), 500


@grns_bp.post("/settle/<transaction_code>/<company_id>/<shop_id>")
@require_auth
@require_role(*STOCK_WRITE_ROLES)
@require_company_access
def settle_grn_route(transaction_code: str, company_id: str, shop_id: str):
    try:
        header = receipt_service.settle_receipt(
            transaction_code, company_id, shop_id, g.current_user.user_id
        )
        _dispatch_events()
        return jsonify({"message": "GRN settled successfully", "grn": header.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to settle GRN")
        return jsonify({"error": "Internal server error"}), 500


@grns_bp.put("/update/<transaction_code>/<company_id>/<shop_id>")
@require_auth
@require_role(*STOCK_WRITE_ROLES)
@require_company_access
def update_grn_route(transaction_code: str, company_id: str, shop_id: str):
    """
    Replace the lines of a Pending GRN.

    Body: {supplier_id, transaction_date_time?, lines: [...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        header = receipt_service.update_receipt(
            transaction_code,
            company_id,
            shop_id,
            supplier_id=data.get("supplier_id"),
            lines=data.get("lines"),
            actor=g.current_user.user_id,
            transaction_date_time=data.get("transaction_date_time"),
        )
        _dispatch_events()
        return jsonify({"message": "GRN updated successfully", "grn": header.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update GRN")
        return jsonify({"error": "Internal server error"}), 500


@grns_bp.get("")
@require_auth
def list_grns_route():
    """superAdmin sees every GRN; other users see their own company's."""
    if g.role == SUPER_ADMIN:
        headers = receipt_service.list_receipts()
    else:
        headers = receipt_service.list_receipts_by_company(g.company_id)
    return jsonify({"grns": [h.to_dict() for h in headers]}), 200


@grns_bp.get("/<company_id>")
@require_auth
@require_company_access
def list_company_grns_route(company_id: str):
    headers = receipt_service.list_receipts_by_company(company_id)
    return jsonify({"grns": [h.to_dict() for h in headers]}), 200


@grns_bp.get("/shop/grn-details/<company_id>/<shop_id>")
@require_auth
@require_company_access
def list_shop_grns_route(company_id: str, shop_id: str):
    headers = receipt_service.list_receipts_by_shop(company_id, shop_id)
    return jsonify({"grns": [h.to_dict() for h in headers]}), 200


@grns_bp.get("/supplier/grn-details/<company_id>/<shop_id>/<supplier_id>")
@require_auth
@require_company_access
def list_supplier_grns_route(company_id: str, shop_id: str, supplier_id: str):
    headers = receipt_service.list_receipts_by_supplier(company_id, shop_id, supplier_id)
    return jsonify({"grns": [h.to_dict() for h in headers]}), 200


@grns_bp.get("/<company_id>/<shop_id>/<transaction_code>")
@require_auth
@require_company_access
def get_grn_route(company_id: str, shop_id: str, transaction_code: str):
    try:
        return jsonify(receipt_service.get_receipt_with_lines(transaction_code, company_id, shop_id)), 200
    except ReceiptNotFoundError as e:
        return _error_response(e)


@grns_bp.get("/grn-details/<company_id>/<shop_id>/<transaction_code>/transactions")
@require_auth
@require_company_access
def get_grn_details_route(company_id: str, shop_id: str, transaction_code: str):
    try:
        return jsonify(receipt_service.get_receipt_with_details(transaction_code, company_id, shop_id)), 200
    except ReceiptNotFoundError as e:
        return _error_response(e)
