# Overview: Request authentication, role and tenant decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


SUPER_ADMIN = "superAdmin"
STOCK_WRITE_ROLES = ("superAdmin", "admin", "stockManager")


def _is_authenticated() -> bool:
    return hasattr(g, "current_user") and hasattr(g, "role")


def require_auth(f):
    """
    Require a bearer session and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated User
    - g.role: the user's role (superAdmin | admin | stockManager | cashier)
    - g.company_id / g.shop_id: tenant scope captured in the session

    Returns 401 when the Authorization header is missing, or the token is
    unknown, revoked or expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.role = context.role
        g.company_id = context.company_id
        g.shop_id = context.shop_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Allow only the listed roles. Must be stacked under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def can_access_company(company_id: str | None) -> bool:
    """superAdmin may address any company; everyone else only their own."""
    if g.role == SUPER_ADMIN:
        return True
    return company_id is not None and company_id == g.company_id


def require_company_access(f):
    """
    Reject requests whose companyId path parameter names another tenant.

    Must be stacked under @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        company_id = kwargs.get("company_id")
        if not can_access_company(company_id):
            return jsonify({"error": "Access denied for company", "company_id": company_id}), 403
        return f(*args, **kwargs)

    return decorated_function


def resolve_scope():
    """
    (company_id, shop_id) for endpoints that take the scope from the session.

    superAdmin sessions may override with companyId / shopId query parameters.
    """
    company_id = g.company_id
    shop_id = g.shop_id
    if g.role == SUPER_ADMIN:
        company_id = request.args.get("companyId") or company_id
        shop_id = request.args.get("shopId") or shop_id
    return company_id, shop_id
