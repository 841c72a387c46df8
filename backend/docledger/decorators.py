# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .errors import LedgerError
from .services import tenant_service


def require_tenant(f):
    """
    Establish tenant context from the X-Tenant-Id header.

    MULTI-TENANT: sets g.tenant_id. Every service call made by the route is
    scoped by it. Authentication is handled outside this engine.

    Returns 400 if the header is missing or not an integer, 404 if the tenant
    does not exist or is inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Tenant-Id", "").strip()
        if not raw.isdigit():
            return jsonify({"error": "X-Tenant-Id header is required", "code": "VALIDATION_ERROR"}), 400
        try:
            tenant = tenant_service.require_tenant(int(raw))
        except LedgerError as exc:
            return jsonify(exc.to_dict()), exc.http_status
        g.tenant_id = tenant.id
        return f(*args, **kwargs)

    return decorated_function


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
