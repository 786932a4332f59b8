# Overview: Flask API routes for the stock ledger; history, point-in-time stock and replay checks.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..validation import parse_datetime_param
from ..services import ledger_service
from storedesk.time_utils import to_utc_z, utcnow


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _flag(name: str, default: bool) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@stock_bp.get("/logs")
@require_auth
@require_role("inventory", "reports")
def stock_logs_route():
    """Newest first. Query params: product_id, start, end."""
    entries = ledger_service.list_stock_logs(
        g.business_id,
        product_id=request.args.get("product_id", type=int),
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@stock_bp.get("/<int:product_id>/as-of")
@require_auth
@require_role("inventory", "reports")
def stock_as_of_route(product_id: int):
    """
    Query params:
    - at: ISO-8601 datetime (default now)
    - inclusive: count entries stamped exactly at `at` (default true)
    """
    at = parse_datetime_param(request.args.get("at"), field="at") or utcnow()
    inclusive = _flag("inclusive", True)
    quantity = ledger_service.derive_stock_at(g.business_id, product_id, at, inclusive=inclusive)
    return jsonify({
        "product_id": product_id,
        "as_of": to_utc_z(at),
        "inclusive": inclusive,
        "quantity": quantity,
    }), 200


@stock_bp.get("/<int:product_id>/verify")
@require_auth
@require_role("inventory", "reports")
def verify_ledger_route(product_id: int):
    check = ledger_service.verify_ledger(g.business_id, product_id)
    return jsonify(check.to_dict()), 200


@stock_bp.get("/verify")
@require_auth
@require_role("inventory", "reports")
def verify_all_route():
    checks = ledger_service.verify_business_ledger(g.business_id)
    broken = [c.to_dict() for c in checks if not c.consistent]
    return jsonify({
        "products_checked": len(checks),
        "consistent": not broken,
        "inconsistent": broken,
    }), 200
