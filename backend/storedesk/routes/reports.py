from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..permissions import can_access
from ..services import notification_service, reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

# Dashboard fields CASHIER/SALES staff may see
RESTRICTED_DASHBOARD_FIELDS = ("product_count", "customer_count", "pending_count", "low_stock_count", "low_stock_names")


@reports_bp.get("/cash-flow")
@require_auth
@require_role("reports")
def cash_flow_report():
    report = reporting_service.cash_flow_report(
        g.business_id,
        request.args.get("start"),
        request.args.get("end"),
    )
    return jsonify(report), 200


@reports_bp.get("/gross-income")
@require_auth
@require_role("reports")
def gross_income_report():
    start = request.args.get("start")
    end = request.args.get("end")
    start_exclusive = request.args.get("start_exclusive", "false").lower() == "true"
    cents = reporting_service.gross_income(g.business_id, start, end, start_exclusive=start_exclusive)
    return jsonify({
        "start": start,
        "end": end,
        "start_exclusive": start_exclusive,
        "gross_income_cents": cents,
    }), 200


@reports_bp.get("/stock-movement")
@require_auth
@require_role("reports")
def stock_movement_report():
    report = reporting_service.stock_movement_report(
        g.business_id,
        request.args.get("start"),
        request.args.get("end"),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify(report), 200


@reports_bp.get("/daily-revenue")
@require_auth
@require_role("reports")
def daily_revenue_report():
    rows = reporting_service.daily_revenue(
        g.business_id,
        days=request.args.get("days", default=7, type=int),
        today=request.args.get("today"),
    )
    return jsonify({"items": rows}), 200


@reports_bp.get("/dashboard")
@require_auth
@require_role("dashboard")
def dashboard():
    """
    Headline numbers. Roles without the reports section get the
    non-financial subset. Loading the dashboard raises this session's
    low-stock advisory if one is due.
    """
    stats = reporting_service.dashboard_stats(g.business_id)
    notification = notification_service.low_stock_advisory(g.business_id, g.session_context.session)

    restricted = not can_access(g.current_user.role, "reports")
    if restricted:
        stats = {k: stats[k] for k in RESTRICTED_DASHBOARD_FIELDS}
    stats["restricted"] = restricted
    stats["advisory"] = notification.to_dict() if notification is not None else None
    return jsonify(stats), 200
