# Overview: Flask API routes for sale tickets; order entry, cashier queue and receipts.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_role("order_entry")
def create_order_route():
    """
    Body: {"items": [{"product_id": int, "quantity": int, "unit_price_cents": int?}],
           "customer_id": int?, "customer_name": str?}
    """
    data = request.get_json(silent=True) or {}
    sale = order_service.create_pending_order(
        g.business_id,
        data.get("items"),
        customer_id=data.get("customer_id"),
        customer_name=data.get("customer_name"),
        user_id=g.current_user.id,
    )
    return jsonify(sale.to_dict()), 201


@orders_bp.get("/pending")
@require_auth
@require_role("cashier", "order_entry")
def pending_orders_route():
    """Query params: q (ticket id substring), order=newest|oldest."""
    sales = order_service.list_pending_orders(
        g.business_id,
        newest_first=request.args.get("order", "newest") != "oldest",
        search=request.args.get("q"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@orders_bp.get("")
@require_auth
@require_role("receipts", "reports")
def completed_sales_route():
    """Sales log. Query params: start, end (ISO-8601, inclusive)."""
    sales = order_service.list_completed_sales(
        g.business_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@orders_bp.get("/<int:sale_id>")
@require_auth
@require_role("sales")
def get_order_route(sale_id: int):
    return jsonify(order_service.get_sale(g.business_id, sale_id).to_dict()), 200


@orders_bp.get("/ticket/<ticket_id>")
@require_auth
@require_role("cashier", "receipts")
def find_by_ticket_route(ticket_id: str):
    return jsonify(order_service.find_by_ticket(g.business_id, ticket_id).to_dict()), 200


@orders_bp.post("/<int:sale_id>/complete")
@require_auth
@require_role("cashier")
def complete_order_route(sale_id: int):
    """Body: {"payment_method": "Cash"|"Card"|"Transfer"}"""
    data = request.get_json(silent=True) or {}
    result = order_service.complete_order(
        g.business_id,
        sale_id,
        data.get("payment_method"),
        user_id=g.current_user.id,
    )
    return jsonify(result.to_dict()), 200
