# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Catalog routes.

MULTI-TENANT: everything is scoped to g.business_id (set by @require_auth).

Listing is open to order entry staff so tickets can be written; every write
needs the inventory section.
"""

from flask import Blueprint, Response, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import import_service, ledger_service, products_service, reporting_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_dict(product, threshold: int | None = None) -> dict:
    data = product.to_dict()
    data["low_stock"] = reporting_service.is_low_stock(product, threshold)
    return data


@products_bp.get("")
@require_auth
@require_role("inventory", "order_entry")
def list_products():
    """
    Query params:
    - category: exact category label
    - supplier_id: int
    - q: name substring (case-insensitive)
    """
    products = products_service.list_products(
        g.business_id,
        category=request.args.get("category") or None,
        supplier_id=request.args.get("supplier_id", type=int),
        search=request.args.get("q") or None,
    )
    return jsonify({"items": [_product_dict(p) for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_role("inventory", "order_entry")
def get_product(product_id: int):
    return jsonify(_product_dict(products_service.get_product(g.business_id, product_id))), 200


@products_bp.post("")
@require_auth
@require_role("inventory")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    product = products_service.create_product(g.business_id, payload)
    return jsonify(_product_dict(product)), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("inventory")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    product = products_service.update_product(g.business_id, product_id, payload)
    return jsonify(_product_dict(product)), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("inventory")
def delete_product_route(product_id: int):
    products_service.delete_product(g.business_id, product_id)
    return jsonify({"ok": True}), 200


@products_bp.post("/<int:product_id>/adjust")
@require_auth
@require_role("inventory")
def adjust_stock_route(product_id: int):
    """
    Restock or adjust on-hand quantity.

    Body: {"delta": int (non-zero, signed), "type": "restock"|"adjustment",
           "note": str?, "occurred_at": ISO-8601?}
    """
    data = request.get_json(silent=True) or {}
    entry = ledger_service.adjust_stock(
        business_id=g.business_id,
        product_id=product_id,
        delta=data.get("delta"),
        entry_type=data.get("type") or "adjustment",
        note=data.get("note"),
        occurred_at=data.get("occurred_at"),
    )
    product = products_service.get_product(g.business_id, product_id)
    return jsonify({"entry": entry.to_dict(), "product": _product_dict(product)}), 201


@products_bp.post("/import")
@require_auth
@require_role("inventory")
def import_products_route():
    """
    Import products from CSV.

    Accepts a multipart upload (`file`, optional form field `confirm`) or
    JSON {"csv": "...", "confirm": bool} / {"rows": [...], "confirm": bool}.
    Without confirm the response is a preview and nothing is written.
    """
    upload = request.files.get("file")
    if upload is not None:
        try:
            source = upload.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded")
        confirm = (request.form.get("confirm") or "").lower() in {"1", "true", "yes", "on"}
    else:
        data = request.get_json(silent=True) or {}
        if "csv" in data:
            source = data.get("csv")
        elif "rows" in data:
            source = data.get("rows")
            if not isinstance(source, list):
                raise ValidationError("rows must be a list")
        else:
            raise ValidationError("Provide a CSV file, csv text or rows")
        confirm = data.get("confirm") is True

    result = import_service.import_products(g.business_id, source, confirm=confirm)
    return jsonify(result.to_dict()), (201 if result.committed else 200)


@products_bp.get("/import/template")
@require_auth
@require_role("inventory")
def import_template_route():
    return Response(
        import_service.template_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=product_import_template.csv"},
    )


@products_bp.get("/low-stock")
@require_auth
@require_role("inventory", "reports")
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    products = reporting_service.low_stock_products(g.business_id, threshold)
    return jsonify({
        "items": [_product_dict(p, threshold) for p in products],
        "count": len(products),
    }), 200


@products_bp.get("/categories")
@require_auth
@require_role("inventory", "order_entry")
def list_categories_route():
    categories = products_service.list_categories(g.business_id)
    return jsonify({"items": [c.to_dict() for c in categories]}), 200


@products_bp.post("/categories")
@require_auth
@require_role("inventory")
def create_category_route():
    data = request.get_json(silent=True) or {}
    category = products_service.create_category(g.business_id, data.get("name"))
    return jsonify(category.to_dict()), 201


@products_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("inventory")
def delete_category_route(category_id: int):
    products_service.delete_category(g.business_id, category_id)
    return jsonify({"ok": True}), 200
