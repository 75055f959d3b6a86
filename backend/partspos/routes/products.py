# Overview: Flask API routes for product reads and deletion; parses input and returns JSON responses.

# backend/partspos/routes/products.py
"""
Product routes.

Stock is never written here: the counter only moves through the ledger
services (sales, returns, receiving, adjustments). Catalog edits beyond
deletion belong to catalog tooling.
"""
from flask import Blueprint, current_app, request

from ..errors import CoreError
from ..services import inventory_service
from . import query_limit, retry_write

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - matches name, code, reference or barcode
    - limit: int (optional, default 500)
    """
    products = inventory_service.list_products(search=request.args.get("search"), limit=query_limit())
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/stats")
def product_stats():
    """Totals for the inventory dashboard (out of stock, low stock, inventory value)."""
    return inventory_service.get_product_stats()


@products_bp.get("/stats/lowstock")
def low_stock_products():
    """Products in stock but below min_stock (same rule as low_stock_items)."""
    products = inventory_service.list_low_stock_products(limit=query_limit())
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/stats/outofstock")
def out_of_stock_products():
    products = inventory_service.list_out_of_stock_products(limit=query_limit())
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<product_id>")
def get_product(product_id: str):
    product = inventory_service.get_product(product_id)
    data = product.to_dict()
    data["is_low_stock"] = product.is_low_stock
    return data


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    """
    Delete a product.

    Returns:
        200: deleted
        404: product not found
        409: product referenced by the ledger or a document line
    """
    try:
        retry_write(lambda: inventory_service.delete_product(product_id))
    except CoreError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200
