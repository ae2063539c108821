# Overview: Flask API routes for master catalog lookups.

from flask import Blueprint, jsonify, current_app

from ..services import catalog_service
from ..decorators import require_auth


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/lookup/<path:code>")
@require_auth
def lookup_product_route(code: str):
    """
    Resolve a scanned barcode or internal product code.

    Always searches the master catalog, whoever is scanning.

    Returns:
        200: {"product": {...}}
        404: Not in the catalog
    """
    try:
        product = catalog_service.find_by_code(code, catalog_service.catalog_owner_id())
        if not product:
            return jsonify({"error": "Product not found in catalog"}), 404

        return jsonify({"product": product.to_dict()}), 200

    except Exception:
        current_app.logger.exception("Failed to lookup product")
        return jsonify({"error": "Internal server error"}), 500
