# Overview: Flask API routes for catalog administration; CSV catalog import.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import catalog_service
from ..validation import ValidationError
from ..decorators import require_auth, require_catalog_owner


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/import-catalog")
@require_auth
@require_catalog_owner
def import_catalog_route():
    """
    Import the master catalog from a semicolon-separated file.

    Multipart form field "file", columns: cod_item;cod_barra;des_item

    Returns:
        200: {"imported": int, "skipped": int, ...}
        400: No file, undecodable file, or missing columns
        403: Caller is not the catalog owner
    """
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]

    try:
        text = file.stream.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        return jsonify({"error": "Catalog file must be UTF-8 text"}), 400

    try:
        result = catalog_service.import_catalog_csv(text, catalog_service.catalog_owner_id())
        db.session.commit()
        return jsonify(result.to_dict()), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Catalog import failed")
        return jsonify({"error": "Internal server error"}), 500
