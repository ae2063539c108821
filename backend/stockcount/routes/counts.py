# Overview: Flask API routes for the active count; parses input and returns JSON responses.

"""
Counting session API routes.

Every route acts on the caller's own open count; the user id always comes
from the bearer token, never from the request.
"""
from flask import Blueprint, Response, request, jsonify, current_app, g

from ..extensions import db
from ..decorators import require_auth
from ..services import count_service, report_service
from ..services.concurrency import run_and_commit
from ..services.expression_service import ExpressionError, evaluate
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_expiry,
    parse_mode,
    parse_positive_int,
    parse_quantity,
    quantity_to_json,
    require_json_object,
)


counts_bp = Blueprint("counts", __name__, url_prefix="/api/counts")


def _validation_response(e: ValidationError):
    body = {"error": str(e)}
    if isinstance(e, ExpressionError):
        body["code"] = e.code
    return jsonify(body), 400


@counts_bp.route("/evaluate", methods=["POST"])
@require_auth
def evaluate_quantity():
    """
    Evaluate a quantity entry such as "24+24" or "12,5".

    Request body:
    {
        "expression": str
    }

    Returns:
        200: {"quantity": number}
        400: {"error": str, "code": "InvalidCharacters" | ...}
    """
    data = request.get_json(silent=True) or {}
    expression = data.get("expression")
    if not isinstance(expression, str):
        return jsonify({"error": "expression is required", "code": "InvalidQuantity"}), 400

    try:
        return jsonify({"quantity": quantity_to_json(evaluate(expression))}), 200
    except ExpressionError as e:
        return _validation_response(e)


@counts_bp.route("", methods=["GET"])
@require_auth
def list_active_items():
    """
    Items of the open count, most recently modified first.

    Returns:
        200: List of counted items (empty when there is no open count)
    """
    try:
        items = count_service.list_active(g.user_id)
        return jsonify([item.to_dict() for item in items]), 200

    except Exception:
        current_app.logger.exception("Failed to list counted items")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/items", methods=["POST"])
@require_auth
def record_count():
    """
    Add a scanned quantity to the open count.

    Request body:
    {
        "product_id": int,
        "quantity": number | str,      // str is evaluated, e.g. "24+24"
        "mode": "store" | "stockroom", // or "loja" | "estoque"
        "expiry_date": "YYYY-MM-DD"    // optional
    }

    Returns:
        200: The merged counted item
        400: Invalid request
        404: Unknown product
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        product_ref = data.get("product_id")
        if product_ref is None and isinstance(data.get("product"), dict):
            product_ref = data["product"].get("id")
        if product_ref is None:
            raise ValidationError("product_id is required")

        product_id = parse_positive_int(product_ref, "product_id")
        quantity = parse_quantity(data.get("quantity"))
        mode = parse_mode(data.get("mode"))
        expiry_date = parse_expiry(data.get("expiry_date"))

        item = run_and_commit(lambda: count_service.record_count(
            user_id=g.user_id,
            product_id=product_id,
            quantity=quantity,
            mode=mode,
            expiry_date=expiry_date,
        ))

        return jsonify(item.to_dict()), 200

    except ValidationError as e:
        db.session.rollback()
        return _validation_response(e)
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except ConflictError:
        db.session.rollback()
        current_app.logger.exception("Counted item uniqueness violated")
        return jsonify({"error": "Internal error: duplicate counted item"}), 500
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/items/<int:item_id>", methods=["DELETE"])
@require_auth
def remove_item(item_id: int):
    """
    Remove one item from the open count.

    Returns:
        200: Item removed
        404: Not in the caller's open count (including other users' items)
    """
    try:
        count_service.remove_item(g.user_id, item_id)
        db.session.commit()
        return jsonify({"success": True, "message": "Item removed"}), 200

    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to remove counted item")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("", methods=["DELETE"])
@require_auth
def clear_session():
    """
    Discard the open count. Does not touch history.

    Returns:
        200: {"deleted": int}
    """
    try:
        deleted = count_service.clear_session(g.user_id)
        db.session.commit()
        return jsonify({"success": True, "deleted": deleted}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clear count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/stats", methods=["GET"])
@require_auth
def count_stats():
    """Item count and per-location totals of the open count."""
    try:
        stats = count_service.get_stats(g.user_id)
        return jsonify({
            "items": stats.items,
            "total_loja": quantity_to_json(stats.total_loja),
            "total_estoque": quantity_to_json(stats.total_estoque),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to compute count stats")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/report", methods=["GET"])
@require_auth
def count_report():
    """Flat report rows of the open count, in list order."""
    try:
        rows = report_service.project(count_service.list_active(g.user_id))
        return jsonify([row.to_dict() for row in rows]), 200

    except Exception:
        current_app.logger.exception("Failed to build count report")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/export", methods=["GET"])
@require_auth
def export_csv():
    """
    Download the open count as CSV.

    Returns:
        200: text/csv attachment named <prefix>_YYYY-MM-DD.csv
        400: Nothing counted yet
    """
    try:
        items = count_service.list_active(g.user_id)
        if not items:
            return jsonify({"error": "No counted items to export"}), 400

        content = report_service.to_csv(report_service.project(items))
        return Response(
            content.encode("utf-8"),
            mimetype="text/csv",
            headers={
                "Content-Type": "text/csv; charset=utf-8",
                "Content-Disposition": f'attachment; filename="{report_service.export_filename()}"',
            },
        )

    except Exception:
        current_app.logger.exception("Failed to export count")
        return jsonify({"error": "Internal server error"}), 500
