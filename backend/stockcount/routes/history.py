# Overview: Flask API routes for count history; parses input and returns JSON responses.

from flask import Blueprint, Response, request, jsonify, current_app, g

from ..extensions import db
from ..decorators import require_auth
from ..services import history_service
from ..validation import NotFoundError, ValidationError, require_json_object


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


@history_bp.get("")
@require_auth
def list_history_route():
    """Saved snapshots of the caller, newest first, without file content."""
    try:
        entries = history_service.list_entries(g.user_id)
        return jsonify([e.to_dict() for e in entries]), 200
    except Exception:
        current_app.logger.exception("Failed to list history")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.post("")
@require_auth
def save_history_route():
    """
    Archive a CSV snapshot.

    Request body:
    {
        "file_name": str,
        "csv_content": str
    }

    Returns:
        201: The created entry
        400: Missing fields
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        entry = history_service.save_entry(
            user_id=g.user_id,
            file_name=data.get("file_name") or data.get("fileName"),
            csv_content=data.get("csv_content") or data.get("csvContent"),
        )
        db.session.commit()
        return jsonify(entry.to_dict()), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to save history entry")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.post("/snapshot")
@require_auth
def snapshot_route():
    """
    Archive the open count as CSV. The count itself stays open.

    Returns:
        201: The created entry
        400: Nothing counted yet
    """
    try:
        entry = history_service.archive_active_count(g.user_id)
        db.session.commit()
        return jsonify(entry.to_dict()), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to archive count")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.get("/<int:entry_id>")
@require_auth
def get_history_route(entry_id: int):
    """
    Fetch one entry with its content.

    ?download=1 returns the CSV file itself.
    """
    try:
        entry = history_service.get_entry(g.user_id, entry_id)
        if request.args.get("download") in ("1", "true"):
            return Response(
                entry.csv_content.encode("utf-8"),
                mimetype="text/csv",
                headers={
                    "Content-Type": "text/csv; charset=utf-8",
                    "Content-Disposition": f'attachment; filename="{entry.file_name}"',
                },
            )
        return jsonify(entry.to_dict(include_content=True)), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch history entry")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.delete("/<int:entry_id>")
@require_auth
def delete_history_route(entry_id: int):
    try:
        history_service.delete_entry(g.user_id, entry_id)
        db.session.commit()
        return jsonify({"success": True}), 200

    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete history entry")
        return jsonify({"error": "Internal server error"}), 500
