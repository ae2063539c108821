# Overview: Service-layer operations for count history; archived CSV snapshots per user.

"""
History Service

Saving to history archives a CSV snapshot. It is deliberately independent
of the count session: saving does not clear or close the open count, the
same count may be saved any number of times, and a count may be cleared
without ever being saved. Callers compose the two when they want to.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import HistoryEntry
from . import count_service, report_service
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError


MAX_FILE_NAME_LENGTH = 255


def _clean_file_name(file_name) -> str:
    if not isinstance(file_name, str) or not file_name.strip():
        raise ValidationError("file_name is required")
    # Only the base name is kept; entries are never written to disk by path
    cleaned = file_name.strip().replace("\\", "/").split("/")[-1]
    if not cleaned:
        raise ValidationError("file_name is required")
    if len(cleaned) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(f"file_name exceeds max length {MAX_FILE_NAME_LENGTH}")
    return cleaned


def save_entry(user_id: int, file_name: str, csv_content: str) -> HistoryEntry:
    """
    Archive a CSV snapshot for the user.

    item_count is read from the content when it is in the report format,
    and left empty for any other CSV.
    """
    name = _clean_file_name(file_name)
    if not isinstance(csv_content, str) or not csv_content.strip():
        raise ValidationError("csv_content is required")

    try:
        item_count = len(report_service.parse_csv(csv_content))
    except ValidationError:
        item_count = None

    entry = HistoryEntry(
        user_id=user_id,
        file_name=name,
        csv_content=csv_content,
        item_count=item_count,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()

    current_app.logger.info("Archived %s for user %s (history entry %s)", name, user_id, entry.id)
    return entry


def archive_active_count(user_id: int) -> HistoryEntry:
    """Project the open count to CSV and archive it. The count stays open."""
    items = count_service.list_active(user_id)
    if not items:
        raise ValidationError("There are no counted items to save")

    content = report_service.to_csv(report_service.project(items))
    return save_entry(user_id, report_service.export_filename(), content)


def list_entries(user_id: int) -> list[HistoryEntry]:
    return (
        db.session.query(HistoryEntry)
        .filter_by(user_id=user_id)
        .order_by(HistoryEntry.created_at.desc(), HistoryEntry.id.desc())
        .all()
    )


def get_entry(user_id: int, entry_id: int) -> HistoryEntry:
    entry = db.session.query(HistoryEntry).filter_by(id=entry_id, user_id=user_id).first()
    if not entry:
        raise NotFoundError(f"History entry {entry_id} not found")
    return entry


def delete_entry(user_id: int, entry_id: int) -> None:
    deleted = db.session.query(HistoryEntry).filter_by(
        id=entry_id,
        user_id=user_id,
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError(f"History entry {entry_id} not found")
