from __future__ import annotations

from ..extensions import db
from stockcount.time_utils import to_utc_z


class HistoryEntry(db.Model):
    """
    Archived count snapshot: a CSV file saved by the user.

    Entries are independent of the count session they came from; saving the
    same session twice produces two entries.
    """
    __tablename__ = "history_entries"
    __table_args__ = (
        db.Index("ix_history_entries_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    file_name = db.Column(db.String(255), nullable=False)
    csv_content = db.Column(db.Text, nullable=False)
    item_count = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self, include_content: bool = False) -> dict:
        data = {
            "id": self.id,
            "file_name": self.file_name,
            "item_count": self.item_count,
            "created_at": to_utc_z(self.created_at),
        }
        if include_content:
            data["csv_content"] = self.csv_content
        return data
