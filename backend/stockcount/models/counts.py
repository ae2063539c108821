from __future__ import annotations

from ..extensions import db
from stockcount.time_utils import to_iso_date, to_utc_z
from stockcount.validation import from_hundredths, quantity_to_json


SESSION_STATUS_OPEN = "open"
SESSION_STATUS_CLOSED = "closed"

# expiry_key value for items counted without an expiry date
NO_EXPIRY_KEY = ""


def expiry_key_for(expiry_date) -> str:
    if expiry_date is None:
        return NO_EXPIRY_KEY
    return expiry_date.isoformat()


class CountSession(db.Model):
    """
    The in-progress counting pass of one user.

    LIFECYCLE:
    1. open: created lazily by the first recorded count
    2. closed: the user cleared the count (items are deleted)

    At most one open session per user, enforced by a partial unique index.
    Archiving to history does not close the session.
    """
    __tablename__ = "count_sessions"
    __table_args__ = (
        db.Index(
            "uq_count_sessions_user_open",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship("CountedItem", back_populates="count_session", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }


class CountedItem(db.Model):
    """
    Accumulated count of one (product, expiry date) pair within a session.

    UNIQUENESS: (count_session_id, product_id, expiry_key). expiry_key is
    '' when no expiry date was given, so "no expiry" is a single equality
    class instead of the SQL NULL-never-equals-NULL behavior.

    Quantities are integer hundredths; repeated scans add to one side
    (store or stockroom) and never overwrite.
    """
    __tablename__ = "counted_items"
    __table_args__ = (
        db.UniqueConstraint(
            "count_session_id", "product_id", "expiry_key",
            name="uq_counted_items_session_product_expiry",
        ),
        db.Index("ix_counted_items_session_updated", "count_session_id", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    count_session_id = db.Column(db.Integer, db.ForeignKey("count_sessions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    expiry_date = db.Column(db.Date, nullable=True)
    expiry_key = db.Column(db.String(10), nullable=False, default=NO_EXPIRY_KEY)

    store_qty_hundredths = db.Column(db.BigInteger, nullable=False, default=0)
    stockroom_qty_hundredths = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    count_session = db.relationship("CountSession", back_populates="items")
    product = db.relationship("Product")

    @property
    def quant_loja(self):
        return from_hundredths(self.store_qty_hundredths)

    @property
    def quant_estoque(self):
        return from_hundredths(self.stockroom_qty_hundredths)

    def __repr__(self) -> str:
        return (
            f"<CountedItem id={self.id} product_id={self.product_id} "
            f"expiry={self.expiry_key or None!r} loja={self.quant_loja} estoque={self.quant_estoque}>"
        )

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "count_session_id": self.count_session_id,
            "product_id": self.product_id,
            "codigo_de_barras": (product.primary_barcode or "") if product else "",
            "codigo_produto": product.code if product else None,
            "descricao": product.description if product else None,
            "quant_loja": quantity_to_json(self.quant_loja),
            "quant_estoque": quantity_to_json(self.quant_estoque),
            "data_validade": to_iso_date(self.expiry_date),
            "data_hora": to_utc_z(self.updated_at),
        }
