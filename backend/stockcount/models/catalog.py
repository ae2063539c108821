from __future__ import annotations

from ..extensions import db
from stockcount.time_utils import to_utc_z


class Product(db.Model):
    """
    Master catalog entry.

    Products are owned by a user (in practice the configured catalog owner).
    The internal code (cod_item) is unique per owner. Counting never
    modifies products; only catalog import does.

    LOOKUP PATTERN:
    - Barcode lookup: Barcode.query.filter_by(user_id=owner, barcode=X)
    - Code lookup: Product.query.filter_by(user_id=owner, code=X)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("user_id", "code", name="uq_products_user_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    barcodes = db.relationship(
        "Barcode",
        back_populates="product",
        order_by="Barcode.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} user_id={self.user_id}>"

    @property
    def primary_barcode(self) -> str | None:
        """First barcode registered for the product, if any."""
        if not self.barcodes:
            return None
        return self.barcodes[0].barcode

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "barcodes": [b.barcode for b in self.barcodes],
            "updated_at": to_utc_z(self.updated_at),
        }


class Barcode(db.Model):
    """
    Scannable barcode mapping. Each barcode resolves to exactly one product
    within an owner's catalog; re-importing a barcode re-points it.
    """
    __tablename__ = "barcodes"
    __table_args__ = (
        db.UniqueConstraint("user_id", "barcode", name="uq_barcodes_user_barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    barcode = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="barcodes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "product_id": self.product_id,
        }
