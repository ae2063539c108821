# Overview: Service-layer operations for the master catalog; lookups and CSV import.

"""
Catalog Service - master catalog lookup and import.

WHY: Every user scans against one shared master catalog, owned by the user
configured as CATALOG_OWNER_USER_ID. The owner is passed in explicitly so
the boundary stays visible (and testable) instead of being baked in.

LOOKUP ORDER:
1. Exact barcode match in the owner's barcodes
2. Exact internal product code (cod_item) match in the owner's products

IMPORT FORMAT (semicolon separated, header row required):
    cod_item;cod_barra;des_item
Rows with any blank field are skipped and counted, never fatal.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Barcode, Product, User
from .concurrency import run_with_retry
from ..validation import ValidationError


IMPORT_DELIMITER = ";"
IMPORT_COLUMNS = ("cod_item", "cod_barra", "des_item")


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    skipped_lines: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "skipped_lines": self.skipped_lines,
            "message": f"{self.imported} products imported/updated in the master catalog.",
        }


def catalog_owner_id() -> int:
    return int(current_app.config["CATALOG_OWNER_USER_ID"])


def find_by_code(code: str, owner_id: int) -> Product | None:
    """
    Resolve a scanned code to a product of the owner's catalog.

    Barcode first, then internal product code. Read-only.
    """
    value = (code or "").strip()
    if not value:
        return None

    barcode = db.session.query(Barcode).filter_by(
        user_id=owner_id,
        barcode=value,
    ).first()
    if barcode and barcode.product:
        return barcode.product

    return db.session.query(Product).filter_by(
        user_id=owner_id,
        code=value,
    ).first()


def _upsert_product(owner_id: int, code: str, description: str) -> Product:
    product = db.session.query(Product).filter_by(user_id=owner_id, code=code).first()
    if product:
        product.description = description
        return product

    product = Product(user_id=owner_id, code=code, description=description)
    db.session.add(product)
    db.session.flush()
    return product


def _upsert_barcode(owner_id: int, value: str, product: Product) -> Barcode:
    barcode = db.session.query(Barcode).filter_by(user_id=owner_id, barcode=value).first()
    if barcode:
        barcode.product_id = product.id
        return barcode

    barcode = Barcode(user_id=owner_id, barcode=value, product_id=product.id)
    db.session.add(barcode)
    db.session.flush()
    return barcode


def read_catalog_csv(text: str) -> list[dict]:
    """
    Parse catalog text into row dicts.

    A missing header column or text the csv module cannot read is a
    ValidationError. Empty lines are dropped; every other line becomes a
    row, so rows with blank fields are counted as skipped by import_rows.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    try:
        lines = [
            fields for fields in csv.reader(io.StringIO(text), delimiter=IMPORT_DELIMITER)
            if fields and not (len(fields) == 1 and not fields[0].strip())
        ]
    except csv.Error as exc:
        raise ValidationError(f"Catalog file could not be parsed: {exc}") from exc

    header = [h.strip() for h in lines[0]] if lines else []
    missing = [c for c in IMPORT_COLUMNS if c not in header]
    if missing:
        raise ValidationError(f"Catalog file is missing columns: {', '.join(missing)}")

    return [dict(zip(header, fields)) for fields in lines[1:]]


def import_rows(rows: Iterable[dict], owner_id: int) -> ImportResult:
    """
    Upsert each well-formed row as one product plus one barcode mapping.

    Row numbers in skipped_lines are 1-based data rows (header excluded).
    """
    rows = list(rows)

    def _op():
        if not db.session.get(User, owner_id):
            raise ValidationError(f"Catalog owner user {owner_id} does not exist")

        result = ImportResult()
        for line_number, row in enumerate(rows, start=1):
            code = (row.get("cod_item") or "").strip()
            value = (row.get("cod_barra") or "").strip()
            description = (row.get("des_item") or "").strip()

            if not code or not value or not description:
                current_app.logger.warning("Skipping catalog row %s with missing data: %r", line_number, row)
                result.skipped += 1
                result.skipped_lines.append(line_number)
                continue

            product = _upsert_product(owner_id, code, description)
            _upsert_barcode(owner_id, value, product)
            result.imported += 1

        db.session.flush()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Catalog import for owner %s: %s imported, %s skipped", owner_id, result.imported, result.skipped
    )
    return result


def import_catalog_csv(text: str, owner_id: int) -> ImportResult:
    return import_rows(read_catalog_csv(text), owner_id)
