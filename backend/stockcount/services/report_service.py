# Overview: Projection of counted items into flat report rows and CSV export.

"""
Report Service

Flat, order-preserving projection of counted items, and the semicolon CSV
format used both for downloads and for history snapshots.

CSV FORMAT:
- UTF-8 with a byte-order mark (spreadsheet apps need it for accents)
- ";" delimiter, every field quoted, header row first
- quantities with "." as decimal separator, no trailing zeros
- expiry as YYYY-MM-DD or empty
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from flask import current_app

from ..models import CountedItem
from ..time_utils import to_iso_date, today_iso
from ..validation import ValidationError, quantity_to_json


CSV_DELIMITER = ";"
CSV_BOM = "\ufeff"

REPORT_FIELDS = (
    "codigo_de_barras",
    "codigo_produto",
    "descricao",
    "quant_loja",
    "quant_estoque",
    "data_validade",
)


@dataclass(frozen=True)
class ReportRow:
    codigo_de_barras: str
    codigo_produto: str
    descricao: str
    quant_loja: Decimal
    quant_estoque: Decimal
    data_validade: str

    def to_dict(self) -> dict:
        return {
            "codigo_de_barras": self.codigo_de_barras,
            "codigo_produto": self.codigo_produto,
            "descricao": self.descricao,
            "quant_loja": quantity_to_json(self.quant_loja),
            "quant_estoque": quantity_to_json(self.quant_estoque),
            "data_validade": self.data_validade,
        }


def project(items: Iterable[CountedItem]) -> list[ReportRow]:
    """One row per item, same order as given."""
    rows = []
    for item in items:
        product = item.product
        rows.append(ReportRow(
            codigo_de_barras=product.primary_barcode or "",
            codigo_produto=product.code,
            descricao=product.description,
            quant_loja=item.quant_loja,
            quant_estoque=item.quant_estoque,
            data_validade=to_iso_date(item.expiry_date) or "",
        ))
    return rows


def format_quantity(value: Decimal) -> str:
    """12.00 -> "12", 3.50 -> "3.5", 3.33 -> "3.33"."""
    return format(value.normalize(), "f")


def to_csv(rows: Iterable[ReportRow], *, with_bom: bool = True) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=CSV_DELIMITER, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(REPORT_FIELDS)
    for row in rows:
        writer.writerow([
            row.codigo_de_barras,
            row.codigo_produto,
            row.descricao,
            format_quantity(row.quant_loja),
            format_quantity(row.quant_estoque),
            row.data_validade,
        ])
    content = buffer.getvalue()
    return CSV_BOM + content if with_bom else content


def parse_csv(content: str) -> list[ReportRow]:
    """Read back a CSV produced by to_csv. Unreadable CSV is a ValidationError."""
    if content.startswith(CSV_BOM):
        content = content[len(CSV_BOM):]

    try:
        reader = csv.DictReader(io.StringIO(content), delimiter=CSV_DELIMITER)
        missing = [f for f in REPORT_FIELDS if f not in (reader.fieldnames or [])]
        if missing:
            raise ValidationError(f"Report CSV is missing columns: {', '.join(missing)}")
        raw_rows = list(reader)
    except csv.Error as exc:
        raise ValidationError(f"Report CSV could not be parsed: {exc}") from exc

    rows = []
    for line_number, raw in enumerate(raw_rows, start=1):
        try:
            quant_loja = Decimal(raw["quant_loja"] or "0")
            quant_estoque = Decimal(raw["quant_estoque"] or "0")
        except InvalidOperation:
            raise ValidationError(f"Report CSV row {line_number} has a non-numeric quantity")
        rows.append(ReportRow(
            codigo_de_barras=raw["codigo_de_barras"] or "",
            codigo_produto=raw["codigo_produto"] or "",
            descricao=raw["descricao"] or "",
            quant_loja=quant_loja,
            quant_estoque=quant_estoque,
            data_validade=raw["data_validade"] or "",
        ))
    return rows


def export_filename() -> str:
    prefix = current_app.config.get("EXPORT_FILENAME_PREFIX", "contagem")
    return f"{prefix}_{today_iso()}.csv"
