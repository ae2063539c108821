# Overview: Pytest coverage for catalog service; lookups and CSV import.

import pytest

from stockcount.models import Barcode, Product
from stockcount.services import catalog_service
from stockcount.validation import ValidationError

from conftest import add_product


CATALOG_HEADER = "cod_item;cod_barra;des_item\n"


class TestFindByCode:
    def test_barcode_match(self, db_session, catalog_owner, widget):
        product = catalog_service.find_by_code("B1", catalog_owner.id)
        assert product.id == widget.id

    def test_product_code_match(self, db_session, catalog_owner, widget):
        product = catalog_service.find_by_code("A1", catalog_owner.id)
        assert product.id == widget.id

    def test_barcode_wins_over_product_code(self, db_session, catalog_owner, widget):
        # "A1" is also a barcode of another product
        other = add_product(catalog_owner, "Z9", "Other", "A1")

        product = catalog_service.find_by_code("A1", catalog_owner.id)
        assert product.id == other.id

    def test_whitespace_is_trimmed(self, db_session, catalog_owner, widget):
        assert catalog_service.find_by_code("  B1 ", catalog_owner.id).id == widget.id

    def test_unknown_code(self, db_session, catalog_owner, widget):
        assert catalog_service.find_by_code("nope", catalog_owner.id) is None

    def test_empty_code(self, db_session, catalog_owner, widget):
        assert catalog_service.find_by_code("", catalog_owner.id) is None

    def test_other_owner_catalog_is_invisible(self, db_session, catalog_owner, user_a):
        add_product(user_a, "A1", "Private", "B1")
        assert catalog_service.find_by_code("B1", catalog_owner.id) is None


class TestImport:
    def test_import_skips_rows_with_blanks(self, db_session, catalog_owner):
        result = catalog_service.import_rows(
            [
                {"cod_item": "A1", "cod_barra": "B1", "des_item": "Widget"},
                {"cod_item": "A2", "cod_barra": "", "des_item": "Broken"},
            ],
            catalog_owner.id,
        )
        db_session.commit()

        assert result.imported == 1
        assert result.skipped == 1
        assert result.skipped_lines == [2]

        product = catalog_service.find_by_code("B1", catalog_owner.id)
        assert product.code == "A1"
        assert product.description == "Widget"
        assert catalog_service.find_by_code("A2", catalog_owner.id) is None

    def test_import_csv_text(self, db_session, catalog_owner):
        text = "\ufeff" + CATALOG_HEADER + "A1;B1;Widget\nA2;B2;Gadget\n"

        result = catalog_service.import_catalog_csv(text, catalog_owner.id)
        db_session.commit()

        assert result.imported == 2
        assert result.skipped == 0
        assert db_session.query(Product).filter_by(user_id=catalog_owner.id).count() == 2

    def test_multiple_barcodes_for_one_product(self, db_session, catalog_owner):
        text = CATALOG_HEADER + "A1;B1;Widget\nA1;B1-BOX;Widget\n"

        catalog_service.import_catalog_csv(text, catalog_owner.id)
        db_session.commit()

        product = catalog_service.find_by_code("A1", catalog_owner.id)
        assert [b.barcode for b in product.barcodes] == ["B1", "B1-BOX"]
        assert catalog_service.find_by_code("B1-BOX", catalog_owner.id).id == product.id

    def test_reimport_updates_description_and_repoints_barcode(self, db_session, catalog_owner):
        catalog_service.import_catalog_csv(CATALOG_HEADER + "A1;B1;Widget\n", catalog_owner.id)
        db_session.commit()

        catalog_service.import_catalog_csv(
            CATALOG_HEADER + "A1;X1;Widget v2\nA3;B1;Moved\n",
            catalog_owner.id,
        )
        db_session.commit()

        assert catalog_service.find_by_code("A1", catalog_owner.id).description == "Widget v2"
        assert catalog_service.find_by_code("B1", catalog_owner.id).code == "A3"
        assert db_session.query(Barcode).filter_by(user_id=catalog_owner.id, barcode="B1").count() == 1
        assert db_session.query(Product).filter_by(user_id=catalog_owner.id, code="A1").count() == 1

    def test_missing_header_column(self, db_session, catalog_owner):
        with pytest.raises(ValidationError):
            catalog_service.import_catalog_csv("cod_item;des_item\nA1;Widget\n", catalog_owner.id)

    def test_unknown_owner(self, db_session, catalog_owner):
        with pytest.raises(ValidationError):
            catalog_service.import_rows(
                [{"cod_item": "A1", "cod_barra": "B1", "des_item": "Widget"}],
                catalog_owner.id + 1000,
            )

    def test_empty_lines_are_ignored(self, db_session, catalog_owner):
        result = catalog_service.import_catalog_csv(
            CATALOG_HEADER + "A1;B1;Widget\n\n   \n", catalog_owner.id
        )
        assert result.imported == 1
        assert result.skipped == 0

    def test_delimiter_only_rows_are_counted_as_skipped(self, db_session, catalog_owner):
        result = catalog_service.import_catalog_csv(
            CATALOG_HEADER + "A1;B1;Widget\n;;\nA2\n", catalog_owner.id
        )
        assert result.imported == 1
        assert result.skipped == 2
        assert result.skipped_lines == [2, 3]

    def test_oversized_field_is_a_validation_error(self, db_session, catalog_owner):
        text = CATALOG_HEADER + 'A1;B1;"' + "y" * 200000 + '"\n'
        with pytest.raises(ValidationError):
            catalog_service.import_catalog_csv(text, catalog_owner.id)
