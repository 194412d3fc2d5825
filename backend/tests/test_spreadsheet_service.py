"""
Spreadsheet parsing and template tests.
"""

import io

import pytest
from openpyxl import load_workbook

from stockroom.services import spreadsheet_service
from stockroom.services.spreadsheet_service import SpreadsheetError

from conftest import xlsx_upload


class TestReadRows:
    def test_reads_first_sheet_with_row_numbers(self):
        upload = xlsx_upload(
            ("Kode Barang", "Nama Barang", "Kategori"),
            [("A1", "Satu", "X"), (None, None, None), ("A2", "Dua", "Y")],
        )
        rows = spreadsheet_service.read_rows(upload, "barang.xlsx", template="items")
        assert [r.row_number for r in rows] == [2, 4]
        assert rows[0].values == {"Kode Barang": "A1", "Nama Barang": "Satu", "Kategori": "X"}

    def test_reads_csv(self):
        data = io.BytesIO("Kode Barang,Jumlah\nBRG001,3\n".encode("utf-8-sig"))
        rows = spreadsheet_service.read_rows(data, "sales.csv", template="sales")
        assert rows[0].values == {"Kode Barang": "BRG001", "Jumlah": "3"}

    def test_missing_template_column(self):
        upload = xlsx_upload(("Kode Barang",), [("A1",)])
        with pytest.raises(SpreadsheetError, match="Jumlah"):
            spreadsheet_service.read_rows(upload, "sales.xlsx", template="sales")

    def test_header_only_file_is_empty(self):
        upload = xlsx_upload(("Kode Barang", "Jumlah"), [])
        with pytest.raises(SpreadsheetError):
            spreadsheet_service.read_rows(upload, "sales.xlsx", template="sales")

    def test_unsupported_extension(self):
        with pytest.raises(SpreadsheetError):
            spreadsheet_service.read_rows(io.BytesIO(b"x"), "sales.pdf")

    def test_corrupt_workbook(self):
        with pytest.raises(SpreadsheetError):
            spreadsheet_service.read_rows(io.BytesIO(b"not a zip"), "sales.xlsx")


class TestTemplates:
    @pytest.mark.parametrize(
        "kind,headers",
        [
            ("items", ("Kode Barang", "Nama Barang", "Kategori")),
            ("sales", ("Kode Barang", "Jumlah")),
        ],
    )
    def test_template_has_headers_and_sample(self, kind, headers):
        filename, content = spreadsheet_service.build_template(kind)
        assert filename.endswith(".xlsx")
        values = list(load_workbook(io.BytesIO(content)).active.iter_rows(values_only=True))
        assert values[0] == headers
        assert values[1][0] == "BRG001"

    def test_template_parses_back(self):
        _, content = spreadsheet_service.build_template("sales")
        rows = spreadsheet_service.read_rows(io.BytesIO(content), "t.xlsx", template="sales")
        assert rows[0].values["Jumlah"] == 1

    def test_unknown_template(self):
        with pytest.raises(SpreadsheetError):
            spreadsheet_service.build_template("returns")
