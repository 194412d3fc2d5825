# Overview: Spreadsheet import/export; reads the first sheet of an upload and builds template workbooks.

"""
Spreadsheet Templates

Two import templates, single sheet, header row required:
- items: Kode Barang | Nama Barang | Kategori
- sales: Kode Barang | Jumlah

Only the first sheet of a workbook is read. Blank rows are skipped.
Row numbers are spreadsheet row numbers (header is row 1).
"""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterable, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException


class SpreadsheetError(ValueError):
    """Raised when an upload cannot be read as a template sheet."""


XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}

TEMPLATES = {
    "items": {
        "headers": ("Kode Barang", "Nama Barang", "Kategori"),
        "sample": ("BRG001", "Contoh Barang", "Umum"),
        "filename": "template_import_barang.xlsx",
    },
    "sales": {
        "headers": ("Kode Barang", "Jumlah"),
        "sample": ("BRG001", 1),
        "filename": "template_import_penjualan.xlsx",
    },
}


@dataclass(frozen=True)
class SheetRow:
    row_number: int
    values: dict[str, Any]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _rows_from_matrix(matrix: Iterable[Sequence[Any]]) -> tuple[list[str], list[SheetRow]]:
    iterator = iter(matrix)
    try:
        header_cells = next(iterator)
    except StopIteration:
        raise SpreadsheetError("File is empty or does not match the template")

    headers = [str(h).strip() if h is not None else "" for h in header_cells]
    rows = []
    for row_number, cells in enumerate(iterator, start=2):
        cells = list(cells)
        if all(_is_blank(c) for c in cells):
            continue
        values = {
            headers[i]: cells[i] if i < len(cells) else None
            for i in range(len(headers))
            if headers[i]
        }
        rows.append(SheetRow(row_number=row_number, values=values))
    return headers, rows


def read_rows(stream: BinaryIO, filename: str, *, template: str | None = None) -> list[SheetRow]:
    """
    Parse an uploaded .xlsx or .csv file into SheetRows.

    With `template`, every header of that template must be present.
    """
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    if ext == "csv":
        try:
            text = stream.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise SpreadsheetError("CSV files must be UTF-8 encoded")
        headers, rows = _rows_from_matrix(csv.reader(io.StringIO(text)))
    elif ext in XLSX_EXTENSIONS:
        try:
            wb = load_workbook(stream, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError):
            raise SpreadsheetError("Could not read the workbook")
        try:
            sheet = wb.worksheets[0]
            headers, rows = _rows_from_matrix(sheet.iter_rows(values_only=True))
        finally:
            wb.close()
    else:
        raise SpreadsheetError("Unsupported file format; upload .xlsx or .csv")

    if template is not None:
        required = TEMPLATES[template]["headers"]
        missing = [h for h in required if h not in headers]
        if missing:
            raise SpreadsheetError(f"Missing columns: {', '.join(missing)}")

    if not rows:
        raise SpreadsheetError("File is empty or does not match the template")
    return rows


def write_workbook(headers: Sequence[str], rows: Iterable[Sequence[Any]], *, title: str = "Sheet1") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_template(kind: str) -> tuple[str, bytes]:
    """Return (download filename, workbook bytes) for an import template."""
    template = TEMPLATES.get(kind)
    if template is None:
        raise SpreadsheetError(f"Unknown template: {kind}")
    content = write_workbook(template["headers"], [template["sample"]], title="Template")
    return template["filename"], content
