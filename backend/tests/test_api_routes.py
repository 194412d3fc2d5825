"""
HTTP API tests for items, ledger partitions, imports and reports.
"""

import io

import pytest
from openpyxl import load_workbook

from stockroom.models import Item, Movement

from conftest import xlsx_upload


def _create_item(client, headers, code="BRG001", name="Kopi", category="Minuman"):
    resp = client.post("/api/items", json={"code": code, "name": name, "category": category}, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["item"]


def _receive(client, headers, item_id, quantity):
    resp = client.post("/api/incoming", json={"item_id": item_id, "quantity": quantity}, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["incoming"]


# =============================================================================
# ITEMS
# =============================================================================


class TestItemRoutes:
    def test_create_and_list(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        assert item["quantity"] == 0
        resp = client.get("/api/items", headers=auth_headers)
        assert resp.status_code == 200
        assert [i["code"] for i in resp.json["items"]] == ["BRG001"]

    def test_create_duplicate_code(self, client, auth_headers):
        _create_item(client, auth_headers)
        resp = client.post(
            "/api/items",
            json={"code": "BRG001", "name": "Lain", "category": "X"},
            headers=auth_headers,
        )
        assert resp.status_code == 409

    def test_create_missing_field(self, client, auth_headers):
        resp = client.post("/api/items", json={"code": "BRG001", "name": "Kopi"}, headers=auth_headers)
        assert resp.status_code == 400
        assert "category" in resp.json["error"]

    def test_quantity_not_writable(self, client, auth_headers):
        resp = client.post(
            "/api/items",
            json={"code": "BRG001", "name": "Kopi", "category": "X", "quantity": 50},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_rename(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        resp = client.patch(f"/api/items/{item['id']}", json={"name": "Kopi Susu"}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json["item"]["name"] == "Kopi Susu"

    def test_rename_rejects_category(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        resp = client.patch(f"/api/items/{item['id']}", json={"category": "Lain"}, headers=auth_headers)
        assert resp.status_code == 400

    def test_get_and_delete(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        assert client.get(f"/api/items/{item['id']}", headers=auth_headers).status_code == 200
        assert client.delete(f"/api/items/{item['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/items/{item['id']}", headers=auth_headers).status_code == 404

    def test_order_by_code(self, client, auth_headers):
        _create_item(client, auth_headers, code="B")
        _create_item(client, auth_headers, code="A")
        resp = client.get("/api/items?order_by=code", headers=auth_headers)
        assert [i["code"] for i in resp.json["items"]] == ["A", "B"]
        assert client.get("/api/items?order_by=nope", headers=auth_headers).status_code == 400

    def test_search(self, client, auth_headers):
        _create_item(client, auth_headers, code="BRG001", name="Kopi", category="Minuman")
        _create_item(client, auth_headers, code="SNK001", name="Keripik", category="Makanan")
        resp = client.get("/api/items?search=minum&order_by=code", headers=auth_headers)
        assert resp.status_code == 200
        assert [i["code"] for i in resp.json["items"]] == ["BRG001"]

    def test_import(self, client, auth_headers, db_session):
        upload = xlsx_upload(
            ("Kode Barang", "Nama Barang", "Kategori"),
            [("A1", "Satu", "X"), ("A2", "", "X"), ("A3", "Tiga", "Y")],
        )
        resp = client.post(
            "/api/items/import",
            data={"file": (upload, "barang.xlsx")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.json["success_count"] == 2
        assert resp.json["error_count"] == 1
        assert resp.json["errors"][0]["row_number"] == 3
        assert db_session.query(Item).count() == 2

    def test_import_requires_file(self, client, auth_headers):
        resp = client.post("/api/items/import", data={}, headers=auth_headers, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_template_download(self, client, auth_headers):
        resp = client.get("/api/items/template", headers=auth_headers)
        assert resp.status_code == 200
        assert "template_import_barang.xlsx" in resp.headers["Content-Disposition"]
        ws = load_workbook(io.BytesIO(resp.data)).active
        assert next(ws.iter_rows(values_only=True)) == ("Kode Barang", "Nama Barang", "Kategori")


# =============================================================================
# LEDGER PARTITIONS
# =============================================================================


class TestStockRoutes:
    def test_incoming_then_sale(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        _receive(client, auth_headers, item["id"], 10)
        resp = client.post("/api/sales", json={"item_id": item["id"], "quantity": 4}, headers=auth_headers)
        assert resp.status_code == 201
        assert client.get(f"/api/items/{item['id']}", headers=auth_headers).json["item"]["quantity"] == 6

        resp = client.get("/api/sales?preset=today", headers=auth_headers)
        assert [s["quantity"] for s in resp.json["sales"]] == [4]
        resp = client.get("/api/incoming?preset=current_month", headers=auth_headers)
        assert [s["quantity"] for s in resp.json["incoming"]] == [10]

    def test_oversell_is_conflict(self, client, auth_headers, db_session):
        item = _create_item(client, auth_headers)
        _receive(client, auth_headers, item["id"], 3)
        resp = client.post("/api/sales", json={"item_id": item["id"], "quantity": 5}, headers=auth_headers)
        assert resp.status_code == 409
        assert db_session.query(Movement).filter_by(kind="sale").count() == 0

    def test_sale_unknown_item(self, client, auth_headers):
        resp = client.post("/api/sales", json={"item_id": 999, "quantity": 1}, headers=auth_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("quantity", [0, -3, 2.5, "x"])
    def test_bad_quantity(self, client, auth_headers, quantity):
        item = _create_item(client, auth_headers)
        resp = client.post("/api/incoming", json={"item_id": item["id"], "quantity": quantity}, headers=auth_headers)
        assert resp.status_code == 400

    def test_bad_range(self, client, auth_headers):
        resp = client.get("/api/incoming?start=2024-02-01&end=2024-01-01", headers=auth_headers)
        assert resp.status_code == 400
        resp = client.get("/api/sales?preset=yesterday", headers=auth_headers)
        assert resp.status_code == 400

    def test_borrow_lifecycle(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        _receive(client, auth_headers, item["id"], 10)
        resp = client.post(
            "/api/borrows",
            json={"item_id": item["id"], "quantity": 2, "borrower": "Budi", "purpose": "Sampel"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        borrow = resp.json["borrow"]
        assert borrow["status"] == "borrowed"

        resp = client.post(f"/api/borrows/{borrow['id']}/return", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json["borrow"]["status"] == "returned"
        resp = client.post(f"/api/borrows/{borrow['id']}/sold", headers=auth_headers)
        assert resp.status_code == 400

        resp = client.get("/api/borrows?status=returned", headers=auth_headers)
        assert len(resp.json["borrows"]) == 1
        assert client.get("/api/borrows?status=lost", headers=auth_headers).status_code == 400

    def test_borrow_missing_purpose(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        resp = client.post(
            "/api/borrows",
            json={"item_id": item["id"], "quantity": 1, "borrower": "Budi"},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_return_approve_and_reject(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        first = client.post(
            "/api/returns",
            json={"item_id": item["id"], "quantity": 2, "source": "cod_failed", "store_name": "Toko A"},
            headers=auth_headers,
        ).json["return"]
        second = client.post(
            "/api/returns",
            json={"item_id": item["id"], "quantity": 1, "source": "damaged", "notes": "pecah"},
            headers=auth_headers,
        ).json["return"]

        resp = client.post(f"/api/returns/{first['id']}/approve", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json["return"]["status"] == "approved"
        resp = client.post(f"/api/returns/{second['id']}/reject", headers=auth_headers)
        assert resp.json["return"]["status"] == "rejected"

        assert client.get(f"/api/items/{item['id']}", headers=auth_headers).json["item"]["quantity"] == 2

        resp = client.get("/api/returns", headers=auth_headers)
        assert set(resp.json["by_source"]) == {"cod_failed", "damaged"}
        assert client.post(f"/api/returns/{first['id']}/approve", headers=auth_headers).status_code == 400
        assert client.post("/api/returns/999/approve", headers=auth_headers).status_code == 404

    def test_return_bad_source(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        resp = client.post(
            "/api/returns",
            json={"item_id": item["id"], "quantity": 1, "source": "lost"},
            headers=auth_headers,
        )
        assert resp.status_code == 400


# =============================================================================
# SALES IMPORT / REPORTS / SYSTEM
# =============================================================================


class TestImportAndReports:
    def test_sales_import(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        _receive(client, auth_headers, item["id"], 5)
        upload = xlsx_upload(("Kode Barang", "Jumlah"), [("BRG001", 2), ("ZZZ", 1), ("BRG001", 9)])
        resp = client.post(
            "/api/sales/import",
            data={"file": (upload, "penjualan.xlsx")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.json["success_count"] == 1
        assert resp.json["error_count"] == 2
        assert client.get(f"/api/items/{item['id']}", headers=auth_headers).json["item"]["quantity"] == 3

    def test_sales_import_all_invalid(self, client, auth_headers):
        upload = xlsx_upload(("Kode Barang", "Jumlah"), [("ZZZ", 1)])
        resp = client.post(
            "/api/sales/import",
            data={"file": (upload, "penjualan.xlsx")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.json["success_count"] == 0

    def test_sales_import_wrong_template(self, client, auth_headers):
        upload = xlsx_upload(("Kode", "Qty"), [("BRG001", 1)])
        resp = client.post(
            "/api/sales/import",
            data={"file": (upload, "penjualan.xlsx")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_restock_report(self, client, auth_headers):
        item = _create_item(client, auth_headers)
        _receive(client, auth_headers, item["id"], 100)
        client.post("/api/sales", json={"item_id": item["id"], "quantity": 10}, headers=auth_headers)

        today = client.get("/api/sales?preset=today", headers=auth_headers).json["sales"][0]["occurred_at"][:10]
        resp = client.get(f"/api/reports/restock?start={today}&end={today}", headers=auth_headers)
        assert resp.status_code == 200
        row = resp.json["rows"][0]
        assert row["total_sales"] == 10
        assert row["stock_status"] == "stock_sufficient"

        resp = client.get(
            f"/api/reports/restock?start={today}&end={today}&status=buy_soon", headers=auth_headers
        )
        assert resp.json["rows"] == []

    def test_restock_report_bad_input(self, client, auth_headers):
        assert client.get("/api/reports/restock", headers=auth_headers).status_code == 400
        resp = client.get("/api/reports/restock?start=2024-01-01&end=2024-01-31&sort=price", headers=auth_headers)
        assert resp.status_code == 400

    def test_restock_export(self, client, auth_headers):
        _create_item(client, auth_headers)
        resp = client.get("/api/reports/restock/export?start=2024-01-01&end=2024-01-31", headers=auth_headers)
        assert resp.status_code == 200
        assert "laporan_stok_2024-01-01_2024-01-31.xlsx" in resp.headers["Content-Disposition"]

    def test_health(self, client, db_session):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_health_reports_ledger_drift(self, client, db_session, stocked_item):
        db_session.query(Item).filter_by(id=stocked_item.id).update({"quantity": 3})
        db_session.commit()
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"
        assert resp.json["checks"]["ledger"]["details"]["divergent_items"] == 1

    def test_version(self, client):
        assert client.get("/api/system/version").json["api_version"] == "0.1.0"
