"""
HTTP API tests.

Verifies:
- Actor headers are required (401) and role permissions enforced (403)
- Error responses carry {"error", "details"} with the mapped status code
- Quote, checkout, adjustment, catalog and report endpoints end to end
"""

import pytest

from pharmapos.extensions import db
from pharmapos.models import InventoryRecord, Outlet, Sale


ADMIN = {"X-Actor-Id": "1", "X-Actor-Role": "admin"}


def _stock(product_id):
    db.session.expire_all()
    return db.session.query(InventoryRecord).filter_by(product_id=product_id).one().current_stock


# =============================================================================
# ACTOR HEADERS AND PERMISSIONS
# =============================================================================


class TestAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/inventory/1"),
            ("POST", "/api/inventory/adjustments"),
            ("POST", "/api/cart/quote"),
            ("POST", "/api/sales/checkout"),
            ("GET", "/api/reports/inventory/1"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_non_numeric_actor_id(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Actor-Id": "abc", "X-Actor-Role": "admin"})
        assert resp.status_code == 401

    def test_cashier_cannot_adjust(self, client, cashier_headers, outlet, paracetamol):
        resp = client.post("/api/inventory/adjustments", headers=cashier_headers, json={
            "outlet_id": outlet.id, "product_id": paracetamol.id, "target_stock": 5, "reason": "recount",
        })
        assert resp.status_code == 403
        assert resp.json["details"]["required_permission"] == "ADJUST_INVENTORY"

    def test_cashier_cannot_view_reports(self, client, cashier_headers, outlet):
        resp = client.get(f"/api/reports/inventory/{outlet.id}", headers=cashier_headers)
        assert resp.status_code == 403

    def test_unknown_role(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Actor-Id": "1", "X-Actor-Role": "intern"})
        assert resp.status_code == 403


def test_health(client, db_session):
    resp = client.get("/api/system/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "ok"
    assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# CATALOG
# =============================================================================


class TestProducts:
    def test_create_and_get(self, client, manager_headers, cashier_headers, db_session):
        resp = client.post("/api/products", headers=manager_headers, json={
            "sku": "ZINC-20", "name": "Zinc 20mg", "unit": "tablet", "unit_price_cents": 150,
        })
        assert resp.status_code == 201
        product_id = resp.json["product"]["id"]

        resp = client.post(f"/api/products/{product_id}/packs", headers=manager_headers, json={
            "pack_size": 10, "pack_price_cents": 1400,
        })
        assert resp.status_code == 201
        assert resp.json["pack_variant"]["unit_price_cents"] == 140

        resp = client.get(f"/api/products/{product_id}", headers=cashier_headers)
        assert resp.status_code == 200
        packs = resp.json["product"]["pack_variants"]
        assert [p["pack_size"] for p in packs] == [10]
        assert packs[0]["display_text"] == "10-pack (10 units) - Le 1,400"

    def test_create_validation_error(self, client, manager_headers, db_session):
        resp = client.post("/api/products", headers=manager_headers, json={"sku": "X", "name": "X"})
        assert resp.status_code == 400
        assert resp.json["details"]["missing"] == ["unit_price_cents"]

    def test_float_price_rejected(self, client, manager_headers, db_session):
        resp = client.post("/api/products", headers=manager_headers, json={
            "sku": "X", "name": "X", "unit_price_cents": 9.99,
        })
        assert resp.status_code == 400

    def test_duplicate_sku_conflict(self, client, manager_headers, paracetamol):
        resp = client.post("/api/products", headers=manager_headers, json={
            "sku": "PARA-500", "name": "Again", "unit_price_cents": 10,
        })
        assert resp.status_code == 409

    def test_unknown_product(self, client, cashier_headers, db_session):
        resp = client.get("/api/products/999", headers=cashier_headers)
        assert resp.status_code == 404
        assert "error" in resp.json and "details" in resp.json

    def test_search(self, client, cashier_headers, paracetamol, amoxicillin):
        resp = client.get("/api/products?q=para", headers=cashier_headers)
        assert [p["sku"] for p in resp.json["products"]] == ["PARA-500"]

    def test_deactivate_pack(self, client, manager_headers, outlet, paracetamol, three_pack):
        resp = client.post(
            f"/api/products/{paracetamol.id}/packs/{three_pack.id}/deactivate",
            headers=manager_headers,
            json={"outlet_id": outlet.id},
        )
        assert resp.status_code == 200
        assert resp.json["pack_variant"]["is_active"] is False

    def test_import_legacy_shape(self, client, manager_headers, outlet):
        resp = client.post("/api/products/import", headers=manager_headers, json={
            "outlet_id": outlet.id,
            "products": [
                {"name": "ORS", "barcode": "87654321", "sellingPrice": 2500,
                 "inventory": {"currentStock": 12, "minimumStock": 4}},
            ],
        })
        assert resp.status_code == 201
        assert resp.json["created"] == 1
        product_id = resp.json["products"][0]["id"]
        assert _stock(product_id) == 12


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventory:
    def test_list(self, client, cashier_headers, outlet, paracetamol):
        resp = client.get(f"/api/inventory/{outlet.id}", headers=cashier_headers)
        assert resp.status_code == 200
        item = resp.json["items"][0]
        assert item["current_stock"] == 10
        assert item["status"] == "in_stock"
        assert item["display"] == "3 3-packs + 1 unit"

    def test_pack_breakdown(self, client, cashier_headers, outlet, paracetamol):
        resp = client.get(f"/api/inventory/{outlet.id}/{paracetamol.id}/packs", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["decomposition"]["loose_units"] == 1
        assert resp.json["decomposition"]["total_value_cents"] == 3 * 25 + 10
        assert resp.json["sale_options"][0]["available_packs"] == 3

    def test_unknown_outlet(self, client, cashier_headers, db_session):
        resp = client.get("/api/inventory/999", headers=cashier_headers)
        assert resp.status_code == 404

    def test_adjustment(self, client, manager_headers, outlet, paracetamol):
        resp = client.post("/api/inventory/adjustments", headers=manager_headers, json={
            "outlet_id": outlet.id, "product_id": paracetamol.id, "target_stock": 8, "reason": "recount",
        })
        assert resp.status_code == 201
        assert resp.json["adjustment"]["delta"] == -2
        assert resp.json["adjustment"]["type"] == "decrease"
        assert resp.json["adjustment"]["actor_id"] == 3
        assert resp.json["new_stock"] == 8
        assert _stock(paracetamol.id) == 8

        resp = client.get(f"/api/inventory/{outlet.id}/adjustments", headers=manager_headers)
        assert [a["quantity_delta"] for a in resp.json["adjustments"]] == [-2]

    def test_adjustment_needs_reason(self, client, manager_headers, outlet, paracetamol):
        resp = client.post("/api/inventory/adjustments", headers=manager_headers, json={
            "outlet_id": outlet.id, "product_id": paracetamol.id, "target_stock": 8, "reason": "",
        })
        assert resp.status_code == 400
        assert resp.json["details"]["field"] == "reason"
        assert _stock(paracetamol.id) == 10

    def test_adjustment_no_op(self, client, manager_headers, outlet, paracetamol):
        resp = client.post("/api/inventory/adjustments", headers=manager_headers, json={
            "outlet_id": outlet.id, "product_id": paracetamol.id, "target_stock": 10, "reason": "recount",
        })
        assert resp.status_code == 200
        assert resp.json["status"] == "no_op"


# =============================================================================
# CART AND CHECKOUT
# =============================================================================


class TestCheckout:
    def _lines(self, paracetamol, three_pack):
        return [
            {"product_id": paracetamol.id, "sale_type": "unit", "quantity": 1},
            {"product_id": paracetamol.id, "sale_type": "pack", "pack_variant_id": three_pack.id, "quantity": 2},
        ]

    def test_quote(self, client, cashier_headers, outlet, paracetamol, three_pack):
        resp = client.post("/api/cart/quote", headers=cashier_headers, json={
            "outlet_id": outlet.id, "lines": self._lines(paracetamol, three_pack),
        })
        assert resp.status_code == 200
        assert resp.json["totals"]["total_cents"] == 60
        assert resp.json["totals"]["effective_units"] == 7
        assert _stock(paracetamol.id) == 10

    def test_quote_over_stock(self, client, cashier_headers, outlet, paracetamol):
        resp = client.post("/api/cart/quote", headers=cashier_headers, json={
            "outlet_id": outlet.id, "lines": [{"product_id": paracetamol.id, "quantity": 11}],
        })
        assert resp.status_code == 409
        assert resp.json["details"]["available_units"] == 10

    def test_checkout(self, client, cashier_headers, outlet, paracetamol, three_pack):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "correlation_id": "till-1-0001",
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "cash", "cash_cents": 100},
        })
        assert resp.status_code == 201
        assert resp.json["duplicate"] is False
        assert resp.json["sale"]["change_cents"] == 40
        assert _stock(paracetamol.id) == 3

        sale_id = resp.json["sale_id"]
        resp = client.get(f"/api/sales/{sale_id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["sale"]["created_by_actor_id"] == 7
        assert len(resp.json["sale"]["lines"]) == 2

    def test_checkout_retry_returns_first_sale(self, client, cashier_headers, outlet, paracetamol, three_pack):
        body = {
            "outlet_id": outlet.id,
            "correlation_id": "till-1-0002",
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "card"},
        }
        first = client.post("/api/sales/checkout", headers=cashier_headers, json=body)
        second = client.post("/api/sales/checkout", headers=cashier_headers, json=body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json["duplicate"] is True
        assert second.json["sale_id"] == first.json["sale_id"]
        assert db.session.query(Sale).count() == 1
        assert _stock(paracetamol.id) == 3

    def test_checkout_mixed_shortfall(self, client, cashier_headers, outlet, paracetamol, three_pack):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "mixed", "cash_cents": 20, "card_cents": 30},
        })
        assert resp.status_code == 400
        assert resp.json["details"]["shortfall_cents"] == 10
        assert _stock(paracetamol.id) == 10

    def test_checkout_numeric_mobile_number(self, client, cashier_headers, outlet, paracetamol, three_pack):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "mobile", "mobile_number": 23276123456},
        })
        assert resp.status_code == 400
        assert resp.json["details"]["field"] == "mobile_number"
        assert _stock(paracetamol.id) == 10

    @pytest.mark.parametrize("field,value", [("expiry_date", 20270131), ("batch_number", 42)])
    def test_checkout_bad_batch_fields(self, client, cashier_headers, outlet, paracetamol, field, value):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": [{"product_id": paracetamol.id, "quantity": 1, field: value}],
            "payment": {"method": "card"},
        })
        assert resp.status_code == 400
        assert resp.json["details"] == {"line": 0, "field": field, "value": value}
        assert db.session.query(Sale).count() == 0

    def test_checkout_stores_batch_and_expiry(self, client, cashier_headers, outlet, paracetamol):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": [{"product_id": paracetamol.id, "quantity": 1, "batch_number": "B12", "expiry_date": "2027-01-31"}],
            "payment": {"method": "card"},
        })
        assert resp.status_code == 201

        resp = client.get(f"/api/sales/{resp.json['sale_id']}", headers=cashier_headers)
        line = resp.json["sale"]["lines"][0]
        assert line["batch_number"] == "B12"
        assert line["expiry_date"] == "2027-01-31"

    def test_checkout_mixed_overpaid_by_card(self, client, cashier_headers, outlet, paracetamol, three_pack):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "mixed", "cash_cents": 10, "card_cents": 100},
        })
        assert resp.status_code == 400
        assert resp.json["details"]["non_cash_cents"] == 100

    def test_retry_at_other_outlet_conflicts(self, client, cashier_headers, db_session, outlet, paracetamol,
                                             three_pack):
        other = Outlet(code="EAST", name="East Branch")
        db_session.add(other)
        db_session.commit()

        body = {
            "outlet_id": outlet.id,
            "correlation_id": "till-1-0003",
            "lines": self._lines(paracetamol, three_pack),
            "payment": {"method": "card"},
        }
        assert client.post("/api/sales/checkout", headers=cashier_headers, json=body).status_code == 201

        resp = client.post("/api/sales/checkout", headers=cashier_headers, json=dict(body, outlet_id=other.id))
        assert resp.status_code == 409
        assert resp.json["details"]["correlation_id"] == "till-1-0003"
        assert db.session.query(Sale).count() == 1

    def test_list_sales(self, client, cashier_headers, outlet, paracetamol, three_pack):
        for ref in ("till-1-0004", "till-1-0005"):
            client.post("/api/sales/checkout", headers=cashier_headers, json={
                "outlet_id": outlet.id,
                "correlation_id": ref,
                "lines": [{"product_id": paracetamol.id, "quantity": 1}],
                "payment": {"method": "card"},
            })

        resp = client.get(f"/api/sales?outlet_id={outlet.id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert [s["correlation_id"] for s in resp.json["sales"]] == ["till-1-0005", "till-1-0004"]

        assert client.get("/api/sales", headers=cashier_headers).status_code == 400
        assert client.get("/api/sales?outlet_id=999", headers=cashier_headers).status_code == 404

    def test_checkout_empty_cart(self, client, cashier_headers, outlet):
        resp = client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id, "lines": [], "payment": {"method": "card"},
        })
        assert resp.status_code == 400

    def test_unknown_sale(self, client, cashier_headers, db_session):
        resp = client.get("/api/sales/999", headers=cashier_headers)
        assert resp.status_code == 404


# =============================================================================
# REPORTS
# =============================================================================


class TestReports:
    def test_inventory_report(self, client, manager_headers, outlet, paracetamol, amoxicillin):
        resp = client.get(f"/api/reports/inventory/{outlet.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["total_products"] == 2
        assert resp.json["total_value_cents"] == 10 * 6 + 5 * 8
        assert [r["sku"] for r in resp.json["low_stock"]] == ["AMOX-250"]
        assert resp.json["out_of_stock"] == []

    def test_top_products_use_effective_units(self, client, cashier_headers, manager_headers, outlet, paracetamol,
                                              three_pack, amoxicillin):
        client.post("/api/sales/checkout", headers=cashier_headers, json={
            "outlet_id": outlet.id,
            "lines": [
                {"product_id": paracetamol.id, "sale_type": "pack", "pack_variant_id": three_pack.id, "quantity": 2},
                {"product_id": amoxicillin.id, "quantity": 1},
            ],
            "payment": {"method": "card"},
        })

        resp = client.get(f"/api/reports/top-products/{outlet.id}", headers=manager_headers)
        rows = resp.json["rows"]
        assert [r["sku"] for r in rows] == ["PARA-500", "AMOX-250"]
        assert rows[0]["units_sold"] == 6
        assert rows[0]["revenue_cents"] == 50
