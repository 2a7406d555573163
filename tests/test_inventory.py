from __future__ import annotations

from decimal import Decimal

import pytest

from shieldcuisine_api.services.inventory import InventoryService


@pytest.mark.parametrize(
    "movement_type, quantity, expected",
    [("in", "5", "15"), ("out", "4", "6"), ("adjustment", "3", "3")],
)
def test_resulting_stock(movement_type, quantity, expected):
    assert InventoryService.resulting_stock(Decimal("10"), movement_type, Decimal(quantity)) == Decimal(expected)


def test_resulting_stock_rejects_unknown_type():
    with pytest.raises(ValueError):
        InventoryService.resulting_stock(Decimal("1"), "transfer", Decimal("1"))


async def _product(client, headers, **values) -> dict:
    payload = {"sku": "ACE-5L", "name": "Aceite de oliva 5L", "unit": "l", "stock_quantity": 10, "min_stock": 4}
    payload.update(values)
    res = await client.post("/api/inventory/products", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_sku_is_unique_per_company(client, admin_headers):
    await _product(client, admin_headers)
    dup = await client.post(
        "/api/inventory/products", json={"sku": "ACE-5L", "name": "Otro"}, headers=admin_headers
    )
    assert dup.status_code == 409


async def test_movements_update_stock(client, admin_headers):
    product = await _product(client, admin_headers)

    entry = await client.post(
        "/api/inventory/movements",
        json={"product_id": product["id"], "movement_type": "in", "quantity": 6, "reference": "ALB-001"},
        headers=admin_headers,
    )
    assert entry.status_code == 201
    assert entry.json()["stock_after"] == 16

    adjust = await client.post(
        "/api/inventory/movements",
        json={"product_id": product["id"], "movement_type": "adjustment", "quantity": 12, "reason": "Recuento"},
        headers=admin_headers,
    )
    assert adjust.json()["stock_after"] == 12

    current = await client.get(f"/api/inventory/products/{product['id']}", headers=admin_headers)
    assert current.json()["stock_quantity"] == 12
    assert current.json()["low_stock"] is False

    history = await client.get(
        "/api/inventory/movements", params={"product_id": product["id"]}, headers=admin_headers
    )
    assert history.json()["total"] == 2


async def test_exit_beyond_stock_is_rejected(client, admin_headers):
    product = await _product(client, admin_headers)
    res = await client.post(
        "/api/inventory/movements",
        json={"product_id": product["id"], "movement_type": "out", "quantity": 11},
        headers=admin_headers,
    )
    assert res.status_code == 409
    assert res.json()["error"]["details"] == {"available": 10.0, "requested": 11.0}

    current = await client.get(f"/api/inventory/products/{product['id']}", headers=admin_headers)
    assert current.json()["stock_quantity"] == 10


async def test_low_stock_exit_notifies_admins(client, admin_headers):
    product = await _product(client, admin_headers)
    res = await client.post(
        "/api/inventory/movements",
        json={"product_id": product["id"], "movement_type": "out", "quantity": 7},
        headers=admin_headers,
    )
    assert res.status_code == 201

    low = await client.get("/api/inventory/products", params={"low_stock": True}, headers=admin_headers)
    assert [p["sku"] for p in low.json()["items"]] == ["ACE-5L"]

    inbox = await client.get("/api/notifications", headers=admin_headers)
    assert inbox.json()["items"][0]["type"] == "inventory"

    dashboard = await client.get("/api/inventory/dashboard", headers=admin_headers)
    assert dashboard.json()["total_products"] == 1
    assert dashboard.json()["low_stock_count"] == 1


async def test_stock_at_minimum_is_not_low(client, admin_headers):
    await _product(client, admin_headers, stock_quantity=4)
    low = await client.get("/api/inventory/products", params={"low_stock": True}, headers=admin_headers)
    assert low.json()["total"] == 0


async def test_deleting_a_supplier_detaches_products(client, admin_headers):
    supplier = await client.post(
        "/api/inventory/suppliers", json={"name": "Olivares del Sur"}, headers=admin_headers
    )
    assert supplier.status_code == 201
    product = await _product(client, admin_headers, supplier_id=supplier.json()["id"])
    assert product["supplier_id"] == supplier.json()["id"]

    res = await client.delete(f"/api/inventory/suppliers/{supplier.json()['id']}", headers=admin_headers)
    assert res.status_code == 200

    current = await client.get(f"/api/inventory/products/{product['id']}", headers=admin_headers)
    assert current.json()["supplier_id"] is None


async def test_unknown_supplier_is_rejected(client, admin_headers):
    res = await client.post(
        "/api/inventory/products",
        json={"sku": "X", "name": "X", "supplier_id": "00000000-0000-0000-0000-000000000000"},
        headers=admin_headers,
    )
    assert res.status_code == 400


async def test_stock_report_as_xlsx(client, admin_headers):
    await _product(client, admin_headers)
    res = await client.get("/api/inventory/reports/stock", params={"format": "xlsx"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    # xlsx files are zip archives
    assert res.content[:2] == b"PK"


async def test_stock_report_as_pdf(client, admin_headers):
    await _product(client, admin_headers)
    res = await client.get("/api/inventory/reports/stock", params={"format": "pdf"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")
