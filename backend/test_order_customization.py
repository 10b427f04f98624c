"""
Customer edits on draft orders: quantity bounds, removal, bulk replace,
cancellation and the totals identity.
"""
from decimal import Decimal


def _total_identity(order):
    expected = Decimal(str(order["subtotal"])) + Decimal(str(order["shipping"])) + Decimal(str(order["tax"]))
    assert abs(Decimal(str(order["total"])) - expected) <= Decimal("0.01")


def _increase(client, order_id, product_id, headers):
    return client.post(f"/orders/{order_id}/items/{product_id}/increase", headers=headers)


def _decrease(client, order_id, product_id, headers):
    return client.post(f"/orders/{order_id}/items/{product_id}/decrease", headers=headers)


def test_increase_stops_at_stock_snapshot(client, draft_order, product, customer_headers, db):
    """Scenario C: quantity never passes the known stock (5)."""
    order_id = draft_order["id"]

    for expected in (4, 5):
        response = _increase(client, order_id, product.id, customer_headers)
        assert response.status_code == 200
        assert response.json()["message"] is None
        order = response.json()["data"]
        assert order["items"][0]["quantity"] == expected
        _total_identity(order)

    capped = _increase(client, order_id, product.id, customer_headers)
    assert capped.status_code == 200
    assert capped.json()["message"] == "Maximum available stock reached"
    line = capped.json()["data"]["items"][0]
    assert line["quantity"] == 5
    assert line["can_increase"] is False

    db.refresh(product)
    assert product.stock == 0


def test_replace_items_above_snapshot_refused(client, draft_order, product, customer_headers):
    order_id = draft_order["id"]
    response = client.patch(
        f"/orders/{order_id}/items",
        json={"items": [{"product_id": product.id, "quantity": 6}]},
        headers=customer_headers,
    )
    assert response.status_code == 400

    order = client.get(f"/orders/{order_id}", headers=customer_headers).json()["data"]
    assert order["items"][0]["quantity"] == 3


def test_decrease_to_zero_removes_line(client, draft_order, product, customer_headers, db):
    """Scenario D: the only line goes, subtotal drops to 0."""
    order_id = draft_order["id"]
    for _ in range(3):
        response = _decrease(client, order_id, product.id, customer_headers)
        assert response.status_code == 200

    order = response.json()["data"]
    assert order["items"] == []
    assert order["subtotal"] == 0.0
    _total_identity(order)

    db.refresh(product)
    assert product.stock == 5


def test_remove_item_releases_stock(client, draft_order, product, customer_headers, db):
    response = client.delete(f"/orders/{draft_order['id']}/items/{product.id}", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["data"]["items"] == []
    db.refresh(product)
    assert product.stock == 5


def test_replace_items(client, approved_prescription, product, second_product, pharmacist_headers, customer_headers, db):
    created = client.post(
        "/orders/from-prescription",
        json={
            "prescription_id": approved_prescription["id"],
            "selections": [
                {"product_id": product.id, "quantity": 1},
                {"product_id": second_product.id, "quantity": 2},
            ],
        },
        headers=pharmacist_headers,
    ).json()
    order_id = created["id"]

    response = client.patch(
        f"/orders/{order_id}/items",
        json={"items": [{"product_id": product.id, "quantity": 4}]},
        headers=customer_headers,
    )
    assert response.status_code == 200
    order = response.json()["data"]
    assert [(i["product_id"], i["quantity"]) for i in order["items"]] == [(product.id, 4)]
    assert order["subtotal"] == 400.0
    _total_identity(order)

    db.refresh(product)
    db.refresh(second_product)
    assert product.stock == 1
    assert second_product.stock == 10


def test_replace_items_rejects_foreign_products(client, draft_order, otc_product, customer_headers):
    response = client.patch(
        f"/orders/{draft_order['id']}/items",
        json={"items": [{"product_id": otc_product.id, "quantity": 1}]},
        headers=customer_headers,
    )
    assert response.status_code == 400


def test_other_customer_cannot_edit(client, draft_order, product, other_headers):
    response = _increase(client, draft_order["id"], product.id, other_headers)
    assert response.status_code == 404


def test_cancel_draft_releases_stock(client, draft_order, product, customer_headers, db):
    response = client.delete(f"/orders/{draft_order['id']}", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["id"] == draft_order["id"]

    assert client.get(f"/orders/{draft_order['id']}", headers=customer_headers).status_code == 404
    db.refresh(product)
    assert product.stock == 5


def test_confirmed_order_is_locked(client, draft_order, product, customer_headers):
    order_id = draft_order["id"]
    paid = client.post(f"/orders/{order_id}/pay", json={"idempotency_key": "lock-test-0001"}, headers=customer_headers)
    assert paid.status_code == 200

    for response in (
        _increase(client, order_id, product.id, customer_headers),
        _decrease(client, order_id, product.id, customer_headers),
        client.delete(f"/orders/{order_id}", headers=customer_headers),
    ):
        assert response.status_code == 409
        assert response.json()["error"] == "order_locked"
