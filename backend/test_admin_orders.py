"""
Admin fulfillment view and status transitions.
"""
from pharmacare.models.order import STATUS_CANCELLED, STATUS_COMPLETED
from pharmacare.models.order import Order


def _pos_order(client, product_id, headers, name="Walk-in"):
    return client.post(
        "/orders/pos",
        json={"customer_name": name, "items": [{"product_id": product_id, "quantity": 1}]},
        headers=headers,
    ).json()["data"]


def _pay(client, order_id, headers):
    response = client.post(f"/orders/{order_id}/pay", json={"idempotency_key": f"admin-key-{order_id:04d}"}, headers=headers)
    assert response.status_code == 200, response.text


def test_admin_list_hides_inactive_orders(client, db, otc_product, pharmacist_headers, admin_headers):
    """Scenario F: pending, completed and cancelled never show up."""
    pending = _pos_order(client, otc_product.id, pharmacist_headers)
    confirmed = _pos_order(client, otc_product.id, pharmacist_headers)
    completed = _pos_order(client, otc_product.id, pharmacist_headers)
    cancelled = _pos_order(client, otc_product.id, pharmacist_headers)
    for order in (confirmed, completed, cancelled):
        _pay(client, order["id"], pharmacist_headers)

    db.query(Order).filter(Order.id == completed["id"]).update({Order.status: STATUS_COMPLETED})
    db.query(Order).filter(Order.id == cancelled["id"]).update({Order.status: STATUS_CANCELLED})
    db.commit()

    filtered = client.get("/orders/admin", params={"status": "confirmed"}, headers=admin_headers).json()
    assert [o["id"] for o in filtered["data"]] == [confirmed["id"]]
    assert filtered["total"] == 1

    everything = client.get("/orders/admin", headers=admin_headers).json()
    ids = {o["id"] for o in everything["data"]}
    assert ids == {confirmed["id"]}
    assert pending["id"] not in ids

    for hidden in ("pending", "completed", "cancelled"):
        response = client.get("/orders/admin", params={"status": hidden}, headers=admin_headers).json()
        assert response["data"] == []
        assert response["total"] == 0


def test_admin_list_search_and_paging(client, otc_product, pharmacist_headers, admin_headers):
    first = _pos_order(client, otc_product.id, pharmacist_headers, name="Sunil Jayasuriya")
    second = _pos_order(client, otc_product.id, pharmacist_headers, name="Anura Bandara")
    _pay(client, first["id"], pharmacist_headers)
    _pay(client, second["id"], pharmacist_headers)

    found = client.get("/orders/admin", params={"search": "jayasuriya"}, headers=admin_headers).json()
    assert [o["id"] for o in found["data"]] == [first["id"]]

    by_number = client.get("/orders/admin", params={"search": second["order_number"]}, headers=admin_headers).json()
    assert [o["id"] for o in by_number["data"]] == [second["id"]]

    page = client.get("/orders/admin", params={"page": 2, "limit": 1}, headers=admin_headers).json()
    assert page["total"] == 2
    assert page["page"] == 2
    assert len(page["data"]) == 1


def test_admin_list_requires_admin(client, pharmacist_headers, customer_headers):
    assert client.get("/orders/admin", headers=pharmacist_headers).status_code == 403
    assert client.get("/orders/admin", headers=customer_headers).status_code == 403


def test_fulfillment_transitions(client, otc_product, pharmacist_headers, admin_headers):
    order = _pos_order(client, otc_product.id, pharmacist_headers)
    _pay(client, order["id"], pharmacist_headers)

    for status in ("shipped", "delivered", "completed"):
        response = client.patch(f"/orders/{order['id']}/status", json={"status": status}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == status

    back = client.patch(f"/orders/{order['id']}/status", json={"status": "shipped"}, headers=admin_headers)
    assert back.status_code == 409
    assert back.json()["error"] == "invalid_transition"


def test_pending_orders_cannot_be_shipped(client, otc_product, pharmacist_headers, admin_headers):
    order = _pos_order(client, otc_product.id, pharmacist_headers)
    response = client.patch(f"/orders/{order['id']}/status", json={"status": "shipped"}, headers=admin_headers)
    assert response.status_code == 409


def test_unknown_status(client, otc_product, pharmacist_headers, admin_headers):
    order = _pos_order(client, otc_product.id, pharmacist_headers)
    response = client.patch(f"/orders/{order['id']}/status", json={"status": "lost"}, headers=admin_headers)
    assert response.status_code == 400


def test_admin_cancel_releases_stock_and_keeps_payment(client, db, draft_order, product, customer_headers, admin_headers):
    response = client.post(f"/orders/{draft_order['id']}/pay", json={"idempotency_key": "cancel-key-001"}, headers=customer_headers)
    payment_id = response.json()["data"]["payment"]["id"]

    cancelled = client.patch(f"/orders/{draft_order['id']}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"
    assert cancelled.json()["data"]["customization_confirmed"] is True

    db.refresh(product)
    assert product.stock == 5
    payments = client.get("/payments", params={"order_id": draft_order["id"]}, headers=admin_headers).json()
    assert [p["id"] for p in payments["data"]] == [payment_id]
