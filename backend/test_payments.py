"""
Pay-then-confirm saga: happy path, idempotent retries, payment failure,
confirmation failure and its recovery, and the non-blocking reminder.
"""
from datetime import date, time

import pytest

from pharmacare.core.exceptions import ConfirmationInconsistency, PaymentError, ValidationError
from pharmacare.models.order import Order
from pharmacare.models.payment import Payment
from pharmacare.models.reminder import Reminder
from pharmacare.services.payment_service import PaymentCaptureCoordinator


def _pay(client, order_id, headers, key="key-000000001", **extra):
    return client.post(f"/orders/{order_id}/pay", json=dict(idempotency_key=key, **extra), headers=headers)


def test_pay_and_confirm(client, draft_order, product, customer_headers, db):
    """Scenario E: 300 + 500 shipping -> one payment of 800, order confirmed and locked."""
    response = _pay(client, draft_order["id"], customer_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == draft_order["id"]

    result = body["data"]
    assert result["payment"]["amount"] == 800.0
    assert result["payment"]["payment_type"] == "prescription"
    assert result["payment"]["method"] == "card"
    assert result["order"]["customization_confirmed"] is True
    assert result["order"]["status"] == "confirmed"
    assert result["reused_payment"] is False
    assert result["reminder_scheduled"] is None

    locked = client.post(f"/orders/{draft_order['id']}/items/{product.id}/increase", headers=customer_headers)
    assert locked.status_code == 409
    assert db.query(Payment).count() == 1


def test_retry_reuses_payment(client, draft_order, customer_headers, db):
    first = _pay(client, draft_order["id"], customer_headers, key="retry-key-0001")
    second = _pay(client, draft_order["id"], customer_headers, key="retry-key-0001")
    assert first.status_code == second.status_code == 200
    assert second.json()["data"]["reused_payment"] is True
    assert second.json()["data"]["payment"]["id"] == first.json()["data"]["payment"]["id"]
    assert db.query(Payment).count() == 1


def test_key_reuse_across_orders_refused(client, draft_order, otc_product, pharmacist_headers, customer_headers):
    _pay(client, draft_order["id"], customer_headers, key="shared-key-001")
    pos = client.post(
        "/orders/pos",
        json={"customer_name": "Walk-in", "items": [{"product_id": otc_product.id, "quantity": 1}]},
        headers=pharmacist_headers,
    ).json()

    response = _pay(client, pos["id"], pharmacist_headers, key="shared-key-001")
    assert response.status_code == 400


def test_pos_payment_type(client, otc_product, pharmacist_headers):
    pos = client.post(
        "/orders/pos",
        json={"customer_name": "Walk-in", "items": [{"product_id": otc_product.id, "quantity": 2}]},
        headers=pharmacist_headers,
    ).json()
    response = _pay(client, pos["id"], pharmacist_headers, key="pos-key-00001")
    assert response.status_code == 200
    payment = response.json()["data"]["payment"]
    assert payment["payment_type"] == "pos"
    assert payment["method"] == "cash"
    assert payment["amount"] == 40.0


def test_only_owner_or_staff_can_pay(client, draft_order, other_headers):
    assert _pay(client, draft_order["id"], other_headers).status_code == 404


def test_reminder_is_scheduled_with_payment(client, draft_order, customer_headers, db):
    response = _pay(
        client,
        draft_order["id"],
        customer_headers,
        reminder={"reminder_date": "2030-01-15", "reminder_time": "08:30:00"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["reminder_scheduled"] is True
    reminder = db.query(Reminder).one()
    assert reminder.order_id == draft_order["id"]
    assert "Amoxicillin" in reminder.notes


# --- coordinator with injected collaborators ---------------------------------


def _load(db, order_id):
    return db.query(Order).filter(Order.id == order_id).one()


def test_payment_failure_leaves_order_editable(db, draft_order, customer):
    def failing_recorder(*args, **kwargs):
        raise RuntimeError("gateway down")

    coordinator = PaymentCaptureCoordinator(db, recorder=failing_recorder)
    with pytest.raises(PaymentError):
        coordinator.pay_and_confirm(draft_order["id"], customer, idempotency_key="fail-key-0001")

    order = _load(db, draft_order["id"])
    assert order.customization_confirmed is False
    assert order.payment is None
    assert order.is_editable


def test_confirmation_failure_then_recovery(client, db, draft_order, customer, customer_headers):
    def failing_confirmer(db, order):
        raise RuntimeError("database hiccup")

    coordinator = PaymentCaptureCoordinator(db, confirmer=failing_confirmer)
    with pytest.raises(ConfirmationInconsistency) as excinfo:
        coordinator.pay_and_confirm(draft_order["id"], customer, idempotency_key="saga-key-0001")

    payment_id = excinfo.value.payment_id
    order = _load(db, draft_order["id"])
    assert order.customization_confirmed is False
    assert order.payment.id == payment_id
    # Payment on record: no more edits until confirmation finishes
    assert not order.is_editable

    # Retrying the same call confirms with the recorded payment
    retried = client.post(
        f"/orders/{draft_order['id']}/pay", json={"idempotency_key": "saga-key-0001"}, headers=customer_headers
    )
    assert retried.status_code == 200
    assert retried.json()["data"]["reused_payment"] is True
    assert retried.json()["data"]["payment"]["id"] == payment_id
    assert db.query(Payment).count() == 1


def test_confirm_endpoint_recovers(client, db, draft_order, customer, customer_headers):
    def failing_confirmer(db, order):
        raise RuntimeError("connection reset")

    coordinator = PaymentCaptureCoordinator(db, confirmer=failing_confirmer)
    with pytest.raises(ConfirmationInconsistency):
        coordinator.pay_and_confirm(draft_order["id"], customer, idempotency_key="saga-key-0002")

    response = client.patch(f"/orders/{draft_order['id']}/confirm", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["data"]["customization_confirmed"] is True
    assert response.json()["data"]["status"] == "confirmed"


def test_confirm_endpoint_needs_payment(client, draft_order, customer_headers):
    response = client.patch(f"/orders/{draft_order['id']}/confirm", headers=customer_headers)
    assert response.status_code == 400


def test_confirmation_is_monotonic(client, db, draft_order, customer, customer_headers):
    _pay(client, draft_order["id"], customer_headers, key="mono-key-0001")
    again = client.patch(f"/orders/{draft_order['id']}/confirm", headers=customer_headers)
    assert again.status_code == 200
    assert again.json()["data"]["customization_confirmed"] is True

    outcome = PaymentCaptureCoordinator(db).pay_and_confirm(draft_order["id"], customer, idempotency_key="mono-key-0001")
    assert outcome.order.customization_confirmed is True
    assert outcome.reused_payment is True


def test_reminder_failure_does_not_block_payment(db, draft_order, customer):
    def failing_scheduler(*args, **kwargs):
        raise ValidationError("reminder service unavailable")

    coordinator = PaymentCaptureCoordinator(db, reminder_scheduler=failing_scheduler)
    outcome = coordinator.pay_and_confirm(
        draft_order["id"],
        customer,
        idempotency_key="remind-key-001",
        reminder_date=date(2030, 1, 15),
        reminder_time=time(8, 30),
    )
    assert outcome.reminder_scheduled is False
    assert outcome.order.customization_confirmed is True
    assert db.query(Reminder).count() == 0


def test_retry_after_confirmation_failure_keeps_one_reminder(db, draft_order, customer):
    def failing_confirmer(db, order):
        raise RuntimeError("connection reset")

    reminder = {"reminder_date": date(2030, 1, 15), "reminder_time": time(8, 30)}
    with pytest.raises(ConfirmationInconsistency):
        PaymentCaptureCoordinator(db, confirmer=failing_confirmer).pay_and_confirm(
            draft_order["id"], customer, idempotency_key="remind-key-002", **reminder
        )

    outcome = PaymentCaptureCoordinator(db).pay_and_confirm(
        draft_order["id"], customer, idempotency_key="remind-key-002", **reminder
    )
    assert outcome.reused_payment is True
    assert outcome.order.customization_confirmed is True
    assert db.query(Reminder).count() == 1
