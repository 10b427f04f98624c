"""
Reminder endpoints and the due-reminder scanner.
"""
from datetime import datetime

from pharmacare.models.reminder import Reminder, STATUS_ACTIVE, STATUS_CANCELLED, STATUS_TRIGGERED
from pharmacare.reminders.scheduler import scan_due_reminders


def _create(client, order_id, headers, day="2030-03-01", at="09:00:00"):
    return client.post(
        "/reminders",
        json={"order_id": order_id, "reminder_date": day, "reminder_time": at},
        headers=headers,
    )


def test_create_and_list(client, draft_order, customer_headers):
    response = _create(client, draft_order["id"], customer_headers)
    assert response.status_code == 201
    body = response.json()
    assert isinstance(body["id"], int)
    assert body["data"]["status"] == STATUS_ACTIVE
    assert draft_order["order_number"] in body["data"]["notes"]

    mine = client.get("/reminders/mine", headers=customer_headers).json()
    assert [r["id"] for r in mine["data"]] == [body["id"]]


def test_cannot_remind_on_someone_elses_order(client, draft_order, other_headers):
    assert _create(client, draft_order["id"], other_headers).status_code == 404


def test_cancel(client, draft_order, customer_headers, other_headers):
    reminder_id = _create(client, draft_order["id"], customer_headers).json()["id"]
    assert client.delete(f"/reminders/{reminder_id}", headers=other_headers).status_code == 404

    response = client.delete(f"/reminders/{reminder_id}", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == STATUS_CANCELLED


def test_scanner_triggers_only_due_reminders(client, draft_order, customer_headers, session_factory, db):
    due = _create(client, draft_order["id"], customer_headers, day="2030-03-01", at="09:00:00").json()["id"]
    later_today = _create(client, draft_order["id"], customer_headers, day="2030-03-01", at="18:00:00").json()["id"]
    cancelled = _create(client, draft_order["id"], customer_headers, day="2030-02-01", at="09:00:00").json()["id"]
    client.delete(f"/reminders/{cancelled}", headers=customer_headers)

    count = scan_due_reminders(session_factory, now=datetime(2030, 3, 1, 12, 0))
    assert count == 1

    statuses = {r.id: r.status for r in db.query(Reminder).all()}
    assert statuses == {due: STATUS_TRIGGERED, later_today: STATUS_ACTIVE, cancelled: STATUS_CANCELLED}

    # Already triggered reminders are not picked up again
    assert scan_due_reminders(session_factory, now=datetime(2030, 3, 1, 12, 0)) == 0
