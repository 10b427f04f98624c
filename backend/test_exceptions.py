"""
Error mapping both ways: domain exceptions to HTTP bodies on the server, and
HTTP bodies back to domain exceptions in the client.
"""
import json

import pytest
import requests

from pharmacare.client.api import ApiError, PharmacareClient
from pharmacare.core.exceptions import (
    AuthenticationError,
    ConfirmationInconsistency,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    OrderLockedError,
    PaymentError,
    StaleVersionError,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (ValidationError("bad"), 400, "validation_error"),
        (InsufficientStockError(1, 3), 409, "insufficient_stock"),
        (AuthenticationError(), 401, "authentication_error"),
        (NotFoundError("Order", 4), 404, "not_found"),
        (StaleVersionError("Prescription", 2, 3), 409, "stale_version"),
        (OrderLockedError("locked"), 409, "order_locked"),
        (PaymentError(), 402, "payment_error"),
        (ConfirmationInconsistency(4, 9), 409, "confirmation_pending"),
    ],
)
def test_status_and_code(exc, status, code):
    assert exc.status_code == status
    assert exc.code == code


def test_insufficient_stock_is_a_validation_error():
    assert issubclass(InsufficientStockError, ValidationError)
    assert issubclass(StaleVersionError, ConflictError)


def test_not_found_message():
    assert NotFoundError("Order", 12).message == "Order not found"


def test_error_body_shape(client):
    response = client.get("/orders/999", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json() == {"success": False, "error": "authentication_error", "detail": "Invalid or expired token"}


# --- client side ------------------------------------------------------------


class StubSession:
    def __init__(self, status, body):
        self.status = status
        self.body = body
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = requests.Response()
        response.status_code = self.status
        response._content = json.dumps(self.body).encode("utf-8")
        response.url = url
        return response


def _client(status, body, token="tok"):
    return PharmacareClient("http://pharmacy.test/", token=token, session=StubSession(status, body))


def test_client_reads_id_from_envelope():
    api = _client(201, {"success": True, "id": 42, "data": {"id": 42, "status": "pending"}, "message": None})
    order_id, data = api.checkout()
    assert order_id == 42
    assert data["status"] == "pending"

    method, url, kwargs = api.http.calls[0]
    assert (method, url) == ("POST", "http://pharmacy.test/orders/checkout")
    assert kwargs["headers"]["Authorization"] == "Bearer tok"


def test_client_refuses_envelope_without_id():
    api = _client(201, {"success": True, "data": {"order": {"id": 42}}})
    with pytest.raises(ApiError):
        api.checkout()


@pytest.mark.parametrize(
    "status, code, expected",
    [
        (400, "validation_error", ValidationError),
        (409, "insufficient_stock", InsufficientStockError),
        (409, "stale_version", StaleVersionError),
        (409, "order_locked", OrderLockedError),
        (402, "payment_error", PaymentError),
        (404, "not_found", NotFoundError),
        (401, None, AuthenticationError),
        (422, None, ValidationError),
    ],
)
def test_client_maps_errors(status, code, expected):
    body = {"success": False, "detail": "nope"}
    if code:
        body["error"] = code
    with pytest.raises(expected) as excinfo:
        _client(status, body).get_order(1)
    assert excinfo.value.message == "nope"


def test_client_surfaces_confirmation_pending():
    api = _client(409, {"success": False, "error": "confirmation_pending", "detail": "retry", "payment_id": 9, "retryable": True})
    with pytest.raises(ConfirmationInconsistency) as excinfo:
        api.pay_and_confirm(3, idempotency_key="client-key-01")
    assert excinfo.value.payment_id == 9


def test_client_unknown_server_error():
    with pytest.raises(ApiError):
        _client(500, {"success": False, "error": "server_error", "detail": "An internal error occurred."}).get_order(1)
