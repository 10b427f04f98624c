"""
HTTP client for the PharmaCare API.

Error bodies are mapped back onto the same exception types the server raises,
and created ids are always read from the response envelope's `id` field.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from pharmacare.core.exceptions import (
    AuthenticationError,
    ConfirmationInconsistency,
    ConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OrderLockedError,
    PaymentError,
    PermissionDeniedError,
    PharmacyError,
    StaleVersionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class ApiError(PharmacyError):
    """Any failure without a more specific mapping (network, 5xx, unexpected body)."""

    code = "api_error"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        InsufficientStockError,
        AuthenticationError,
        PermissionDeniedError,
        NotFoundError,
        ConflictError,
        StaleVersionError,
        InvalidTransitionError,
        OrderLockedError,
        PaymentError,
        ConfirmationInconsistency,
    )
}

ERRORS_BY_STATUS = {
    400: ValidationError,
    401: AuthenticationError,
    402: PaymentError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _rebuild(cls, detail: str) -> PharmacyError:
    # Server-side constructors take structured fields; the wire only carries the message.
    err = cls.__new__(cls)
    PharmacyError.__init__(err, detail)
    return err


def _raise_for(response: requests.Response) -> None:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    detail = body.get("detail")
    if not isinstance(detail, str):
        detail = str(detail or response.reason or "Request failed")

    cls = ERRORS_BY_CODE.get(body.get("error")) or ERRORS_BY_STATUS.get(response.status_code)
    if cls is None:
        raise ApiError(f"HTTP {response.status_code}: {detail}")
    err = _rebuild(cls, detail)
    if isinstance(err, ConfirmationInconsistency):
        err.order_id = None
        err.payment_id = body.get("payment_id")
    raise err


class PharmacareClient:
    """Thin wrapper over the REST API. One instance per signed-in (or guest) user."""

    def __init__(self, base_url: str, token: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http = session or requests.Session()

    # -- plumbing ----------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.http.request(
                method, f"{self.base_url}{path}", headers=headers, timeout=DEFAULT_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error: {e}") from e
        if not response.ok:
            _raise_for(response)
        return response.json() if response.content else None

    @staticmethod
    def _created(body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        if not isinstance(body, dict) or not isinstance(body.get("id"), int):
            raise ApiError("Response envelope has no id")
        return body["id"], body["data"]

    # -- auth ----------------------------------------------------------------

    def login(self, email: str, password: str) -> str:
        body = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = body["access_token"]
        return self.token

    def logout(self) -> None:
        if self.token:
            self._request("POST", "/auth/logout")
        self.token = None

    # -- catalog -------------------------------------------------------------

    def list_products(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"search": search} if search else None
        return self._request("GET", "/products", params=params)["data"]

    # -- cart ----------------------------------------------------------------

    def get_cart(self) -> Dict[str, Any]:
        return self._request("GET", "/cart")

    def put_cart(self, lines: Iterable[Tuple[int, int]]) -> Dict[str, Any]:
        items = [{"product_id": pid, "quantity": qty} for pid, qty in lines]
        return self._request("PUT", "/cart", json={"items": items})

    def merge_cart(self, lines: Iterable[Tuple[int, int]]) -> Dict[str, Any]:
        items = [{"product_id": pid, "quantity": qty} for pid, qty in lines]
        return self._request("POST", "/cart/merge", json={"items": items})

    # -- prescriptions -------------------------------------------------------

    def submit_prescription(self, fields: Dict[str, str], files: List[Tuple[str, bytes, str]]) -> Tuple[int, Dict[str, Any]]:
        multipart = [("documents", (name, content, content_type)) for name, content, content_type in files]
        return self._created(self._request("POST", "/prescriptions", data=fields, files=multipart))

    def transition_prescription(self, prescription_id: int, action: str, version: int, reason: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"version": version}
        if reason is not None:
            payload["reason"] = reason
        return self._created(self._request("PATCH", f"/prescriptions/{prescription_id}/{action}", json=payload))[1]

    # -- orders --------------------------------------------------------------

    def assemble_order(self, prescription_id: int, selections: Iterable[Tuple[int, int]]) -> Tuple[int, Dict[str, Any]]:
        body = {
            "prescription_id": prescription_id,
            "selections": [{"product_id": pid, "quantity": qty} for pid, qty in selections],
        }
        return self._created(self._request("POST", "/orders/from-prescription", json=body))

    def checkout(self, payment_method: str = "card") -> Tuple[int, Dict[str, Any]]:
        return self._created(self._request("POST", "/orders/checkout", json={"payment_method": payment_method}))

    def get_order(self, order_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/orders/{order_id}")["data"]

    def increase_item(self, order_id: int, product_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/items/{product_id}/increase")["data"]

    def decrease_item(self, order_id: int, product_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/items/{product_id}/decrease")["data"]

    def remove_item(self, order_id: int, product_id: int) -> Dict[str, Any]:
        return self._request("DELETE", f"/orders/{order_id}/items/{product_id}")["data"]

    def cancel_order(self, order_id: int) -> None:
        self._request("DELETE", f"/orders/{order_id}")

    def pay_and_confirm(
        self,
        order_id: int,
        payment_method: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        reminder: Optional[Tuple[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Pay and confirm. On ConfirmationInconsistency, call again with the same
        idempotency_key (or confirm_order) - the recorded payment is reused.
        """
        body: Dict[str, Any] = {
            "payment_method": payment_method,
            "idempotency_key": idempotency_key or uuid.uuid4().hex,
        }
        if reminder:
            body["reminder"] = {"reminder_date": reminder[0], "reminder_time": reminder[1]}
        return self._request("POST", f"/orders/{order_id}/pay", json=body)["data"]

    def confirm_order(self, order_id: int) -> Dict[str, Any]:
        return self._request("PATCH", f"/orders/{order_id}/confirm")["data"]
