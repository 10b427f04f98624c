"""
Client-side cart session.

One CartSession per browsing session. Guests keep their cart in a
GuestCartStore; signed-in customers keep it on the server. Every mutation
changes the local cart first and syncs afterwards, so callers never wait on
the network and never see a sync failure as an exception.
"""
import concurrent.futures
import json
import logging
import os
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

Line = Tuple[int, int]


class GuestCartStore:
    """In-memory guest cart. Lost when the process exits."""

    def __init__(self):
        self._lines: "OrderedDict[int, int]" = OrderedDict()

    def load(self) -> "OrderedDict[int, int]":
        return OrderedDict(self._lines)

    def save(self, lines: Mapping[int, int]) -> None:
        self._lines = OrderedDict(lines)

    def clear(self) -> None:
        self._lines = OrderedDict()


class JsonFileCartStore(GuestCartStore):
    """Guest cart persisted to a JSON file between runs."""

    def __init__(self, path: str):
        super().__init__()
        self.path = path

    def load(self) -> "OrderedDict[int, int]":
        if not os.path.exists(self.path):
            return OrderedDict()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[Cart] Ignoring unreadable guest cart {self.path}: {e}")
            return OrderedDict()
        return OrderedDict((int(line["product_id"]), int(line["quantity"])) for line in raw)

    def save(self, lines: Mapping[int, int]) -> None:
        payload = [{"product_id": pid, "quantity": qty} for pid, qty in lines.items()]
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


class CartSession:
    """
    Cart state machine: guest -> (login, merge) -> authenticated -> (logout) -> guest.

    `api` is a PharmacareClient (or anything with the same token / get_cart /
    put_cart / merge_cart / logout surface).
    """

    def __init__(self, api, store: Optional[GuestCartStore] = None, executor=None):
        self.api = api
        self.store = store or GuestCartStore()
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(max_workers=1)
        self.lines: "OrderedDict[int, int]" = OrderedDict()
        self.last_sync_error: Optional[Exception] = None
        self.last_rejected: List[Line] = []
        self._pending: Optional[concurrent.futures.Future] = None

    @property
    def authenticated(self) -> bool:
        return bool(self.api.token)

    # -- session transitions -------------------------------------------------

    def start(self) -> None:
        """Load the persisted cart when signed in, otherwise the guest cart."""
        if self.authenticated:
            self.lines = self._from_response(self.api.get_cart())
        else:
            self.lines = self.store.load()

    def login(self, token: str) -> List[Line]:
        """
        Switch to the customer's server cart, folding the guest cart into it.

        Returns the guest lines the server could not keep.
        """
        self.flush()
        self.api.token = token
        guest = self.store.load()
        response = self.api.merge_cart(list(guest.items()))
        self.lines = self._from_response(response)
        self.last_rejected = [(r["product_id"], r["quantity"]) for r in response.get("rejected", [])]
        self.store.clear()
        if self.last_rejected:
            logger.info(f"[Cart] {len(self.last_rejected)} guest lines not kept after login")
        return self.last_rejected

    def logout(self) -> None:
        self.flush()
        try:
            self.api.logout()
        finally:
            self.api.token = None
            self.lines = self.store.load()

    # -- mutations -----------------------------------------------------------

    def add_item(self, product_id: int, quantity: int = 1) -> None:
        if quantity < 1:
            return
        self.lines[product_id] = self.lines.get(product_id, 0) + quantity
        self._sync()

    def update_quantity(self, product_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        self.lines[product_id] = quantity
        self._sync()

    def remove_item(self, product_id: int) -> None:
        if self.lines.pop(product_id, None) is not None:
            self._sync()

    def clear(self) -> None:
        self.lines = OrderedDict()
        self._sync()

    # -- derived -------------------------------------------------------------

    def quantity(self, product_id: int) -> int:
        return self.lines.get(product_id, 0)

    def available_stock(self, product: Mapping[str, Any]) -> Optional[int]:
        """Stock left to add from this cart. None for prescription-only products."""
        if product.get("prescription_required"):
            return None
        return max(int(product["stock"]) - self.quantity(product["id"]), 0)

    # -- sync ----------------------------------------------------------------

    def _sync(self) -> None:
        if not self.authenticated:
            self.store.save(self.lines)
            return
        snapshot = list(self.lines.items())
        self._pending = self.executor.submit(self._push, snapshot)

    def _push(self, snapshot: List[Line]) -> None:
        try:
            self.api.put_cart(snapshot)
            self.last_sync_error = None
        except Exception as e:
            logger.warning(f"[Cart] Sync failed: {e}")
            self.last_sync_error = e

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for the last queued sync to finish."""
        if self._pending is not None:
            self._pending.result(timeout=timeout)
            self._pending = None

    def close(self) -> None:
        self.flush()
        self.executor.shutdown(wait=True)

    @staticmethod
    def _from_response(response: Dict[str, Any]) -> "OrderedDict[int, int]":
        return OrderedDict((item["product_id"], item["quantity"]) for item in response.get("items", []))
