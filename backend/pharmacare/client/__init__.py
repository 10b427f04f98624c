"""
Python client for the PharmaCare API, including the cart session state machine.
"""

from .api import ApiError, PharmacareClient
from .cart import CartSession, GuestCartStore, JsonFileCartStore

__all__ = [
    "ApiError",
    "PharmacareClient",
    "CartSession",
    "GuestCartStore",
    "JsonFileCartStore",
]
