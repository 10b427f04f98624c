from pharmacare.models.user import User
from pharmacare.models.product import Product
from pharmacare.models.prescription import Prescription
from pharmacare.models.order import Order, OrderItem
from pharmacare.models.payment import Payment
from pharmacare.models.reminder import Reminder
from pharmacare.models.cart import CartItem

__all__ = ["User", "Product", "Prescription", "Order", "OrderItem", "Payment", "Reminder", "CartItem"]
