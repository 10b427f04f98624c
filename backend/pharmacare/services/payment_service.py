"""
Payment capture and order confirmation.

Two steps that cannot share one transaction from the customer's point of view:
record the payment claim, then confirm the order. They are run as a small saga:

    1. (optional) schedule the customer's reminder - never blocks the rest
    2. find a payment already recorded for this order or this idempotency key
    3. otherwise record one              -> failure: PaymentError, nothing changed
    4. confirm the order                 -> failure: ConfirmationInconsistency

After step 3 succeeds the order is locked against edits, so a retry of the same
call (or PATCH /orders/{id}/confirm) lands on step 2, reuses the recorded payment
and only repeats the confirmation. A customer is never charged twice.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import (
    ConfirmationInconsistency,
    InvalidTransitionError,
    PaymentError,
    ValidationError,
)
from pharmacare.models.order import (
    Order,
    ORIGIN_POS,
    ORIGIN_PRESCRIPTION,
    STATUS_CONFIRMED,
    STATUS_PENDING,
)
from pharmacare.models.payment import Payment, TYPE_ONLINE, TYPE_POS, TYPE_PRESCRIPTION
from pharmacare.models.reminder import Reminder
from pharmacare.models.user import User
from pharmacare.services.order_service import get_order, get_order_for_user, money
from pharmacare.services.reminder_service import schedule_reminder

logger = logging.getLogger(__name__)


def payment_type_for(order: Order) -> str:
    if order.origin == ORIGIN_PRESCRIPTION:
        return TYPE_PRESCRIPTION
    if order.origin == ORIGIN_POS:
        return TYPE_POS
    return TYPE_ONLINE


def record_payment(
    db: Session,
    order: Order,
    *,
    amount,
    method: str,
    payment_type: str,
    idempotency_key: str,
    user_id: Optional[int],
) -> Payment:
    """Default payment collaborator: persists the claim. No gateway is involved."""
    payment = Payment(
        order_id=order.id,
        user_id=user_id,
        amount=money(amount),
        method=method,
        payment_type=payment_type,
        idempotency_key=idempotency_key,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def confirm_order(db: Session, order: Order) -> Order:
    """Lock the order. One-way: customization_confirmed never goes back to False."""
    order.customization_confirmed = True
    order.status = STATUS_CONFIRMED
    order.confirmed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(order)
    return order


@dataclass
class PaymentOutcome:
    order: Order
    payment: Payment
    reminder_scheduled: Optional[bool] = None
    reused_payment: bool = False


class PaymentCaptureCoordinator:
    """
    Runs pay-then-confirm for one order.

    The recorder and confirmer are injectable so the failure paths can be
    exercised; in the app they are record_payment and confirm_order.
    """

    def __init__(
        self,
        db: Session,
        recorder: Callable[..., Payment] = record_payment,
        confirmer: Callable[[Session, Order], Order] = confirm_order,
        reminder_scheduler: Callable[..., Reminder] = schedule_reminder,
    ):
        self.db = db
        self.recorder = recorder
        self.confirmer = confirmer
        self.reminder_scheduler = reminder_scheduler

    def pay_and_confirm(
        self,
        order_id: int,
        user: User,
        idempotency_key: str,
        payment_method: Optional[str] = None,
        reminder_date: Optional[date] = None,
        reminder_time: Optional[time] = None,
    ) -> PaymentOutcome:
        db = self.db
        order = get_order_for_user(db, order_id, user)

        existing = self._existing_payment(order, idempotency_key)

        if order.customization_confirmed:
            if existing is None:
                # Confirmed orders always carry a payment; anything else is data corruption
                raise InvalidTransitionError("order", order.status, STATUS_CONFIRMED)
            return PaymentOutcome(order=order, payment=existing, reused_payment=True)

        if order.status != STATUS_PENDING:
            raise InvalidTransitionError("order", order.status, STATUS_CONFIRMED)
        if not order.items:
            raise ValidationError("Cannot pay for an order with no items")

        reminder_scheduled = None
        # A recorded payment means an earlier attempt already handled the reminder
        if existing is None and reminder_date and reminder_time:
            reminder_scheduled = self._try_schedule_reminder(order, user, reminder_date, reminder_time)

        reused = existing is not None
        payment = existing or self._record(order, user, idempotency_key, payment_method)

        try:
            order = self.confirmer(db, order)
        except Exception as e:
            db.rollback()
            logger.error(f"Order {order_id} confirmation failed after payment #{payment.id}: {e}")
            AuditLog.log_payment_anomaly(order_id, payment.id, f"Confirmation failed: {type(e).__name__}")
            raise ConfirmationInconsistency(order_id, payment.id) from e

        AuditLog.log_action(
            "confirm",
            "order",
            order.id,
            user.id,
            changes={"payment_id": payment.id, "amount": str(payment.amount), "reused_payment": reused},
        )
        logger.info(f"Order {order.order_number} confirmed with payment #{payment.id}")
        return PaymentOutcome(
            order=order,
            payment=payment,
            reminder_scheduled=reminder_scheduled,
            reused_payment=reused,
        )

    def _existing_payment(self, order: Order, idempotency_key: str) -> Optional[Payment]:
        by_key = self.db.query(Payment).filter(Payment.idempotency_key == idempotency_key).first()
        if by_key is not None and by_key.order_id != order.id:
            raise ValidationError("This idempotency key was already used for a different order")
        return by_key or order.payment

    def _try_schedule_reminder(self, order: Order, user: User, reminder_date: date, reminder_time: time) -> bool:
        """Fire-and-forget: a failure is reported back, never raised."""
        try:
            self.reminder_scheduler(self.db, order, user, reminder_date, reminder_time)
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Reminder for order {order.id} could not be scheduled: {e}")
            return False

    def _record(self, order: Order, user: User, idempotency_key: str, payment_method: Optional[str]) -> Payment:
        db = self.db
        method = payment_method or order.payment_method or "card"
        amount = money(order.subtotal) + money(order.shipping) + money(order.tax)
        try:
            payment = self.recorder(
                db,
                order,
                amount=amount,
                method=method,
                payment_type=payment_type_for(order),
                idempotency_key=idempotency_key,
                user_id=user.id,
            )
        except IntegrityError:
            # A concurrent request recorded the payment first; use theirs
            db.rollback()
            payment = db.query(Payment).filter(Payment.order_id == order.id).first()
            if payment is None:
                raise PaymentError("Payment could not be recorded. You have not been charged; please retry.")
            return payment
        except Exception as e:
            db.rollback()
            logger.error(f"Recording payment for order {order.id} failed: {e}")
            raise PaymentError("Payment could not be recorded. You have not been charged; please retry.") from e

        AuditLog.log_action(
            "capture",
            "payment",
            payment.id,
            user.id,
            changes={"order_id": order.id, "amount": str(payment.amount), "type": payment.payment_type},
        )
        return payment


def confirm_with_recorded_payment(db: Session, order_id: int, user: User) -> Order:
    """Recovery path: confirm an order whose payment is already on record."""
    order = get_order_for_user(db, order_id, user)
    if order.customization_confirmed:
        return order
    if order.payment is None:
        raise ValidationError("No payment recorded for this order; pay first")
    try:
        order = confirm_order(db, order)
    except Exception as e:
        db.rollback()
        AuditLog.log_payment_anomaly(order_id, order.payment.id, f"Confirmation retry failed: {type(e).__name__}")
        raise ConfirmationInconsistency(order_id, order.payment.id) from e
    AuditLog.log_action("confirm", "order", order.id, user.id, changes={"payment_id": order.payment.id, "retry": True})
    return order


def list_payments(db: Session, order_id: Optional[int] = None) -> List[Payment]:
    q = db.query(Payment)
    if order_id is not None:
        get_order(db, order_id)
        q = q.filter(Payment.order_id == order_id)
    return q.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
