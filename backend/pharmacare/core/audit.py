"""
Audit trail for fulfillment and security events.

One JSON object per line on the "audit" logger, kept apart from the
application log so it can be shipped and retained separately. Auth entries
never carry passwords or tokens.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

audit_logger = logging.getLogger("audit")


def _emit(level: int, event_type: str, **fields: Any) -> None:
    entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "event_type": event_type}
    entry.update({key: value for key, value in fields.items() if value is not None})
    audit_logger.log(level, json.dumps(entry, default=str))


class AuditLog:
    """Static entry points used by routes and services."""

    @staticmethod
    def log_authentication(action: str, email: str, ip_address: str, success: bool, reason: str = ""):
        """
        action is one of register, login, logout, failed_login.

            AuditLog.log_authentication("failed_login", "a@b.lk", "10.0.0.4", False, reason="Bad credentials")
        """
        _emit(
            logging.INFO if success else logging.WARNING,
            f"auth.{action}",
            email=email,
            ip_address=ip_address,
            success=success,
            reason=reason if (reason and not success) else None,
        )

    @staticmethod
    def log_action(
        action: str,
        resource_type: str,
        resource_id: int,
        user_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Who changed what. resource_type is prescription, order, payment,
        reminder or cart; event_type comes out as e.g. "prescription.approve".
        """
        _emit(
            logging.INFO,
            f"{resource_type}.{action}",
            resource_id=resource_id,
            user_id=user_id,
            changes=changes or None,
        )

    @staticmethod
    def log_access_denied(action: str, resource_type: str, resource_id: Optional[int], user_id: int, reason: str):
        _emit(
            logging.WARNING,
            "access_denied",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            reason=reason,
        )

    @staticmethod
    def log_payment_anomaly(order_id: int, payment_id: Optional[int], detail: str):
        """Payments that need a human: confirmation failures, refunds owed after cancel."""
        _emit(logging.WARNING, "payment.anomaly", order_id=order_id, payment_id=payment_id, detail=detail)
