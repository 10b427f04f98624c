"""
Role checks shared by routes and services.
Trust: customers see only their own records; pharmacists and admins see all.
"""
from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import NotFoundError
from pharmacare.models.user import User

ROLE_CUSTOMER = "customer"
ROLE_PHARMACIST = "pharmacist"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CUSTOMER, ROLE_PHARMACIST, ROLE_ADMIN)
STAFF_ROLES = (ROLE_PHARMACIST, ROLE_ADMIN)


def is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def ensure_owner_or_staff(user: User, owner_id: int, resource_type: str, resource_id: int) -> None:
    """
    Allow staff, or the customer who owns the record.

    SECURITY: a customer asking for someone else's record gets the same 404 as
    for a missing record, so ids cannot be enumerated.
    """
    if is_staff(user) or user.id == owner_id:
        return
    AuditLog.log_access_denied("read", resource_type, resource_id, user.id, "Not the owner")
    raise NotFoundError(resource_type.capitalize(), resource_id)
