"""FastAPI dependencies: DB session, current user from JWT, role guards.

SECURITY: Supports JWT from:
1. Authorization header (for API clients)
2. httpOnly cookie (for web frontend)
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.config import settings
from pharmacare.core.exceptions import AuthenticationError, PermissionDeniedError
from pharmacare.core.permissions import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_PHARMACIST
from pharmacare.core.security import decode_access_token
from pharmacare.db.session import SessionLocal
from pharmacare.models.user import User

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """
    Extract user ID from JWT token.
    Header takes precedence over cookie.
    """
    token = None
    if credentials:
        token = credentials.credentials
    elif settings.AUTH_COOKIE_NAME in request.cookies:
        token = request.cookies[settings.AUTH_COOKIE_NAME]

    if not token:
        raise AuthenticationError("Not authenticated")

    sub = decode_access_token(token)
    if not sub:
        raise AuthenticationError("Invalid or expired token")

    try:
        return int(sub)
    except ValueError:
        raise AuthenticationError("Invalid token")


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
) -> User:
    """Load current user from DB."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("User not found")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Dependency factory: the current user must hold one of `roles`."""

    def _guard(request: Request, current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            AuditLog.log_access_denied(
                request.method.lower(), request.url.path, None, current_user.id, f"Role {current_user.role} not in {roles}"
            )
            raise PermissionDeniedError("Access denied")
        return current_user

    return _guard


get_customer = require_roles(ROLE_CUSTOMER)
get_pharmacist = require_roles(ROLE_PHARMACIST, ROLE_ADMIN)
get_admin = require_roles(ROLE_ADMIN)
