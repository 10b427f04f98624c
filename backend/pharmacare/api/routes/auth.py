"""Auth: register and login.

SECURITY FEATURES:
- Password hashing with bcrypt
- Password strength validation
- httpOnly, Secure, SameSite cookies
- Self-registration always creates a customer; staff accounts are seeded
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_db, get_current_user
from pharmacare.core.audit import AuditLog
from pharmacare.core.config import settings
from pharmacare.core.exceptions import BusinessError
from pharmacare.core.permissions import ROLE_CUSTOMER
from pharmacare.core.security import verify_password, get_password_hash, create_access_token
from pharmacare.models.user import User
from pharmacare.schemas.user import UserCreate, UserLogin, UserResponse, Token

router = APIRouter()

SPECIAL_CHARS = "!@#$%^&*()-_=+[]{}|;:',.<>?/"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=UserResponse)
def register(data: UserCreate, request: Request, db: Session = Depends(get_db)):
    """
    Register a new customer with password strength validation.

    Password requirements:
    - Minimum MIN_PASSWORD_LENGTH characters
    - At least one special character
    - At least one number
    """
    if db.query(User).filter(User.email == data.email).first():
        raise BusinessError.bad_request("Email already registered")

    if len(data.password) < settings.MIN_PASSWORD_LENGTH:
        raise BusinessError.bad_request(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
        )
    if settings.REQUIRE_SPECIAL_CHARS and not any(c in SPECIAL_CHARS for c in data.password):
        raise BusinessError.bad_request("Password must contain at least one special character (!@#$%^&*)")
    if settings.REQUIRE_NUMBERS and not any(c.isdigit() for c in data.password):
        raise BusinessError.bad_request("Password must contain at least one number")

    user = User(
        email=data.email,
        name=data.name,
        role=ROLE_CUSTOMER,
        hashed_password=get_password_hash(data.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    AuditLog.log_authentication("register", user.email, _client_ip(request), True)
    return user


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Login. The token is returned for API clients and set as an httpOnly cookie
    for the web frontend.
    """
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        AuditLog.log_authentication("failed_login", data.email, _client_ip(request), False, reason="Bad credentials")
        raise BusinessError.unauthorized(f"Bad credentials for {data.email}")

    token = create_access_token(subject=str(user.id), role=user.role)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("login", user.email, _client_ip(request), True)
    return Token(access_token=token, role=user.role)


@router.post("/logout")
def logout(request: Request, response: Response, current_user: User = Depends(get_current_user)):
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("logout", current_user.email, _client_ip(request), True)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return current_user
