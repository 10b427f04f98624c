"""Create all tables. Run on app startup.

SECURITY: Auto-generates a random default admin password (not hardcoded).
The admin must change it after first login.
"""
import logging
import secrets

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pharmacare.core.permissions import ROLE_ADMIN
from pharmacare.core.security import get_password_hash
from pharmacare.db.base import Base
from pharmacare.db.session import engine as default_engine, SessionLocal
from pharmacare import models  # noqa: F401 - register models
from pharmacare.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@pharmacare.lk"


def init_db(engine: Engine = default_engine, session_factory: sessionmaker = SessionLocal) -> None:
    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        if db.query(User).count() == 0:
            default_password = secrets.token_urlsafe(16)
            db.add(
                User(
                    email=DEFAULT_ADMIN_EMAIL,
                    name="Administrator",
                    role=ROLE_ADMIN,
                    hashed_password=get_password_hash(default_password),
                )
            )
            db.commit()

            # Printed once, on initial setup only
            print("\n" + "=" * 70)
            print("DEFAULT ADMIN USER CREATED")
            print("=" * 70)
            print(f"Email:    {DEFAULT_ADMIN_EMAIL}")
            print(f"Password: {default_password}")
            print("\nSECURITY: Change this password immediately after first login!")
            print("=" * 70 + "\n")
            logger.info(f"Default admin user {DEFAULT_ADMIN_EMAIL} created")
    finally:
        db.close()
