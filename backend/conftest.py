"""
Shared fixtures: in-memory SQLite database, FastAPI TestClient, one user per
role with ready-made auth headers, and a small catalog.

Environment is set before the app is imported so the settings object picks it up.
"""
import io
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REMINDER_SCHEDULER_ENABLED"] = "false"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pharmacare import models  # noqa: F401 - register models
from pharmacare.api.deps import get_db
from pharmacare.core.config import settings
from pharmacare.core.permissions import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_PHARMACIST
from pharmacare.core.security import create_access_token, get_password_hash
from pharmacare.db.base import Base
from pharmacare.main import app
from pharmacare.models.product import Product
from pharmacare.models.user import User

TEST_PASSWORD = "Correct-horse-42!"

INTAKE_FIELDS = {
    "phone": "0771234567",
    "address": "12 Temple Road",
    "city": "Colombo",
    "duration": "30 days",
    "gender": "female",
    "payment_method": "card",
    "frequency": "ongoing",
    "has_allergies": "no",
    "substitutes": "yes",
    "notes": "Night dose only",
}

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(target))
    return target


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the lifespan (default database, scheduler) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, email: str, name: str, role: str) -> User:
    user = User(email=email, name=name, role=role, hashed_password=get_password_hash(TEST_PASSWORD))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role)}"}


@pytest.fixture
def customer(db):
    return _make_user(db, "nimal@example.com", "Nimal Perera", ROLE_CUSTOMER)


@pytest.fixture
def other_customer(db):
    return _make_user(db, "kamala@example.com", "Kamala Silva", ROLE_CUSTOMER)


@pytest.fixture
def pharmacist(db):
    return _make_user(db, "pharmacist@example.com", "Ruwan Fernando", ROLE_PHARMACIST)


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", "Admin", ROLE_ADMIN)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def pharmacist_headers(pharmacist):
    return auth_headers(pharmacist)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


def _make_product(db, name: str, price: str, stock: int, prescription_required: bool) -> Product:
    product = Product(
        name=name,
        price=Decimal(price),
        stock=stock,
        prescription_required=prescription_required,
        category="Medicine",
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def product(db):
    """Prescription-only product P: price 100, stock 5."""
    return _make_product(db, "Amoxicillin 500mg", "100.00", 5, True)


@pytest.fixture
def second_product(db):
    return _make_product(db, "Metformin 850mg", "40.00", 10, True)


@pytest.fixture
def otc_product(db):
    return _make_product(db, "Paracetamol 500mg", "20.00", 8, False)


@pytest.fixture
def submit_prescription(client, customer_headers):
    """Submit a complete prescription as the customer and return the JSON envelope."""

    def _submit(**overrides):
        fields = dict(INTAKE_FIELDS, **overrides)
        files = [("documents", ("rx.png", io.BytesIO(PNG_BYTES), "image/png"))]
        response = client.post("/prescriptions", data=fields, files=files, headers=customer_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _submit


@pytest.fixture
def approved_prescription(client, submit_prescription, pharmacist_headers):
    created = submit_prescription()
    rx_id = created["id"]
    verified = client.patch(f"/prescriptions/{rx_id}/verify", json={"version": 1}, headers=pharmacist_headers)
    assert verified.status_code == 200, verified.text
    approved = client.patch(
        f"/prescriptions/{rx_id}/approve",
        json={"version": verified.json()["data"]["version"]},
        headers=pharmacist_headers,
    )
    assert approved.status_code == 200, approved.text
    return approved.json()["data"]


@pytest.fixture
def draft_order(client, approved_prescription, product, pharmacist_headers):
    """Order assembled from the approved prescription: 3 x P."""
    response = client.post(
        "/orders/from-prescription",
        json={
            "prescription_id": approved_prescription["id"],
            "selections": [{"product_id": product.id, "quantity": 3}],
        },
        headers=pharmacist_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
