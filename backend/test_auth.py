"""
Registration, login and role guards.
"""
from conftest import TEST_PASSWORD


def test_register_creates_customer(client):
    response = client.post(
        "/auth/register",
        json={"email": "new@example.com", "password": "Str0ng-enough-pass", "name": "New Customer"},
    )
    assert response.status_code == 200
    assert response.json()["role"] == "customer"


def test_register_enforces_password_policy(client):
    response = client.post(
        "/auth/register",
        json={"email": "weak@example.com", "password": "short-pw1!", "name": "Weak"},
    )
    assert response.status_code == 400


def test_login_returns_token_and_cookie(client, pharmacist):
    response = client.post("/auth/login", json={"email": pharmacist.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "pharmacist"
    assert "pharmacare_token" in response.cookies

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == pharmacist.email


def test_login_with_wrong_password(client, customer):
    response = client.post("/auth/login", json={"email": customer.email, "password": "wrong-password-1!"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication failed"


def test_admin_passes_pharmacist_guard(client, admin_headers):
    assert client.get("/prescriptions", headers=admin_headers).status_code == 200


def test_customer_blocked_from_review_queue(client, customer_headers):
    response = client.get("/prescriptions", headers=customer_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"
