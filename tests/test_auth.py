"""
Tests for signup, login and the current-user endpoint.
"""
import pytest
from starlette.requests import Request

from app.core.exceptions import RateLimited
from app.core.rate_limit import check_rate_limit, rate_limit_store
from app.db.models.user import User
from app.db.models.user_quota import UserQuota


def signup(client, email="new@example.com", password="testpass123", full_name="New User"):
    return client.post(
        "/auth/signup",
        json={"full_name": full_name, "email": email, "password": password},
    )


def login(client, email, password="testpass123"):
    return client.post(
        "/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def test_signup_puts_user_on_default_plan(client, db_session, default_plan):
    response = signup(client)

    assert response.status_code == 201
    assert response.json()["message"] == "User created successfully"

    user = db_session.query(User).filter(User.email == "new@example.com").one()
    entry = db_session.query(UserQuota).filter(UserQuota.user_id == user.id).one()
    assert entry.plan_id == default_plan.id
    assert entry.subscription_quota == 3


def test_signup_without_default_plan_creates_nothing(client, db_session):
    response = signup(client)

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "configuration_error"
    assert db_session.query(User).count() == 0


def test_signup_duplicate_email(client, default_plan, test_user):
    response = signup(client, email=test_user.email)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "duplicate_email"
    assert detail["message"] == "Email already registered"


def test_signup_validation(client, default_plan):
    assert client.post("/auth/signup", json={"email": "a@example.com", "password": "testpass123"}).status_code == 422
    assert signup(client, password="short").status_code == 422
    assert signup(client, email="not-an-email").status_code == 422


def test_login_success(client, test_user):
    response = login(client, test_user.email)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]


def test_login_wrong_password(client, test_user):
    response = login(client, test_user.email, password="wrongpassword")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_login_unknown_user(client):
    assert login(client, "nobody@example.com").status_code == 401


def test_disabled_user_cannot_log_in(client, make_user):
    user = make_user(email="off@example.com", status="disabled")

    response = login(client, user.email)

    assert response.status_code == 403
    assert response.json()["detail"] == "Account is disabled"


def test_me(client, test_user, user_headers):
    response = client.get("/auth/me", headers=user_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == test_user.email
    assert data["role"] == "user"
    assert "password_hash" not in data


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_login_rate_limited(client, test_user):
    for _ in range(10):
        login(client, test_user.email, password="wrongpassword")

    response = login(client, test_user.email)

    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["error"] == "rate_limited"
    assert detail["retry_after"] >= 1


def fake_request(ip):
    return Request({"type": "http", "headers": [], "client": (ip, 1234)})


def test_rate_limit_window_slides_and_drops_idle_clients():
    rate_limit_store.clear()
    for second in range(3):
        check_rate_limit(fake_request("10.0.0.1"), max_requests=3, window_seconds=60, now=1000.0 + second)

    with pytest.raises(RateLimited):
        check_rate_limit(fake_request("10.0.0.1"), max_requests=3, window_seconds=60, now=1010.0)

    check_rate_limit(fake_request("10.0.0.2"), max_requests=3, window_seconds=60, now=1070.0)

    assert "10.0.0.1" not in rate_limit_store
    assert rate_limit_store == {"10.0.0.2": [1070.0]}
    rate_limit_store.clear()
