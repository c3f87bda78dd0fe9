"""
Shared fixtures: an in-memory SQLite database recreated per test, a
TestClient wired to it, and catalog/user factories.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_DIR", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.rate_limit import rate_limit_store
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.models import MembershipTier, Plan, User
from app.db.session import get_db
from app.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test database."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    rate_limit_store.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        rate_limit_store.clear()


@pytest.fixture
def default_plan(db_session):
    plan = Plan(
        name="Free",
        price=0,
        duration_days=0,
        features={"type": "subscription", "resume_optimizations": 3},
        status="active",
        is_default=True,
        sort_order=1,
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture
def pro_plan(db_session):
    plan = Plan(
        name="Pro Monthly",
        price=19.99,
        duration_days=30,
        features={"type": "subscription", "resume_optimizations": 50},
        status="active",
        is_default=False,
        sort_order=2,
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture
def lifetime_plan(db_session):
    plan = Plan(
        name="Lifetime",
        price=99,
        duration_days=0,
        features={"type": "permanent", "resume_optimizations": 100},
        status="active",
        is_default=False,
        sort_order=3,
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture
def free_tier(db_session):
    tier = MembershipTier(
        name="Free",
        original_price=0,
        duration_days=0,
        ai_resume_quota=5,
        template_access_level="basic",
        features=["Basic templates"],
        is_active=True,
        sort_order=1,
    )
    db_session.add(tier)
    db_session.commit()
    db_session.refresh(tier)
    return tier


@pytest.fixture
def pro_tier(db_session):
    tier = MembershipTier(
        name="Pro",
        original_price=29.99,
        reduction_price=19.99,
        duration_days=30,
        ai_resume_quota=50,
        template_access_level="premium",
        features=["Premium templates"],
        is_active=True,
        sort_order=2,
    )
    db_session.add(tier)
    db_session.commit()
    db_session.refresh(tier)
    return tier


@pytest.fixture
def make_user(db_session):
    """Factory for users; no ledger row or membership is created."""
    counter = {"n": 0}

    def _make(email=None, role="user", status="active", password="testpass123"):
        counter["n"] += 1
        user = User(
            full_name=f"Test User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            role=role,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def test_user(make_user):
    return make_user(email="test@example.com")


@pytest.fixture
def admin_user(make_user):
    return make_user(email="admin@example.com", role="admin")


@pytest.fixture
def super_admin_user(make_user):
    return make_user(email="root@example.com", role="super_admin")


def auth_headers_for(user):
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(test_user):
    return auth_headers_for(test_user)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture
def auth_headers():
    """Factory: bearer headers for any user."""
    return auth_headers_for
