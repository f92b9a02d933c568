import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from marketplace.auth import create_access_token
from marketplace.config import Settings
from marketplace.database import Base
from marketplace.main import create_app
from marketplace.models import (
    BOOKING_CANCELLED,
    BOOKING_COMPLETED,
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_COMPANY,
    Booking,
    User,
)

CRON_SECRET = "test-cron-secret"

_emails = itertools.count(1)


@pytest.fixture()
def settings():
    return Settings(
        database_url="sqlite://",
        cron_secret=CRON_SECRET,
        secret_key="test-secret-key",
        redis_url=None,
        csrf_enabled=True,
    )


@pytest.fixture()
def app(settings):
    # New app (and in-memory database) per test
    app = create_app(settings)
    Base.metadata.create_all(bind=app.state.engine)
    return app


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def _add_user(db, role, **fields):
    user = User(email=f"user{next(_emails)}@example.com", role=role, **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def make_user(db):
    def _make(role=ROLE_CLIENT, **fields):
        return _add_user(db, role, **fields)

    return _make


@pytest.fixture()
def make_provider(db):
    """Create a provider with the given number of completed bookings"""
    customer = _add_user(db, ROLE_CLIENT, full_name="Customer")

    def _make(completed=0, rating=None, verified=False, role=ROLE_COMPANY, cancelled=0):
        provider = _add_user(
            db,
            role,
            company_name="Acme Services",
            average_rating=rating,
            verified_at=datetime(2024, 1, 1, tzinfo=timezone.utc) if verified else None,
        )
        for _ in range(completed):
            db.add(Booking(client_id=customer.id, provider_id=provider.id, status=BOOKING_COMPLETED))
        for _ in range(cancelled):
            db.add(Booking(client_id=customer.id, provider_id=provider.id, status=BOOKING_CANCELLED))
        db.commit()
        return provider

    return _make


@pytest.fixture()
def admin_headers(settings, make_user):
    admin = make_user(role=ROLE_ADMIN, full_name="Admin")
    token = create_access_token(settings, {"sub": str(admin.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}
