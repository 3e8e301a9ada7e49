"""
Pytest fixtures for ChargeSafe backend tests.

Provides test database setup, two independent shops for tenant isolation
checks, and a test client.
"""

from datetime import datetime

import pytest
from chargesafe import create_app
from chargesafe.extensions import db, change_feed
from chargesafe.models import Shop
from chargesafe.services.auth_service import hash_password


SHOP_PASSWORD = "Password123!"

# Fixed clock for time-dependent service calls
T0 = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def feed():
    """Subscription-free change feed for each test."""
    yield change_feed
    for sub in list(change_feed._subscriptions.values()):
        sub.unsubscribe()


def _make_shop(db_session, email: str, name: str) -> Shop:
    shop = Shop(
        email=email,
        password_hash=hash_password(SHOP_PASSWORD),
        shop_name=name,
        city="Lagos",
        currency="NGN",
        is_active=True,
    )
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Create Shop A (first tenant)."""
    return _make_shop(db_session, "owner@acme-charge.test", "Acme Charge")


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Create Shop B (second tenant)."""
    return _make_shop(db_session, "owner@beta-charge.test", "Beta Charge")


def get_auth_token(client, email: str, password: str = SHOP_PASSWORD) -> str:
    """Helper to get auth token for a shop."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
