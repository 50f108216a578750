"""
Pytest fixtures for GarmentOps backend tests.

Provides an in-memory database, seeded users / product / job, an actor
context for service calls, and a test client that sends X-Actor-Id.
"""

import pytest

from garmentops import create_app
from garmentops.context import OperationContext
from garmentops.extensions import db
from garmentops.models import Product, User
from garmentops.services import production_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_ALERTS_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test; the schema is kept."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


def _make_user(session, username, role):
    user = User(
        username=username,
        email=f"{username}@garmentops.test",
        full_name=username.title(),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user(db_session, "manager", "manager")


@pytest.fixture(scope='function')
def staff(db_session):
    return _make_user(db_session, "staff", "staff")


@pytest.fixture(scope='function')
def ctx(admin):
    """Operation context acting as the admin user."""
    return OperationContext(actor_user_id=admin.id, ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture(scope='function')
def product(db_session):
    """SKU-1 with 100 on hand and a low-stock threshold of 10."""
    p = Product(
        sku="SKU-1",
        name="Gildan 76000 Black M",
        category="tshirt",
        color="black",
        size="M",
        cost_price_cents=8000,
        sale_price_cents=15000,
        stock_qty=100,
        min_stock=10,
        is_active=True,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def job(ctx):
    """A pending job for 50 pieces."""
    return production_service.create_job(ctx, {
        "customer_name": "Siam Sports Club",
        "description": "Front logo DTG",
        "ordered_qty": 50,
        "unit_price_cents": 12000,
    })


def actor_headers(user) -> dict:
    """Helper to attribute a test request to a user."""
    return {'X-Actor-Id': str(user.id)}
