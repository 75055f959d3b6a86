"""
Pytest fixtures for partspos backend tests.

Provides the test app on in-memory SQLite, a per-test clean database, the
test client and small factories for products and customers.
"""

import pytest

from partspos import create_app
from partspos.extensions import db
from partspos.models import Customer, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'WRITE_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema (Core deletes bypass the ledger's ORM guards)
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(code, stock=0, cost_cents=0, price_cents=0, name=None)."""

    def _make(code, *, stock=0, cost_cents=0, price_cents=0, name=None, min_stock=0):
        product = Product(
            code=code,
            name=name or f"Part {code}",
            stock=stock,
            cost_cents=cost_cents,
            price_cents=price_cents,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        return product.id

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: make_customer(name, credit_limit_cents=None) -> customer id."""

    def _make(name="Taller Central", *, credit_limit_cents=None, identification_number=None):
        customer = Customer(
            name=name,
            credit_limit_cents=credit_limit_cents,
            identification_number=identification_number,
        )
        db_session.add(customer)
        db_session.commit()
        return customer.id

    return _make

