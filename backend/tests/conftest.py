"""
Pytest fixtures for back-office ledger tests.

Provides test database setup, catalog fixtures, and test client.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Category
from backoffice.services import items_service
from backoffice.services.expense_service import ensure_default_expense_categories


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_MARKUP_PERCENT': 30,
        'PARTNERSHIP_SHARES': {'partner_1': 40, 'partner_2': 60},
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
def expense_categories(db_session):
    """Seed the default expense categories (incl. "Stock Purchase")."""
    ensure_default_expense_categories()
    return db_session


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages", is_active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_item(db_session, category):
    """Factory: create an item through the catalog service (initial stock is ledgered)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        payload = {
            "name": f"Test Item {counter['n']}",
            "category_id": category.id,
            "unit": "pcs",
            "cost_price_cents": 1000,
            "current_stock": 5,
        }
        payload.update(overrides)
        return items_service.create_item(payload, user_id=1)

    return _make


@pytest.fixture(scope='function')
def item(make_item):
    """cost 10.00, stock 5, no stored selling price."""
    return make_item()


@pytest.fixture(scope='function')
def headers():
    """Acting-user header normally set by the auth layer."""
    return {'X-User-Id': '1'}
