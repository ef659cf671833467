"""
Pytest fixtures for warehouse backend tests.

Provides an in-memory database, a fresh schema per test, and company /
product fixtures.
"""

from datetime import datetime

import pytest

from warehouse import create_app
from warehouse import variants as vt
from warehouse.extensions import db
from warehouse.models import Company, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_SHIPMENT_SHORTFALL': True,
        'RECONCILIATION_MINOR_VARIANCE': 5,
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
        db.session.remove()


@pytest.fixture(scope='function')
def company(db_session):
    """Client company A."""
    company = Company(name="Acme Storage", code="ACME", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    """Client company B (isolation checks)."""
    company = Company(name="Beta Goods", code="BETA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


def make_product(session, company, name, *, variants=None, quantity=0):
    """Insert a catalog row without any lots."""
    product = Product(company_id=company.id, name=name, quantity=quantity, is_active=True)
    product.set_variant_tree(vt.parse_variants(variants or []))
    session.add(product)
    session.commit()
    return product


SIZE_DOC = [
    {"attribute": "Size", "values": [
        {"value": "Large", "quantity": 7, "subVariants": []},
        {"value": "Small", "quantity": 3, "subVariants": []},
    ]},
]


@pytest.fixture(scope='function')
def sized_product(db_session, company):
    """Product with Size: Large 7 / Small 3 and no lots."""
    return make_product(db_session, company, "Widget", variants=SIZE_DOC)


@pytest.fixture(scope='function')
def plain_product(db_session, company):
    """Product without variants, scalar quantity 10 and no lots."""
    return make_product(db_session, company, "Bolt", quantity=10)


JAN_1 = datetime(2026, 1, 1, 9, 0)
JAN_5 = datetime(2026, 1, 5, 9, 0)
