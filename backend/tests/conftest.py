"""
Pytest fixtures for stockcount backend tests.

Provides test database setup, two counting users (tenants), the master
catalog owner, a small catalog and test client helpers.
"""

from decimal import Decimal

import pytest
from stockcount import create_app
from stockcount.extensions import db
from stockcount.models import Barcode, Product
from stockcount.services import auth_service, session_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
def catalog_owner(app, db_session):
    """
    User that owns the master catalog.

    AUTOINCREMENT ids keep growing across tests, so the config is pointed
    at whatever id the owner gets.
    """
    user = auth_service.create_user("catalogo", "Master Catalog", "0000")
    db_session.commit()
    app.config['CATALOG_OWNER_USER_ID'] = user.id
    return user


@pytest.fixture(scope='function')
def user_a(db_session):
    """First counting user (tenant A)."""
    user = auth_service.create_user("ana", "Ana", "1111")
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session):
    """Second counting user (tenant B)."""
    user = auth_service.create_user("bruno", "Bruno", "2222")
    db_session.commit()
    return user


def add_product(owner, code: str, description: str, *barcodes: str) -> Product:
    product = Product(user_id=owner.id, code=code, description=description)
    db.session.add(product)
    db.session.flush()
    for value in barcodes:
        db.session.add(Barcode(user_id=owner.id, product_id=product.id, barcode=value))
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def widget(db_session, catalog_owner):
    return add_product(catalog_owner, "A1", "Widget", "B1")


@pytest.fixture(scope='function')
def gadget(db_session, catalog_owner):
    return add_product(catalog_owner, "A2", "Gadget", "7891000000002", "7891000000019")


def get_auth_token(user) -> str:
    """Helper to get auth token for a user without going through bcrypt."""
    _, token = session_service.create_session(user.id)
    db.session.commit()
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def q(value) -> Decimal:
    return Decimal(str(value))
