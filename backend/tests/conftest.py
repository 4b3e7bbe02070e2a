"""
Pytest fixtures for eventstock backend tests.

Provides test database setup, users with each role, a project with stock,
access contexts for direct service calls and auth headers for the client.
"""

import pytest
from eventstock import create_app
from eventstock.extensions import db
from eventstock.models import Product, ProductVariant, Project, ProjectAssignment, User
from eventstock.services.access_service import AccessContext
from eventstock.services.auth_service import hash_password
from eventstock.services import session_service


PASSWORD = "Password123!"
# bcrypt at cost 12 is slow; hash once for every fixture user
PASSWORD_HASH = hash_password(PASSWORD)


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


def _make_user(db_session, email: str, role: str, is_active: bool = True) -> User:
    user = User(email=email, password_hash=PASSWORD_HASH, role=role, is_active=is_active)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin@eventstock.test", "admin")


@pytest.fixture(scope='function')
def seller(db_session):
    """Seller assigned to `project` (see the project fixture)."""
    return _make_user(db_session, "seller@eventstock.test", "seller")


@pytest.fixture(scope='function')
def outsider(db_session):
    """Seller with no project assignment."""
    return _make_user(db_session, "outsider@eventstock.test", "seller")


@pytest.fixture(scope='function')
def project(db_session, seller):
    project = Project(name="Festival d'été", archived=False)
    db_session.add(project)
    db_session.commit()

    db_session.add(ProjectAssignment(user_id=seller.id, project_id=project.id))
    db_session.commit()
    return project


@pytest.fixture(scope='function')
def product(db_session, project):
    """Plain product: stock 10, price 10.00."""
    product = Product(project_id=project.id, name="Mug", sku="MUG-01", price_cents=1000, stock=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shirt(db_session, project):
    """Product meant to receive variants: ceiling 20, price 25.00."""
    product = Product(project_id=project.id, name="T-shirt", sku="TS", price_cents=2500, stock=20)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shirt_m(db_session, shirt):
    """Variant M / Noir carved out of `shirt` with 5 units."""
    variant = ProductVariant(product_id=shirt.id, size="M", color="Noir", sku="TS-M-N", stock=5)
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def admin_ctx(admin):
    return AccessContext(user_id=admin.id, role="admin")


@pytest.fixture(scope='function')
def seller_ctx(seller, project):
    return AccessContext(user_id=seller.id, role="seller")


@pytest.fixture(scope='function')
def outsider_ctx(outsider):
    return AccessContext(user_id=outsider.id, role="seller")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def seller_headers(seller, project):
    return headers_for(seller)


@pytest.fixture(scope='function')
def outsider_headers(outsider):
    return headers_for(outsider)
