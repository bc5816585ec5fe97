"""
Pytest configuration and shared fixtures for the Bio Sculpture backend tests.
"""

import os

os.environ["TESTING"] = "True"
os.environ["FLASK_ENV"] = "testing"

import pytest  # noqa: E402
import bcrypt  # noqa: E402
from decimal import Decimal  # noqa: E402
from flask import Flask  # noqa: E402
from main import create_app  # noqa: E402
from app.config import is_production_database  # noqa: E402
from app.extensions import db as database  # noqa: E402
from app.models import Base, Cart, Category, Coupon, Product, User  # noqa: E402


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create and configure a test app instance."""
    app = create_app()

    app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "UPLOAD_FOLDER": str(tmp_path_factory.mktemp("gallery")),
            "SCHEDULER_ENABLED": False,
            "S3_BUCKET_NAME": None,
        }
    )

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if is_production_database(db_uri):
        pytest.exit(f" DANGER: Database URL appears to be production: {db_uri}")

    yield app


@pytest.fixture(scope="session")
def db(app: Flask):
    """Create the test schema once per session."""
    with app.app_context():
        Base.metadata.drop_all(bind=database.engine)
        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(app, db):
    """Yield the session and wipe every table after the test."""
    with app.app_context():
        yield database.session

        database.session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            database.session.execute(table.delete())
        database.session.commit()
        database.session.remove()


@pytest.fixture
def client(app, db_session):
    return app.test_client()


@pytest.fixture(autouse=True)
def no_geocoding(monkeypatch):
    """Keep the salon routes away from the real geocoder."""
    def fake_geocode(address, city, postal_code=None):
        return {"lat": 38.7223, "lng": -9.1393, "display_name": f"{address}, {city}"}

    monkeypatch.setattr("app.routes.salons.geocode_address", fake_geocode)


def make_user(db_session, email, password="password123", name="Test User", role="USER", points=0):
    hashed_pw = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    user = User(
        email=email,
        password_hash=hashed_pw,
        name=name,
        role=role,
        points_balance=points,
    )
    db_session.add(user)
    db_session.flush()
    db_session.add(Cart(user_id=user.id))
    db_session.commit()
    return user


def login(client, email, password="password123"):
    response = client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    token = response.get_json().get("token")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_user(db_session):
    """A regular customer account."""
    return make_user(db_session, "customer@example.com", name="Test Customer")


@pytest.fixture
def sample_admin(db_session):
    """An administrator account."""
    return make_user(db_session, "admin@example.com", name="Test Admin", role="ADMIN")


@pytest.fixture
def auth_headers(client, sample_user):
    return login(client, sample_user.email)


@pytest.fixture
def admin_headers(client, sample_admin):
    return login(client, sample_admin.email)


@pytest.fixture
def sample_category(db_session):
    category = Category(name="Gel Polish", slug="gel-polish", description="Soak-off gels")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def sample_product(db_session, sample_category):
    product = Product(
        name="Evo Gel 101",
        price=Decimal("20.00"),
        description="Classic red",
        category_id=sample_category.id,
        image="https://cdn.example.com/evo-101.jpg",
        featured=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def sample_coupon(db_session):
    coupon = Coupon(
        code="SAVE10",
        discount_type="PERCENTAGE",
        discount_value=Decimal("10"),
        is_active=True,
    )
    db_session.add(coupon)
    db_session.commit()
    return coupon


@pytest.fixture
def test_user_data():
    """Registration payload for signup/login tests."""
    return {
        "email": "newuser@example.com",
        "password": "password123",
        "name": "New User",
    }


@pytest.fixture
def user_factory(db_session):
    """Create extra accounts: ``user_factory("x@example.com", role="ADMIN")``."""
    def factory(email, **kwargs):
        return make_user(db_session, email, **kwargs)
    return factory


@pytest.fixture
def login_as(client):
    def _login(user, password="password123"):
        return login(client, user.email, password)
    return _login
