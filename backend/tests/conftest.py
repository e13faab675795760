import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import PRODUCTS, USERS, create_document, object_id
from main import create_app
from schemas import Address, Product, User
from security import create_access_token, get_password_hash

PASSWORD = "password123"


@pytest.fixture(scope="function")
def settings():
    return Settings(jwt_secret="test-secret", expose_reset_tokens=True)


@pytest.fixture(scope="function")
def db():
    """A fresh in-memory MongoDB database for each test."""
    return mongomock.MongoClient().get_database("aypa_test")


@pytest.fixture(scope="function")
def client(settings, db):
    app = create_app(settings, db)
    with TestClient(app) as test_client:
        yield test_client


def _make_user(db, name, email, role="customer"):
    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        address=Address(street="123 Main St", city="Anytown", state="CA", zip_code="12345", country="USA"),
    )
    uid = create_document(db, USERS, user)
    return db[USERS].find_one({"_id": object_id(uid)})


@pytest.fixture
def customer(db):
    return _make_user(db, "John Doe", "john@example.com")


@pytest.fixture
def other_customer(db):
    return _make_user(db, "Jane Smith", "jane@example.com")


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin User", "admin@aypa.com", role="admin")


def _headers(settings, user):
    return {"Authorization": f"Bearer {create_access_token(settings, user)}"}


@pytest.fixture
def customer_headers(settings, customer):
    return _headers(settings, customer)


@pytest.fixture
def other_headers(settings, other_customer):
    return _headers(settings, other_customer)


@pytest.fixture
def admin_headers(settings, admin):
    return _headers(settings, admin)


@pytest.fixture
def make_product(db):
    """Insert a product and return its id."""

    def _make(name="Basic White T-Shirt", price=29.99, stock=10, category="TShirt", **extra):
        product = Product(name=name, price=price, stock=stock, category=category, **extra)
        return create_document(db, PRODUCTS, product)

    return _make


@pytest.fixture
def shipping_address():
    return {
        "street": "123 Main St",
        "city": "Anytown",
        "state": "CA",
        "zip_code": "12345",
        "country": "USA",
    }


@pytest.fixture
def stock_of(db):
    def _stock(product_id):
        return db[PRODUCTS].find_one({"_id": object_id(product_id)})["stock"]

    return _stock
