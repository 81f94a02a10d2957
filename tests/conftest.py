"""
Shared fixtures for the TheKua API tests.

Every test gets a fresh in-memory SQLite database. External services are never
contacted: Razorpay calls go through ``requests`` and Cloudinary uploads through
``cloudinary.uploader``, both of which tests patch with ``unittest.mock``.
"""
import pytest

from core.config import TestConfig
from core.extensions import db
from core.security import issue_token
from main import create_app
from models.orderModels import GatewayOrder
from models.productModels import Product
from models.userModel import User
from services.razorpay import payment_signature

ADDRESS = {
    "full_name": "Jane Doe",
    "phone": "9123456780",
    "email": "jane@example.com",
    "street": "12 Boring Road",
    "city": "Patna",
    "state": "Bihar",
    "postal_code": "800001",
    "country": "India",
}


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email="jane@example.com", role="user", password="Password123", **kwargs):
    user = User(
        first_name=kwargs.pop("first_name", "Jane"),
        last_name=kwargs.pop("last_name", "Doe"),
        email=email,
        phone=kwargs.pop("phone", "9123456780"),
        role=role,
        **kwargs,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_product(name="Classic Gur Thekua", price=100, stock=20, **kwargs):
    product = Product(
        name=name,
        description=kwargs.pop("description", f"{name} made fresh"),
        category=kwargs.pop("category", "Thekua"),
        price=price,
        stock=stock,
        **kwargs,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture
def user(app):
    return make_user()


@pytest.fixture
def other_user(app):
    return make_user(email="ravi@example.com", first_name="Ravi", last_name="Kumar")


@pytest.fixture
def admin(app):
    return make_user(email="admin@thekua.in", role="admin", password="Admin@123", first_name="Store",
                     last_name="Admin")


@pytest.fixture
def products(app):
    return [
        make_product("Classic Gur Thekua", price=100, stock=20),
        make_product("Coconut Thekua", price=250, stock=5),
        make_product("Chhath Gift Box", price=600, stock=3, category="Gift Boxes"),
    ]


def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


def order_payload(items, payment_method="cod", **extra):
    payload = {
        "items": [{"product_id": p.id, "quantity": q} for p, q in items],
        "payment_method": payment_method,
        "shipping_address": dict(ADDRESS),
    }
    payload.update(extra)
    return payload


def razorpay_details(order_id="order_TEST123", payment_id="pay_TEST123", secret="rzp_test_secret"):
    return {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": payment_signature(order_id, payment_id, secret),
    }


def open_gateway_order(user, amount, order_id="order_TEST123"):
    """Record a Razorpay order as create-razorpay-order would; ``amount`` is in rupees."""
    db.session.add(GatewayOrder(gateway_order_id=order_id, user_id=user.id, amount=int(round(amount * 100)),
                                currency="INR"))
    db.session.commit()
