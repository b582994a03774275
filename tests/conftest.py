import itertools

import pytest

from core.config import TestingConfig
from core.extensions import db, bcrypt
from main import create_app
from models.userModel import User
from models.productModels import Category, Product
from routes.auth import issue_token

PASSWORD = "Secret123"

_counter = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(role="customer", **fields):
        n = next(_counter)
        defaults = {
            "email": f"{role}{n}@example.com",
            "display_name": f"{role.title()} {n}",
            "password": bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
            "role": role,
        }
        if role == "seller":
            defaults["business_name"] = f"Shop {n}"
            defaults["seller_status"] = "approved"
        defaults.update(fields)
        user = User(**defaults)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}
    return _headers


@pytest.fixture
def customer(make_user):
    return make_user("customer")


@pytest.fixture
def seller(make_user):
    return make_user("seller")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def manager(make_user):
    return make_user("manager")


@pytest.fixture
def category(app):
    category = Category(name="Electronics", slug="electronics")
    db.session.add(category)
    db.session.commit()
    return category


@pytest.fixture
def make_product(app):
    def _make_product(seller, price=10000, stock=10, category=None, **fields):
        product = Product(
            seller_id=seller.id,
            category_id=category.id if category else None,
            title=fields.pop("title", f"Product {next(_counter)}"),
            price=price,
            stock=stock,
            approval_status=fields.pop("approval_status", "approved"),
            status=fields.pop("status", "active"),
            **fields
        )
        db.session.add(product)
        db.session.commit()
        return product
    return _make_product


@pytest.fixture
def checkout(client, auth_headers):
    """Place an order through the API and return its JSON."""
    def _checkout(customer, *lines):
        items = [{"product_id": product.id, "quantity": quantity} for product, quantity in lines]
        response = client.post("/api/orders", json={"items": items}, headers=auth_headers(customer))
        assert response.status_code == 201, response.get_json()
        return response.get_json()["order"]
    return _checkout
