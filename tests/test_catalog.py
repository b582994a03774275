from core.extensions import db
from models.productModels import Product


def test_only_approved_active_products_are_public(client, seller, make_product):
    visible = make_product(seller, title="Visible")
    make_product(seller, title="Waiting", approval_status="pending")
    make_product(seller, title="Hidden", status="inactive")

    body = client.get("/api/products").get_json()
    assert [p["title"] for p in body["products"]] == ["Visible"]
    assert body["total"] == 1
    assert client.get(f"/api/products/{visible.id}").status_code == 200


def test_product_filters(client, seller, make_product, category):
    make_product(seller, title="Cheap phone", price=5000, category=category)
    make_product(seller, title="Premium phone", price=90000, category=category)
    make_product(seller, title="Novel", price=1500)

    by_category = client.get("/api/products?category=electronics").get_json()
    assert by_category["total"] == 2

    by_search = client.get("/api/products?search=premium").get_json()
    assert [p["title"] for p in by_search["products"]] == ["Premium phone"]

    by_price = client.get("/api/products?min_price=2000&max_price=10000").get_json()
    assert [p["title"] for p in by_price["products"]] == ["Cheap phone"]

    assert client.get("/api/products?min_price=abc").status_code == 400


def test_pagination(client, seller, make_product):
    for _ in range(5):
        make_product(seller)
    body = client.get("/api/products?page=2&limit=2").get_json()
    assert body["count"] == 2
    assert body["total"] == 5
    assert body["page"] == 2


def test_new_product_needs_approval(client, seller, auth_headers):
    response = client.post("/api/products", json={"title": "Lamp", "price": 4599, "stock": 3},
                           headers=auth_headers(seller))
    assert response.status_code == 201
    product = response.get_json()["product"]
    assert product["approval_status"] == "pending"
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_unapproved_seller_cannot_list(client, make_user, auth_headers):
    pending = make_user("seller", seller_status="pending")
    response = client.post("/api/products", json={"title": "Lamp", "price": 4599}, headers=auth_headers(pending))
    assert response.status_code == 403


def test_customers_cannot_create_products(client, customer, auth_headers):
    response = client.post("/api/products", json={"title": "Lamp", "price": 4599}, headers=auth_headers(customer))
    assert response.status_code == 403


def test_editing_content_resets_approval(client, seller, make_product, auth_headers):
    product = make_product(seller)

    stock_only = client.put(f"/api/products/{product.id}", json={"stock": 50}, headers=auth_headers(seller))
    assert stock_only.get_json()["product"]["approval_status"] == "approved"

    retitled = client.put(f"/api/products/{product.id}", json={"title": "Renamed"}, headers=auth_headers(seller))
    assert retitled.get_json()["product"]["approval_status"] == "pending"


def test_sellers_only_edit_their_own_products(client, make_user, make_product, auth_headers):
    owner, other = make_user("seller"), make_user("seller")
    product = make_product(owner)
    response = client.put(f"/api/products/{product.id}", json={"price": 1}, headers=auth_headers(other))
    assert response.status_code == 403


def test_delete_is_soft(client, seller, make_product, auth_headers):
    product = make_product(seller)
    assert client.delete(f"/api/products/{product.id}", headers=auth_headers(seller)).status_code == 200
    assert db.session.get(Product, product.id).status == "deleted"
    assert client.get(f"/api/products/{product.id}").status_code == 404


def test_categories_admin_only(client, admin, customer, auth_headers):
    denied = client.post("/api/categories", json={"name": "Garden"}, headers=auth_headers(customer))
    assert denied.status_code == 403

    created = client.post("/api/categories", json={"name": "Garden & Home"}, headers=auth_headers(admin))
    assert created.status_code == 201
    assert created.get_json()["category"]["slug"] == "garden-home"

    assert client.get("/api/categories/garden-home").status_code == 200
    duplicate = client.post("/api/categories", json={"name": "Garden & Home"}, headers=auth_headers(admin))
    assert duplicate.status_code == 409


def test_category_with_products_cannot_be_deleted(client, admin, seller, category, make_product, auth_headers):
    make_product(seller, category=category)
    response = client.delete(f"/api/categories/{category.id}", headers=auth_headers(admin))
    assert response.status_code == 409


def test_cart_lifecycle(client, customer, seller, make_product, auth_headers):
    headers = auth_headers(customer)
    product = make_product(seller, price=1250, stock=5)

    added = client.post("/api/cart/add", json={"product_id": product.id, "quantity": 2}, headers=headers)
    assert added.status_code == 201
    assert added.get_json()["total"] == 2500

    too_many = client.post("/api/cart/add", json={"product_id": product.id, "quantity": 4}, headers=headers)
    assert too_many.status_code == 400

    item_id = client.get("/api/cart", headers=headers).get_json()["cart_items"][0]["id"]
    assert client.put(f"/api/cart/update/{item_id}", json={"quantity": 3}, headers=headers).status_code == 200
    assert client.get("/api/cart", headers=headers).get_json()["total"] == 3750

    assert client.delete(f"/api/cart/delete/{item_id}", headers=headers).status_code == 200
    assert client.get("/api/cart", headers=headers).get_json()["cart_items"] == []
    assert client.delete("/api/cart/clear", headers=headers).status_code == 200
