from core.extensions import db
from core.imports import date, timedelta
from models.orderModels import Order, SubOrder
from models.earningsModels import SellerEarning, CommissionRate
from models.productModels import Product
from models.userModel import User
from services.earnings import process_earnings_availability, find_earnings_issues, has_issues
from services.order_split import confirm_payment


def _paid_sub_order(customer, seller, make_product, checkout, price=10000):
    order = db.session.get(Order, checkout(customer, (make_product(seller, price=price), 1))["id"])
    sub_order, = confirm_payment(order)
    return sub_order


# seller

def test_seller_dashboard_and_sub_orders(client, customer, seller, make_product, checkout, auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    headers = auth_headers(seller)

    dashboard = client.get("/api/seller/dashboard", headers=headers).get_json()
    assert dashboard["earnings"]["pending_balance"] == 8500
    assert dashboard["sub_orders"]["total"] == 1

    listed = client.get("/api/seller/sub-orders?fulfillment_status=pending", headers=headers).get_json()
    assert [s["id"] for s in listed["sub_orders"]] == [sub_order.id]
    assert client.get("/api/seller/sub-orders?payout_status=ready", headers=headers).get_json()["count"] == 0

    detail = client.get(f"/api/seller/sub-orders/{sub_order.id}", headers=headers).get_json()
    assert detail["earning"]["net_amount"] == 8500


def test_fulfillment_updates_sub_order_and_parent(client, customer, seller, make_product, checkout, auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    headers = auth_headers(seller)
    url = f"/api/seller/sub-orders/{sub_order.id}/status"

    shipped = client.put(url, json={"status": "shipped"}, headers=headers)
    assert shipped.status_code == 200
    assert shipped.get_json()["sub_order"]["fulfilled_at"] is not None
    assert db.session.get(Order, sub_order.parent_order_id).status == "shipped"

    assert client.put(url, json={"status": "pending"}, headers=headers).status_code == 400
    assert client.put(url, json={"status": "delivered"}, headers=headers).status_code == 200
    assert db.session.get(Order, sub_order.parent_order_id).status == "delivered"


def test_cancelling_sub_order_cancels_earning(client, customer, seller, make_product, checkout, auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    response = client.put(f"/api/seller/sub-orders/{sub_order.id}/status", json={"status": "cancelled"},
                          headers=auth_headers(seller))
    assert response.status_code == 200
    assert SellerEarning.query.one().status == "cancelled"


def test_sellers_cannot_touch_other_sub_orders(client, customer, make_user, make_product, checkout, auth_headers):
    owner, other = make_user("seller"), make_user("seller")
    sub_order = _paid_sub_order(customer, owner, make_product, checkout)
    response = client.put(f"/api/seller/sub-orders/{sub_order.id}/status", json={"status": "shipped"},
                          headers=auth_headers(other))
    assert response.status_code == 404


def test_seller_payout_endpoints(client, customer, seller, make_product, checkout, auth_headers):
    _paid_sub_order(customer, seller, make_product, checkout, price=10000)
    headers = auth_headers(seller)

    too_early = client.post("/api/seller/payouts", json={}, headers=headers)
    assert too_early.status_code == 400

    process_earnings_availability(date.today() + timedelta(days=7))

    summary = client.get("/api/seller/earnings/summary", headers=headers).get_json()
    assert summary["available_balance"] == 8500

    created = client.post("/api/seller/payouts", json={"amount": 8500, "method": "paypal"}, headers=headers)
    assert created.status_code == 201
    assert created.get_json()["payout"]["amount"] == 8500

    payouts = client.get("/api/seller/payouts", headers=headers).get_json()
    assert payouts["count"] == 1
    earnings = client.get("/api/seller/earnings?status=processing", headers=headers).get_json()
    assert earnings["count"] == 1


# manager

def test_manager_product_moderation(client, manager, seller, make_product, auth_headers):
    product = make_product(seller, approval_status="pending")
    headers = auth_headers(manager)

    pending = client.get("/api/manager/products/pending", headers=headers).get_json()
    assert [p["id"] for p in pending["products"]] == [product.id]

    assert client.post(f"/api/manager/products/{product.id}/reject", json={}, headers=headers).status_code == 400
    rejected = client.post(f"/api/manager/products/{product.id}/reject", json={"reason": "Blurry photos"},
                           headers=headers)
    assert rejected.get_json()["product"]["rejection_reason"] == "Blurry photos"

    revision = client.post(f"/api/manager/products/{product.id}/request-revision", json={"reason": "Add size"},
                           headers=headers)
    assert revision.get_json()["product"]["approval_status"] == "revision_requested"

    approved = client.post(f"/api/manager/products/{product.id}/approve", headers=headers)
    assert approved.status_code == 200
    assert db.session.get(Product, product.id).is_public


def test_manager_seller_approval(client, manager, make_user, auth_headers):
    applicant = make_user("seller", seller_status="pending")
    headers = auth_headers(manager)

    assert client.get("/api/manager/sellers/pending", headers=headers).get_json()["count"] == 1
    assert client.post(f"/api/manager/sellers/{applicant.id}/approve", headers=headers).status_code == 200
    assert db.session.get(User, applicant.id).seller_status == "approved"
    assert client.get("/api/manager/dashboard", headers=headers).get_json()["pending_sellers"] == 0


def test_customers_cannot_moderate(client, customer, auth_headers):
    assert client.get("/api/manager/dashboard", headers=auth_headers(customer)).status_code == 403


def test_returns_and_disputes(client, customer, manager, seller, make_product, checkout, auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    order_id = sub_order.parent_order_id
    customer_headers, manager_headers = auth_headers(customer), auth_headers(manager)

    created = client.post("/api/returns", json={"order_id": order_id, "reason": "Wrong size"}, headers=customer_headers)
    assert created.status_code == 201
    return_id = created.get_json()["return"]["id"]
    duplicate = client.post("/api/returns", json={"order_id": order_id, "reason": "Again"}, headers=customer_headers)
    assert duplicate.status_code == 409

    assert client.get("/api/returns/mine", headers=customer_headers).get_json()["count"] == 1
    assert client.get(f"/api/returns/{return_id}", headers=customer_headers).status_code == 200

    approved = client.post(f"/api/manager/returns/{return_id}/approve", json={"refund_amount": 5000},
                           headers=manager_headers)
    assert approved.get_json()["return"]["refund_amount"] == 5000
    assert client.post(f"/api/manager/returns/{return_id}/reject", headers=manager_headers).status_code == 400

    dispute = client.post("/api/disputes", json={
        "order_id": order_id, "subject": "Damaged", "description": "Box was crushed"
    }, headers=customer_headers)
    assert dispute.status_code == 201
    dispute_id = dispute.get_json()["dispute"]["id"]
    assert client.get("/api/disputes/mine", headers=customer_headers).get_json()["count"] == 1

    escalated = client.post(f"/api/manager/disputes/{dispute_id}/escalate", headers=manager_headers)
    assert escalated.get_json()["dispute"]["status"] == "escalated"
    resolved = client.post(f"/api/manager/disputes/{dispute_id}/resolve", json={"resolution": "Refunded"},
                           headers=manager_headers)
    assert resolved.get_json()["dispute"]["status"] == "resolved"
    assert resolved.get_json()["dispute"]["resolved_by"] == manager.id


# admin

def test_admin_users(client, admin, make_user, auth_headers):
    headers = auth_headers(admin)
    target = make_user("customer")

    sellers = client.get("/api/admin/users?role=seller", headers=headers).get_json()
    assert sellers["total"] == 0

    updated = client.patch(f"/api/admin/users/{target.id}", json={"status": "suspended"}, headers=headers)
    assert updated.get_json()["user"]["status"] == "suspended"

    assert client.patch(f"/api/admin/users/{admin.id}", json={"role": "customer"}, headers=headers).status_code == 400
    assert client.delete(f"/api/admin/users/{target.id}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/users/{target.id}", headers=headers).status_code == 404


def test_admin_cannot_delete_user_with_orders(client, admin, customer, seller, make_product, checkout, auth_headers):
    checkout(customer, (make_product(seller), 1))
    response = client.delete(f"/api/admin/users/{customer.id}", headers=auth_headers(admin))
    assert response.status_code == 409


def test_admin_commission_rates(client, admin, seller, auth_headers):
    headers = auth_headers(admin)
    created = client.post("/api/admin/commission-rates", json={
        "rate_type": "seller", "seller_id": seller.id, "commission_percentage": 10
    }, headers=headers)
    assert created.status_code == 201
    rate_id = created.get_json()["rate"]["id"]

    bad = client.post("/api/admin/commission-rates", json={"rate_type": "global", "commission_percentage": 101},
                      headers=headers)
    assert bad.status_code == 400

    updated = client.patch(f"/api/admin/commission-rates/{rate_id}", json={"is_active": False}, headers=headers)
    assert updated.get_json()["rate"]["is_active"] is False
    assert client.get("/api/admin/commission-rates?is_active=false", headers=headers).get_json()["count"] == 1

    assert client.delete(f"/api/admin/commission-rates/{rate_id}", headers=headers).status_code == 200
    assert CommissionRate.query.count() == 0


def test_seller_rate_applies_at_split(client, admin, customer, seller, make_product, checkout, auth_headers):
    client.post("/api/admin/commission-rates", json={
        "rate_type": "seller", "seller_id": seller.id, "commission_percentage": 10
    }, headers=auth_headers(admin))
    sub_order = _paid_sub_order(customer, seller, make_product, checkout, price=10000)
    assert sub_order.commission_amount == 1000
    assert sub_order.seller_payout_amount == 9000


def test_admin_payout_review(client, admin, customer, seller, make_product, checkout, auth_headers):
    _paid_sub_order(customer, seller, make_product, checkout)
    admin_headers, seller_headers = auth_headers(admin), auth_headers(seller)

    processed = client.post("/api/admin/earnings/process",
                            json={"date": (date.today() + timedelta(days=7)).isoformat()}, headers=admin_headers)
    assert processed.get_json()["count"] == 1

    payout_id = client.post("/api/seller/payouts", json={}, headers=seller_headers).get_json()["payout"]["id"]
    listed = client.get("/api/admin/payouts?status=pending_approval", headers=admin_headers).get_json()
    assert listed["count"] == 1

    assert client.post(f"/api/admin/payouts/{payout_id}/mark-paid", headers=admin_headers).status_code == 400
    assert client.post(f"/api/admin/payouts/{payout_id}/approve", headers=admin_headers).status_code == 200
    paid = client.post(f"/api/admin/payouts/{payout_id}/mark-paid", headers=admin_headers)
    assert paid.get_json()["payout"]["status"] == "paid"
    assert db.session.get(SubOrder, SellerEarning.query.one().sub_order_id).payout_status == "completed"


def test_admin_orders_and_stats(client, admin, customer, seller, make_product, checkout, auth_headers):
    headers = auth_headers(admin)
    order = checkout(customer, (make_product(seller, price=10000), 1))

    listed = client.get("/api/admin/orders?status=pending_payment", headers=headers).get_json()
    assert listed["total"] == 1

    paid = client.patch(f"/api/admin/orders/{order['id']}/status", json={"status": "paid"}, headers=headers)
    assert paid.status_code == 200
    assert len(paid.get_json()["order"]["sub_orders"]) == 1

    back = client.patch(f"/api/admin/orders/{order['id']}/status", json={"status": "pending_payment"}, headers=headers)
    assert back.status_code == 400

    stats = client.get("/api/admin/stats", headers=headers).get_json()
    assert stats["revenue"] == {"gross_sales": 10000, "commission_earned": 1500}
    assert stats["orders"]["by_status"]["paid"] == 1

    issues = client.get("/api/admin/earnings/issues", headers=headers).get_json()
    assert issues["healthy"] is True


def test_admin_routes_reject_managers(client, manager, auth_headers):
    assert client.get("/api/admin/stats", headers=auth_headers(manager)).status_code == 403


def test_admin_cancelling_paid_order_cancels_earnings(client, admin, customer, seller, make_product, checkout,
                                                     auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    response = client.patch(f"/api/admin/orders/{sub_order.parent_order_id}/status", json={"status": "cancelled"},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    assert SellerEarning.query.one().status == "cancelled"
    assert db.session.get(SubOrder, sub_order.id).fulfillment_status == "cancelled"


def test_admin_fulfilment_status_on_unpaid_order_runs_the_split(client, admin, customer, seller, make_product,
                                                                checkout, auth_headers):
    order = checkout(customer, (make_product(seller, price=10000), 1))
    response = client.patch(f"/api/admin/orders/{order['id']}/status", json={"status": "processing"},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.get_json()["order"]
    assert body["status"] == "processing"
    assert len(body["sub_orders"]) == 1
    assert SellerEarning.query.one().net_amount == 8500
    assert not has_issues(find_earnings_issues())


def test_admin_cannot_revive_cancelled_order(client, admin, customer, seller, make_product, checkout, auth_headers):
    product = make_product(seller, stock=1)
    order = checkout(customer, (product, 1))
    headers = auth_headers(admin)
    url = f"/api/admin/orders/{order['id']}/status"

    assert client.patch(url, json={"status": "cancelled"}, headers=headers).status_code == 200
    assert db.session.get(Product, product.id).stock == 1

    for status in ("paid", "processing", "refunded"):
        assert client.patch(url, json={"status": status}, headers=headers).status_code == 400
    assert db.session.get(Order, order["id"]).status == "cancelled"
    assert SubOrder.query.count() == 0


def test_admin_cancel_of_paid_order_restores_stock(client, admin, customer, seller, make_product, checkout,
                                                   auth_headers):
    product = make_product(seller, stock=5)
    order = db.session.get(Order, checkout(customer, (product, 2))["id"])
    confirm_payment(order)
    assert db.session.get(Product, product.id).stock == 3

    response = client.patch(f"/api/admin/orders/{order.id}/status", json={"status": "cancelled"},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    assert db.session.get(Product, product.id).stock == 5


def test_seller_cancel_restores_only_their_lines(client, customer, make_user, make_product, checkout, auth_headers):
    seller_a, seller_b = make_user("seller"), make_user("seller")
    mine, theirs = make_product(seller_a, stock=4), make_product(seller_b, stock=4)
    order = db.session.get(Order, checkout(customer, (mine, 2), (theirs, 3))["id"])
    sub_orders = {s.seller_id: s for s in confirm_payment(order)}

    response = client.put(f"/api/seller/sub-orders/{sub_orders[seller_a.id].id}/status", json={"status": "cancelled"},
                          headers=auth_headers(seller_a))
    assert response.status_code == 200
    assert db.session.get(Product, mine.id).stock == 4
    assert db.session.get(Product, theirs.id).stock == 1


def test_admin_refund_cancels_pending_earnings(client, admin, customer, seller, make_product, checkout, auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    response = client.patch(f"/api/admin/orders/{sub_order.parent_order_id}/status", json={"status": "refunded"},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    assert SellerEarning.query.one().status == "cancelled"

    released = process_earnings_availability(date.today() + timedelta(days=8))
    assert released["count"] == 0


def test_refund_rejected_once_earnings_are_in_a_payout(client, admin, customer, seller, make_product, checkout,
                                                       auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    process_earnings_availability(date.today() + timedelta(days=7))
    assert client.post("/api/seller/payouts", json={}, headers=auth_headers(seller)).status_code == 201

    response = client.patch(f"/api/admin/orders/{sub_order.parent_order_id}/status", json={"status": "refunded"},
                            headers=auth_headers(admin))
    assert response.status_code == 400
    assert db.session.get(Order, sub_order.parent_order_id).status == "paid"
    assert SellerEarning.query.one().status == "processing"


def test_partial_return_refund_reduces_earnings(client, customer, manager, make_user, make_product, checkout,
                                                auth_headers):
    seller_a, seller_b = make_user("seller"), make_user("seller")
    order = db.session.get(Order, checkout(customer, (make_product(seller_a, price=6000), 1),
                                           (make_product(seller_b, price=4000), 1))["id"])
    confirm_payment(order)

    created = client.post("/api/returns", json={"order_id": order.id, "reason": "Changed my mind"},
                          headers=auth_headers(customer))
    return_id = created.get_json()["return"]["id"]
    approved = client.post(f"/api/manager/returns/{return_id}/approve", json={"refund_amount": 5000},
                           headers=auth_headers(manager))
    assert approved.status_code == 200

    by_seller = {e.seller_id: e for e in SellerEarning.query.all()}
    assert by_seller[seller_a.id].gross_amount == 3000
    assert by_seller[seller_b.id].gross_amount == 2000
    for earning in by_seller.values():
        assert earning.status == "pending"
        assert earning.net_amount == earning.gross_amount - earning.commission_amount
        assert earning.sub_order.seller_payout_amount == earning.net_amount
    assert db.session.get(Order, order.id).status == "paid"
    assert not has_issues(find_earnings_issues())


def test_full_return_refund_marks_order_refunded(client, customer, manager, seller, make_product, checkout,
                                                 auth_headers):
    sub_order = _paid_sub_order(customer, seller, make_product, checkout)
    created = client.post("/api/returns", json={"order_id": sub_order.parent_order_id, "reason": "Broken"},
                          headers=auth_headers(customer))
    approved = client.post(f"/api/manager/returns/{created.get_json()['return']['id']}/approve",
                           headers=auth_headers(manager))
    assert approved.get_json()["return"]["refund_amount"] == 10000
    assert SellerEarning.query.one().status == "cancelled"
    assert db.session.get(Order, sub_order.parent_order_id).status == "refunded"
