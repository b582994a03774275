import pytest

from core.errors import ValidationError
from core.extensions import db
from core.imports import date, timedelta
from models.orderModels import Order, SubOrder
from models.earningsModels import SellerEarning
from services.earnings import (
    process_earnings_availability,
    get_earnings_summary,
    find_earnings_issues,
    has_issues,
)
from services.order_split import confirm_payment
from services.payouts import request_payout, approve_payout, reject_payout, mark_payout_paid


@pytest.fixture
def paid_order(customer, seller, make_product, checkout):
    """Pay for orders of the given gross amounts and return their sub-orders."""
    def _paid_order(*prices):
        sub_orders = []
        for price in prices:
            order = db.session.get(Order, checkout(customer, (make_product(seller, price=price), 1))["id"])
            sub_orders.extend(confirm_payment(order))
        return sub_orders
    return _paid_order


def _release_all():
    return process_earnings_availability(date.today() + timedelta(days=7))


def test_earnings_stay_pending_during_holding_period(app, paid_order):
    paid_order(10000)
    result = process_earnings_availability(date.today() + timedelta(days=6))
    assert result["count"] == 0
    assert SellerEarning.query.one().status == "pending"


def test_earnings_released_after_holding_period(app, paid_order):
    sub_order, = paid_order(10000)
    result = _release_all()

    assert result["count"] == 1
    assert result["total_amount"] == 8500
    assert sub_order.earning.status == "available"
    assert db.session.get(SubOrder, sub_order.id).payout_status == "ready"

    # running again is a no-op
    assert _release_all()["count"] == 0


def test_summary_buckets(app, seller, paid_order):
    paid_order(10000, 20000)
    process_earnings_availability(date.today() + timedelta(days=7))
    paid_order(4000)

    summary = get_earnings_summary(seller.id)
    assert summary["available_balance"] == 8500 + 17000
    assert summary["pending_balance"] == 3400
    assert summary["total_earnings"] == 8500 + 17000 + 3400
    assert summary["total_commission"] == 1500 + 3000 + 600
    assert summary["order_count"] == 3


def test_payout_takes_whole_earnings_up_to_amount(app, seller, paid_order):
    paid_order(10000, 20000)
    _release_all()

    payout = request_payout(seller, amount=9000)
    assert payout.amount == 8500
    assert payout.status == "pending_approval"
    assert [e.net_amount for e in payout.earnings] == [8500]
    assert payout.earnings[0].status == "processing"
    assert payout.earnings[0].sub_order.payout_status == "processing"


def test_payout_of_whole_balance(app, seller, paid_order):
    paid_order(10000, 20000)
    _release_all()

    payout = request_payout(seller)
    assert payout.amount == 25500
    assert get_earnings_summary(seller.id)["available_balance"] == 0


@pytest.mark.parametrize("amount", [0, -100, 10.5, "100"])
def test_payout_rejects_bad_amounts(app, seller, paid_order, amount):
    paid_order(10000)
    _release_all()
    with pytest.raises(ValidationError):
        request_payout(seller, amount=amount)


def test_payout_rejects_amount_above_balance(app, seller, paid_order):
    paid_order(10000)
    _release_all()
    with pytest.raises(ValidationError) as excinfo:
        request_payout(seller, amount=9000)
    assert excinfo.value.payload["available_balance"] == 8500


def test_payout_rejects_amount_below_minimum(app, seller, paid_order):
    paid_order(1000)
    _release_all()
    with pytest.raises(ValidationError):
        request_payout(seller)


def test_payout_rejects_bad_method(app, seller, paid_order):
    paid_order(10000)
    _release_all()
    with pytest.raises(ValidationError):
        request_payout(seller, method="cash")


def test_payout_lifecycle(app, seller, admin, paid_order):
    paid_order(10000)
    _release_all()
    payout = request_payout(seller)

    with pytest.raises(ValidationError):
        mark_payout_paid(payout.id, admin)

    approve_payout(payout.id, admin)
    with pytest.raises(ValidationError):
        reject_payout(payout.id, admin)

    mark_payout_paid(payout.id, admin)
    earning = SellerEarning.query.one()
    assert payout.status == "paid"
    assert earning.status == "paid"
    assert earning.sub_order.payout_status == "completed"
    assert get_earnings_summary(seller.id)["paid_balance"] == 8500


def test_rejected_payout_releases_earnings(app, seller, admin, paid_order):
    paid_order(10000)
    _release_all()
    payout = request_payout(seller)

    reject_payout(payout.id, admin, reason="Bank details missing")
    earning = SellerEarning.query.one()
    assert payout.status == "rejected"
    assert earning.status == "available"
    assert earning.payout_id is None
    assert earning.sub_order.payout_status == "ready"

    assert request_payout(seller).amount == 8500


def test_diagnostics_clean_after_normal_flow(app, paid_order):
    paid_order(10000, 3000)
    assert not has_issues(find_earnings_issues())


def test_diagnostics_find_paid_order_without_split(app, customer):
    order = Order(user_id=customer.id, basket=[], amount=1000, status="paid")
    db.session.add(order)
    db.session.commit()

    report = find_earnings_issues()
    assert report["orders_without_sub_orders"] == [order.id]
    assert has_issues(report)


def test_diagnostics_find_sub_order_without_earning(app, customer, seller):
    order = Order(user_id=customer.id, basket=[], amount=1000, status="paid")
    db.session.add(order)
    db.session.commit()
    sub_order = SubOrder(
        parent_order_id=order.id, seller_id=seller.id, items=[], subtotal=1000, total_amount=1000,
        commission_rate=15, commission_amount=150, seller_payout_amount=850,
    )
    db.session.add(sub_order)
    db.session.commit()

    report = find_earnings_issues()
    assert report["sub_orders_without_earnings"] == [sub_order.id]
    assert report["orders_without_sub_orders"] == []
