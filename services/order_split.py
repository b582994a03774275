"""Split a paid order into one sub-order and one earnings row per seller."""
import logging
from collections import OrderedDict

from core.imports import current_app, datetime, timedelta, date, uuid
from core.extensions import db
from core.errors import ConflictError, ValidationError
from models.orderModels import SubOrder
from models.earningsModels import SellerEarning
from services.commission import get_applicable_rate, calculate_with_configured_fees
from services.notifications import notify

logger = logging.getLogger(__name__)


def group_basket_by_seller(basket):
    groups = OrderedDict()
    for line in basket:
        seller_id = line.get("seller_id")
        if not seller_id:
            raise ValidationError(f"Basket line for product {line.get('product_id')} has no seller")
        groups.setdefault(seller_id, []).append(line)
    return groups


def split_order(order, today=None):
    """Stage the sub-orders and earnings for ``order`` in the session.

    Nothing is committed here. Raises ``ConflictError`` when the order has
    already been split; the (parent_order_id, seller_id) unique constraint
    backs this up at the database level.
    """
    if SubOrder.query.filter_by(parent_order_id=order.id).first():
        raise ConflictError("Order has already been split into sub-orders")
    if not order.basket:
        raise ValidationError("Order has no items to split")

    today = today or date.today()
    available_date = today + timedelta(days=current_app.config.get("HOLDING_PERIOD_DAYS", 7))

    sub_orders = []
    for seller_id, lines in group_basket_by_seller(order.basket).items():
        gross_amount = sum(int(line["price"]) * int(line["quantity"]) for line in lines)
        rate = get_applicable_rate(seller_id, lines[0].get("category_id"))
        breakdown = calculate_with_configured_fees(gross_amount, rate)

        sub_order = SubOrder(
            id=str(uuid.uuid4()),
            parent_order_id=order.id,
            seller_id=seller_id,
            items=lines,
            subtotal=gross_amount,
            total_amount=gross_amount,
            commission_rate=breakdown["commission_rate"],
            commission_amount=breakdown["commission_amount"],
            processing_fee=breakdown["processing_fee"],
            platform_fee=breakdown["platform_fee"],
            seller_payout_amount=breakdown["net_amount"],
            earnings_available_date=available_date,
        )
        earning = SellerEarning(
            seller_id=seller_id,
            parent_order_id=order.id,
            sub_order=sub_order,
            gross_amount=breakdown["gross_amount"],
            commission_amount=breakdown["commission_amount"],
            processing_fee=breakdown["processing_fee"],
            platform_fee=breakdown["platform_fee"],
            net_amount=breakdown["net_amount"],
            available_date=available_date,
        )
        db.session.add(sub_order)
        db.session.add(earning)
        sub_orders.append(sub_order)

        logger.info(
            "Order %s: seller %s gross=%s commission=%s net=%s",
            order.id, seller_id, gross_amount, breakdown["commission_amount"], breakdown["net_amount"],
        )

    return sub_orders


def confirm_payment(order, payment_intent_id=None):
    """Mark ``order`` paid and create its sub-orders and earnings in one transaction."""
    order_id = order.id
    if order.status != "pending_payment":
        raise ConflictError(f"Order is already {order.status}")

    try:
        order.status = "paid"
        order.paid_at = datetime.utcnow()
        if payment_intent_id:
            order.payment_intent_id = payment_intent_id

        sub_orders = split_order(order)
        for sub_order in sub_orders:
            notify(
                sub_order.seller_id,
                "new_order",
                "New order received",
                f"You have a new order worth {sub_order.total_amount / 100:.2f}.",
                link=f"/seller/sub-orders/{sub_order.id}",
                email=True,
            )
        notify(
            order.user_id,
            "order_paid",
            "Payment received",
            f"Your payment for order {order.id} was received.",
            link=f"/orders/{order.id}",
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Payment confirmation failed for order %s, rolled back", order_id)
        raise

    logger.info("Order %s paid and split into %d sub-order(s)", order_id, len(sub_orders))
    return sub_orders
