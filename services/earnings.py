"""Seller earnings lifecycle: holding period release, summaries and consistency checks.

pending --(available_date reached)--> available --(payout requested)--> processing
processing --(payout paid)--> paid, processing --(payout rejected)--> available
pending --(sub-order cancelled)--> cancelled
pending|available --(refund)--> reduced, or cancelled when refunded in full
"""
import logging

from core.imports import date, func
from core.extensions import db
from core.errors import ValidationError
from services.commission import calculate_with_configured_fees
from models.orderModels import Order, SubOrder
from models.earningsModels import SellerEarning

logger = logging.getLogger(__name__)

PAID_ORDER_STATUSES = ("paid", "processing", "shipped", "delivered")


def process_earnings_availability(today=None):
    today = today or date.today()
    due = (
        SellerEarning.query
        .filter(SellerEarning.status == "pending", SellerEarning.available_date <= today)
        .all()
    )
    if not due:
        logger.info("No earnings to release on %s", today)
        return {"count": 0, "total_amount": 0, "earning_ids": []}

    total = 0
    for earning in due:
        earning.status = "available"
        if earning.sub_order and earning.sub_order.payout_status == "pending":
            earning.sub_order.payout_status = "ready"
        total += earning.net_amount
    db.session.commit()

    logger.info("Released %d earnings totalling %d cents", len(due), total)
    return {"count": len(due), "total_amount": total, "earning_ids": [e.id for e in due]}


def get_earnings_summary(seller_id):
    summary = {
        "total_earnings": 0,
        "available_balance": 0,
        "pending_balance": 0,
        "paid_balance": 0,
        "total_commission": 0,
        "order_count": 0,
    }
    rows = (
        db.session.query(
            SellerEarning.status,
            func.count(SellerEarning.id),
            func.coalesce(func.sum(SellerEarning.net_amount), 0),
            func.coalesce(func.sum(SellerEarning.commission_amount), 0),
        )
        .filter(SellerEarning.seller_id == seller_id)
        .group_by(SellerEarning.status)
        .all()
    )
    for status, count, net, commission in rows:
        if status == "cancelled":
            continue
        summary["order_count"] += count
        summary["total_earnings"] += int(net)
        summary["total_commission"] += int(commission)
        if status == "available":
            summary["available_balance"] += int(net)
        elif status in ("pending", "processing"):
            summary["pending_balance"] += int(net)
        elif status == "paid":
            summary["paid_balance"] += int(net)
    return summary


def available_balance(seller_id):
    total = (
        db.session.query(func.coalesce(func.sum(SellerEarning.net_amount), 0))
        .filter(SellerEarning.seller_id == seller_id, SellerEarning.status == "available")
        .scalar()
    )
    return int(total)


def cancel_earnings_for_sub_order(sub_order):
    earning = sub_order.earning
    if earning and earning.status in ("pending", "available"):
        earning.status = "cancelled"
        logger.info("Cancelled earning %s for sub-order %s", earning.id, sub_order.id)
    return earning


def update_earnings_for_fulfillment(sub_order, status):
    """Keep the sub-order's earning in step with a fulfillment change."""
    if status == "cancelled":
        if sub_order.earning and sub_order.earning.status in ("processing", "paid"):
            raise ValidationError("Cannot cancel a sub-order whose earnings are already being paid out")
        return cancel_earnings_for_sub_order(sub_order)
    return sub_order.earning


def refundable_sub_orders(order):
    return [s for s in order.sub_orders if s.earning and s.earning.status != "cancelled"]


def refundable_amount(order):
    return sum(s.total_amount for s in refundable_sub_orders(order))


def _reduce_sub_order(sub_order, refund_share):
    earning = sub_order.earning
    remaining = sub_order.total_amount - refund_share
    if remaining == 0:
        cancel_earnings_for_sub_order(sub_order)
        return

    breakdown = calculate_with_configured_fees(remaining, sub_order.commission_rate)
    sub_order.total_amount = remaining
    sub_order.commission_amount = earning.commission_amount = breakdown["commission_amount"]
    sub_order.processing_fee = earning.processing_fee = breakdown["processing_fee"]
    sub_order.platform_fee = earning.platform_fee = breakdown["platform_fee"]
    sub_order.seller_payout_amount = earning.net_amount = breakdown["net_amount"]
    earning.gross_amount = remaining


def apply_refund(order, amount=None):
    """Take a refund out of the order's sub-orders and the earnings they owe.

    The refund is shared across sub-orders in proportion to their totals and
    each share is recomputed through the commission rules, so the net
    invariant keeps holding. A sub-order refunded in full has its earning
    cancelled. Earnings already in a payout cannot be refunded.
    """
    sub_orders = refundable_sub_orders(order)
    refundable = sum(s.total_amount for s in sub_orders)
    amount = refundable if amount is None else amount
    if amount > refundable:
        raise ValidationError(
            "Refund exceeds the refundable amount",
            payload={"refundable_amount": refundable, "requested": amount},
        )
    if any(s.earning.status in ("processing", "paid") for s in sub_orders):
        raise ValidationError("Cannot refund an order whose earnings are already being paid out")

    # shares are taken against the shrinking total so none exceeds its sub-order
    remaining, remaining_total = amount, refundable
    for sub_order in sub_orders:
        if not sub_order.total_amount:
            continue
        share = remaining * sub_order.total_amount // remaining_total
        remaining -= share
        remaining_total -= sub_order.total_amount
        _reduce_sub_order(sub_order, share)

    logger.info("Refunded %d of %d cents on order %s", amount, refundable, order.id)
    return amount


def find_earnings_issues():
    """Report rows where orders, sub-orders and earnings disagree."""
    orders_without_split = (
        Order.query
        .outerjoin(SubOrder, SubOrder.parent_order_id == Order.id)
        .filter(Order.status.in_(PAID_ORDER_STATUSES), SubOrder.id.is_(None))
        .all()
    )
    sub_orders_without_earnings = (
        SubOrder.query
        .outerjoin(SellerEarning, SellerEarning.sub_order_id == SubOrder.id)
        .filter(SellerEarning.id.is_(None))
        .all()
    )
    broken_earnings = SellerEarning.query.filter(
        SellerEarning.net_amount
        != SellerEarning.gross_amount - SellerEarning.commission_amount
        - SellerEarning.processing_fee - SellerEarning.platform_fee
    ).all()
    mismatched = (
        db.session.query(SubOrder, SellerEarning)
        .join(SellerEarning, SellerEarning.sub_order_id == SubOrder.id)
        .filter(SubOrder.seller_payout_amount != SellerEarning.net_amount)
        .all()
    )

    return {
        "orders_without_sub_orders": [o.id for o in orders_without_split],
        "sub_orders_without_earnings": [s.id for s in sub_orders_without_earnings],
        "earnings_violating_net_invariant": [e.id for e in broken_earnings],
        "payout_amount_mismatches": [
            {"sub_order_id": s.id, "seller_payout_amount": s.seller_payout_amount, "net_amount": e.net_amount}
            for s, e in mismatched
        ],
    }


def has_issues(report):
    return any(report.values())
