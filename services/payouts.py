"""Seller payout requests and their admin review.

Payouts are made of whole earnings rows: a request takes the oldest
available earnings that fit within the requested amount, so the payout
amount always equals the sum of the earnings it carries.
"""
import logging

from core.imports import current_app, datetime
from core.extensions import db
from core.errors import ValidationError, NotFoundError
from models.earningsModels import Payout, SellerEarning, PAYOUT_METHODS
from services.earnings import available_balance
from services.notifications import notify

logger = logging.getLogger(__name__)


def _select_earnings(seller_id, amount):
    available = (
        SellerEarning.query
        .filter_by(seller_id=seller_id, status="available")
        .order_by(SellerEarning.available_date.asc(), SellerEarning.created_at.asc())
        .all()
    )
    if amount is None:
        return available

    selected, total = [], 0
    for earning in available:
        if total + earning.net_amount <= amount:
            selected.append(earning)
            total += earning.net_amount
        if total == amount:
            break
    return selected


def request_payout(seller, amount=None, method="bank_transfer", notes=None):
    if method not in PAYOUT_METHODS:
        raise ValidationError("Invalid payout method")
    if amount is not None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Invalid payout amount")

    minimum = current_app.config.get("MINIMUM_PAYOUT_AMOUNT", 2000)
    balance = available_balance(seller.id)

    if amount is not None and amount > balance:
        raise ValidationError(
            "Insufficient available balance",
            payload={"available_balance": balance, "requested": amount},
        )

    earnings = _select_earnings(seller.id, amount)
    payout_amount = sum(e.net_amount for e in earnings)

    if payout_amount < minimum or payout_amount == 0:
        raise ValidationError(
            "Amount below minimum payout threshold",
            payload={"minimum": minimum, "payable": payout_amount},
        )

    payout = Payout(seller_id=seller.id, amount=payout_amount, method=method, notes=notes)
    db.session.add(payout)
    for earning in earnings:
        earning.status = "processing"
        earning.payout = payout
        earning.sub_order.payout_status = "processing"

    db.session.commit()
    logger.info("Seller %s requested payout %s of %d cents", seller.id, payout.id, payout_amount)
    return payout


def get_payout(payout_id):
    payout = db.session.get(Payout, payout_id)
    if not payout:
        raise NotFoundError("Payout not found")
    return payout


def _require_status(payout, *statuses):
    if payout.status not in statuses:
        raise ValidationError(
            f"Payout cannot be changed from status {payout.status}",
            payload={"current_status": payout.status},
        )


def approve_payout(payout_id, admin, notes=None):
    payout = get_payout(payout_id)
    _require_status(payout, "pending_approval")

    payout.status = "approved"
    payout.processed_by = admin.id
    payout.processed_at = datetime.utcnow()
    if notes:
        payout.notes = notes
    notify(payout.seller_id, "payout_approved", "Payout approved",
           f"Your payout of {payout.amount / 100:.2f} was approved.")
    db.session.commit()
    logger.info("Payout %s approved by %s", payout.id, admin.id)
    return payout


def reject_payout(payout_id, admin, reason=None):
    payout = get_payout(payout_id)
    _require_status(payout, "pending_approval")

    payout.status = "rejected"
    payout.processed_by = admin.id
    payout.processed_at = datetime.utcnow()
    payout.notes = reason or payout.notes
    for earning in payout.earnings:
        earning.status = "available"
        earning.payout_id = None
        earning.sub_order.payout_status = "ready"
    notify(payout.seller_id, "payout_rejected", "Payout rejected",
           f"Your payout of {payout.amount / 100:.2f} was rejected. {reason or ''}".strip())
    db.session.commit()
    logger.info("Payout %s rejected by %s", payout.id, admin.id)
    return payout


def mark_payout_paid(payout_id, admin):
    payout = get_payout(payout_id)
    _require_status(payout, "approved")

    payout.status = "paid"
    payout.processed_by = admin.id
    payout.processed_at = datetime.utcnow()
    for earning in payout.earnings:
        earning.status = "paid"
        earning.sub_order.payout_status = "completed"
    notify(payout.seller_id, "payout_paid", "Payout sent",
           f"Your payout of {payout.amount / 100:.2f} has been sent.")
    db.session.commit()
    logger.info("Payout %s marked paid by %s", payout.id, admin.id)
    return payout


def list_payouts(seller_id=None, status=None):
    query = Payout.query
    if seller_id:
        query = query.filter_by(seller_id=seller_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Payout.requested_at.desc()).all()
