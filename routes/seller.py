import logging

from core.imports import Blueprint, jsonify, request, get_jwt_identity, datetime, func
from core.extensions import db
from core.errors import NotFoundError, ValidationError
from core.auth import role_required, current_user, get_json_body, require_fields, parse_positive_int
from models.orderModels import SubOrder, FULFILLMENT_STATUSES, PAYOUT_STATUSES
from models.earningsModels import SellerEarning, EARNING_STATUSES
from models.productModels import Product
from routes.orders import restore_stock
from services.earnings import get_earnings_summary, update_earnings_for_fulfillment
from services.payouts import request_payout, list_payouts
from services.notifications import notify

logger = logging.getLogger(__name__)

seller_bp = Blueprint("seller", __name__)

# fulfillment status -> statuses it may move to
FULFILLMENT_TRANSITIONS = {
    "pending": ("processing", "shipped", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered",),
    "delivered": (),
    "cancelled": (),
}


def sync_order_status(order):
    """Derive the parent order's status from its sub-orders."""
    statuses = [s.fulfillment_status for s in order.sub_orders]
    live = [s for s in statuses if s != "cancelled"]
    if not live:
        order.status = "cancelled"
    elif all(s == "delivered" for s in live):
        order.status = "delivered"
    elif any(s in ("shipped", "delivered") for s in live):
        order.status = "shipped"
    elif any(s == "processing" for s in live):
        order.status = "processing"


def _own_sub_order(sub_order_id):
    sub_order = SubOrder.query.filter_by(id=sub_order_id, seller_id=get_jwt_identity()).first()
    if not sub_order:
        raise NotFoundError("Sub-order not found")
    return sub_order


@seller_bp.route('/api/seller/dashboard', methods=['GET'])
@role_required("seller")
def dashboard():
    """
    Seller dashboard with earnings summary and counts
    ---
    tags:
      - Seller
    security:
      - Bearer: []
    responses:
      200:
        description: Earnings summary, product and sub-order counts
    """
    seller = current_user()

    fulfillment_counts = dict(
        db.session.query(SubOrder.fulfillment_status, func.count(SubOrder.id))
        .filter(SubOrder.seller_id == seller.id)
        .group_by(SubOrder.fulfillment_status)
        .all()
    )
    product_counts = dict(
        db.session.query(Product.approval_status, func.count(Product.id))
        .filter(Product.seller_id == seller.id, Product.status != "deleted")
        .group_by(Product.approval_status)
        .all()
    )
    recent = (
        SubOrder.query
        .filter_by(seller_id=seller.id)
        .order_by(SubOrder.created_at.desc())
        .limit(5)
        .all()
    )

    return jsonify({
        "seller": seller.to_dict(),
        "earnings": get_earnings_summary(seller.id),
        "sub_orders": {
            "total": sum(fulfillment_counts.values()),
            "by_status": fulfillment_counts,
        },
        "products": {
            "total": sum(product_counts.values()),
            "by_approval_status": product_counts,
        },
        "recent_sub_orders": [s.to_dict() for s in recent]
    }), 200


@seller_bp.route('/api/seller/sub-orders', methods=['GET'])
@role_required("seller")
def list_sub_orders():
    query = SubOrder.query.filter_by(seller_id=get_jwt_identity())

    fulfillment_status = request.args.get("fulfillment_status")
    if fulfillment_status:
        if fulfillment_status not in FULFILLMENT_STATUSES:
            raise ValidationError("Invalid fulfillment status")
        query = query.filter_by(fulfillment_status=fulfillment_status)

    payout_status = request.args.get("payout_status")
    if payout_status:
        if payout_status not in PAYOUT_STATUSES:
            raise ValidationError("Invalid payout status")
        query = query.filter_by(payout_status=payout_status)

    sub_orders = query.order_by(SubOrder.created_at.desc()).all()
    return jsonify({"sub_orders": [s.to_dict() for s in sub_orders], "count": len(sub_orders)}), 200


@seller_bp.route('/api/seller/sub-orders/<sub_order_id>', methods=['GET'])
@role_required("seller")
def get_sub_order(sub_order_id):
    sub_order = _own_sub_order(sub_order_id)
    data = sub_order.to_dict()
    data["shipping_address"] = sub_order.parent_order.shipping_address
    data["earning"] = sub_order.earning.to_dict() if sub_order.earning else None
    return jsonify(data), 200


@seller_bp.route('/api/seller/sub-orders/<sub_order_id>/status', methods=['PUT'])
@role_required("seller")
def update_fulfillment_status(sub_order_id):
    """
    Move one of the seller's sub-orders through fulfillment
    ---
    tags:
      - Seller
    security:
      - Bearer: []
    parameters:
      - name: sub_order_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [status]
          properties:
            status:
              type: string
              enum: [processing, shipped, delivered, cancelled]
    responses:
      200:
        description: Sub-order updated
      400:
        description: Invalid status or transition
      404:
        description: Sub-order not found for this seller
    """
    sub_order = _own_sub_order(sub_order_id)
    data = get_json_body()
    require_fields(data, "status")

    new_status = data["status"]
    if new_status not in FULFILLMENT_STATUSES:
        raise ValidationError("Invalid status")
    if new_status not in FULFILLMENT_TRANSITIONS[sub_order.fulfillment_status]:
        raise ValidationError(
            f"Cannot move sub-order from {sub_order.fulfillment_status} to {new_status}"
        )

    update_earnings_for_fulfillment(sub_order, new_status)
    if new_status == "cancelled":
        restore_stock(sub_order.items)
    sub_order.fulfillment_status = new_status
    if new_status in ("shipped", "delivered") and not sub_order.fulfilled_at:
        sub_order.fulfilled_at = datetime.utcnow()

    order = sub_order.parent_order
    sync_order_status(order)
    notify(order.user_id, "order_status", "Order update",
           f"Part of your order {order.id} is now {new_status}.", link=f"/orders/{order.id}")
    db.session.commit()

    logger.info("Sub-order %s moved to %s by seller %s", sub_order.id, new_status, sub_order.seller_id)
    return jsonify({"message": f"Sub-order updated to {new_status}", "sub_order": sub_order.to_dict()}), 200


@seller_bp.route('/api/seller/earnings', methods=['GET'])
@role_required("seller")
def list_earnings():
    query = SellerEarning.query.filter_by(seller_id=get_jwt_identity())
    status = request.args.get("status")
    if status:
        if status not in EARNING_STATUSES:
            raise ValidationError("Invalid earnings status")
        query = query.filter_by(status=status)

    earnings = query.order_by(SellerEarning.created_at.desc()).all()
    return jsonify({"earnings": [e.to_dict() for e in earnings], "count": len(earnings)}), 200


@seller_bp.route('/api/seller/earnings/summary', methods=['GET'])
@role_required("seller")
def earnings_summary():
    return jsonify(get_earnings_summary(get_jwt_identity())), 200


@seller_bp.route('/api/seller/payouts', methods=['POST'])
@role_required("seller")
def create_payout():
    """
    Request a payout of available earnings
    ---
    tags:
      - Seller
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            amount:
              type: integer
              description: Cents. Omit to request the whole available balance.
            method:
              type: string
              enum: [bank_transfer, paypal, stripe]
            notes:
              type: string
    responses:
      201:
        description: Payout created in pending_approval
      400:
        description: Invalid amount, below minimum or insufficient balance
    """
    seller = current_user()
    data = request.get_json(silent=True) or {}

    amount = data.get("amount")
    if amount is not None:
        amount = parse_positive_int(amount, "amount")

    payout = request_payout(
        seller,
        amount=amount,
        method=data.get("method") or "bank_transfer",
        notes=data.get("notes"),
    )
    return jsonify({"message": "Payout requested", "payout": payout.to_dict()}), 201


@seller_bp.route('/api/seller/payouts', methods=['GET'])
@role_required("seller")
def my_payouts():
    payouts = list_payouts(seller_id=get_jwt_identity(), status=request.args.get("status"))
    return jsonify({"payouts": [p.to_dict() for p in payouts], "count": len(payouts)}), 200
