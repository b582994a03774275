import logging

from core.imports import Blueprint, get_jwt_identity, jsonify, request, func, date
from core.extensions import db
from core.errors import NotFoundError, ValidationError, ConflictError
from core.auth import role_required, current_user, get_json_body, pagination_args
from models.userModel import User, ROLES
from models.productModels import Product
from models.cartModels import Cart, CartItem
from models.orderModels import Order, SubOrder, ORDER_STATUSES
from models.earningsModels import SellerEarning, Payout
from models.supportModels import Notification
from routes.orders import restore_stock
from services import commission, payouts
from services.earnings import (
    process_earnings_availability,
    find_earnings_issues,
    has_issues,
    update_earnings_for_fulfillment,
    apply_refund,
)
from services.order_split import confirm_payment

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

USER_STATUSES = ("active", "suspended")

# order status -> statuses an admin may move it to
ORDER_TRANSITIONS = {
    "pending_payment": ("paid", "processing", "shipped", "delivered", "cancelled"),
    "paid": ("processing", "shipped", "delivered", "cancelled", "refunded"),
    "processing": ("shipped", "delivered", "cancelled", "refunded"),
    "shipped": ("delivered", "refunded"),
    "delivered": ("refunded",),
    "cancelled": (),
    "refunded": (),
}


# =========================
# /api/admin/stats (GET)
# =========================
@admin_bp.route('/api/admin/stats', methods=['GET'])
@role_required("admin")
def get_admin_stats():
    """
    Admin: Get platform statistics
    ---
    tags:
      - Admin
    summary: Get platform statistics (Admin only)
    description: Returns user counts by role, product counts, order totals and commission earned.
    security:
      - Bearer: []
    responses:
      200:
        description: Platform stats, amounts in cents
      403:
        description: Forbidden (not admin)
        schema:
          type: object
          properties:
            error: { type: string, example: You do not have permission to perform this action }
    """
    users_by_role = dict(
        db.session.query(User.role, func.count(User.id)).group_by(User.role).all()
    )
    orders_by_status = dict(
        db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    gross, commission_total = db.session.query(
        func.coalesce(func.sum(SubOrder.total_amount), 0),
        func.coalesce(func.sum(SubOrder.commission_amount), 0),
    ).filter(SubOrder.fulfillment_status != "cancelled").one()

    return jsonify({
        "users": {
            "by_role": users_by_role,
            "total_accounts": sum(users_by_role.values())
        },
        "products": {
            "total": Product.query.filter(Product.status != "deleted").count(),
            "approved": Product.query.filter_by(approval_status="approved", status="active").count(),
            "pending_approval": Product.query.filter_by(approval_status="pending").count()
        },
        "orders": {
            "by_status": orders_by_status,
            "total": sum(orders_by_status.values())
        },
        "revenue": {
            "gross_sales": int(gross),
            "commission_earned": int(commission_total)
        },
        "payouts_pending_approval": Payout.query.filter_by(status="pending_approval").count()
    }), 200


# =========================
# /api/admin/users
# =========================
@admin_bp.route('/api/admin/users', methods=['GET'])
@role_required("admin")
def get_users():
    """
    List users with optional role and status filters
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: role
        in: query
        type: string
        enum: [admin, manager, seller, customer]
      - name: status
        in: query
        type: string
        enum: [active, suspended]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: A page of users
    """
    page, limit = pagination_args()
    query = User.query

    role = request.args.get("role")
    if role:
        if role not in ROLES:
            raise ValidationError("Invalid role")
        query = query.filter_by(role=role)
    status = request.args.get("status")
    if status:
        query = query.filter_by(status=status)

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "users": [u.to_dict() for u in users],
        "total": total,
        "page": page,
        "limit": limit
    }), 200


def _user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@admin_bp.route('/api/admin/users/<user_id>', methods=['GET'])
@role_required("admin")
def get_user(user_id):
    user = _user(user_id)
    data = user.to_dict()
    data["order_count"] = Order.query.filter_by(user_id=user.id).count()
    if user.role == "seller":
        data["product_count"] = Product.query.filter(
            Product.seller_id == user.id, Product.status != "deleted"
        ).count()
    return jsonify(data), 200


@admin_bp.route('/api/admin/users/<user_id>', methods=['PATCH'])
@role_required("admin")
def update_user(user_id):
    user = _user(user_id)
    data = get_json_body()

    if user.id == get_jwt_identity() and ("role" in data or "status" in data):
        raise ValidationError("You cannot change your own role or status")

    if "role" in data:
        if data["role"] not in ROLES:
            raise ValidationError("Invalid role")
        user.role = data["role"]
        if user.role == "seller" and user.seller_status == "none":
            user.seller_status = "pending"
    if "status" in data:
        if data["status"] not in USER_STATUSES:
            raise ValidationError("Invalid status")
        user.status = data["status"]

    db.session.commit()
    logger.info("User %s updated by admin %s", user.id, get_jwt_identity())
    return jsonify({"message": "User updated successfully", "user": user.to_dict()}), 200


@admin_bp.route('/api/admin/users/<user_id>', methods=['DELETE'])
@role_required("admin")
def delete_user(user_id):
    user = _user(user_id)
    if user.id == get_jwt_identity():
        raise ValidationError("You cannot delete your own account")

    has_history = (
        Order.query.filter_by(user_id=user.id).first()
        or Product.query.filter_by(seller_id=user.id).first()
        or SellerEarning.query.filter_by(seller_id=user.id).first()
    )
    if has_history:
        raise ConflictError("User has order or product history; suspend the account instead")

    cart = Cart.query.filter_by(user_id=user.id).first()
    if cart:
        CartItem.query.filter_by(cart_id=cart.id).delete()
        db.session.delete(cart)
    Notification.query.filter_by(user_id=user.id).delete()
    db.session.delete(user)
    db.session.commit()

    return jsonify({"message": f"User {user_id} deleted successfully"}), 200


# =========================
# /api/admin/orders
# =========================
@admin_bp.route('/api/admin/orders', methods=['GET'])
@role_required("admin")
def get_orders():
    page, limit = pagination_args()
    query = Order.query
    status = request.args.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")
        query = query.filter_by(status=status)

    total = query.count()
    orders = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "orders": [o.to_dict(include_sub_orders=True) for o in orders],
        "total": total,
        "page": page,
        "limit": limit
    }), 200


@admin_bp.route('/api/admin/orders/<order_id>/status', methods=['PATCH'])
@role_required("admin")
def update_order_status(order_id):
    """
    Move an order to a new status
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: order_id
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
              enum: [paid, processing, shipped, delivered, cancelled, refunded]
    responses:
      200:
        description: Order updated
      400:
        description: Invalid status or transition
      404:
        description: Order not found
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    new_status = get_json_body().get("status")
    if new_status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    if new_status not in ORDER_TRANSITIONS[order.status]:
        raise ValidationError(f"Cannot move order from {order.status} to {new_status}")

    if order.status == "pending_payment" and new_status != "cancelled":
        # every way out of pending_payment goes through the same split as the webhook
        confirm_payment(order)
    elif new_status == "cancelled":
        if order.status == "pending_payment":
            restore_stock(order.basket)
        for sub_order in order.sub_orders:
            if sub_order.fulfillment_status == "cancelled":
                continue
            update_earnings_for_fulfillment(sub_order, "cancelled")
            sub_order.fulfillment_status = "cancelled"
            restore_stock(sub_order.items)
    elif new_status == "refunded":
        apply_refund(order)

    order.status = new_status
    db.session.commit()
    logger.info("Order %s moved to %s by admin %s", order.id, new_status, get_jwt_identity())
    return jsonify({"message": f"Order updated to {new_status}", "order": order.to_dict(include_sub_orders=True)}), 200


# =========================
# /api/admin/commission-rates
# =========================
@admin_bp.route('/api/admin/commission-rates', methods=['GET'])
@role_required("admin")
def list_commission_rates():
    is_active = request.args.get("is_active")
    if is_active is not None:
        is_active = is_active.lower() in ("1", "true", "yes")
    rates = commission.list_rates(rate_type=request.args.get("rate_type"), is_active=is_active)
    return jsonify({"rates": [r.to_dict() for r in rates], "count": len(rates)}), 200


@admin_bp.route('/api/admin/commission-rates/<rate_id>', methods=['GET'])
@role_required("admin")
def get_commission_rate(rate_id):
    return jsonify(commission.get_rate(rate_id).to_dict()), 200


@admin_bp.route('/api/admin/commission-rates', methods=['POST'])
@role_required("admin")
def create_commission_rate():
    """
    Create a global, category or seller commission rate
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [rate_type, commission_percentage]
          properties:
            rate_type:
              type: string
              enum: [global, category, seller]
            commission_percentage:
              type: number
              example: 12.5
            seller_id:
              type: string
            category_id:
              type: string
            is_active:
              type: boolean
    responses:
      201:
        description: Rate created
      400:
        description: Invalid type, percentage or missing seller/category id
    """
    rate = commission.create_rate(get_json_body())
    return jsonify({"message": "Commission rate created", "rate": rate.to_dict()}), 201


@admin_bp.route('/api/admin/commission-rates/<rate_id>', methods=['PATCH'])
@role_required("admin")
def update_commission_rate(rate_id):
    rate = commission.update_rate(rate_id, get_json_body())
    return jsonify({"message": "Commission rate updated", "rate": rate.to_dict()}), 200


@admin_bp.route('/api/admin/commission-rates/<rate_id>', methods=['DELETE'])
@role_required("admin")
def delete_commission_rate(rate_id):
    commission.delete_rate(rate_id)
    return jsonify({"message": "Commission rate deleted"}), 200


# =========================
# /api/admin/payouts
# =========================
@admin_bp.route('/api/admin/payouts', methods=['GET'])
@role_required("admin")
def list_payouts():
    items = payouts.list_payouts(seller_id=request.args.get("seller_id"), status=request.args.get("status"))
    return jsonify({"payouts": [p.to_dict() for p in items], "count": len(items)}), 200


@admin_bp.route('/api/admin/payouts/<payout_id>/approve', methods=['POST'])
@role_required("admin")
def approve_payout(payout_id):
    notes = (request.get_json(silent=True) or {}).get("notes")
    payout = payouts.approve_payout(payout_id, current_user(), notes=notes)
    return jsonify({"message": "Payout approved", "payout": payout.to_dict()}), 200


@admin_bp.route('/api/admin/payouts/<payout_id>/reject', methods=['POST'])
@role_required("admin")
def reject_payout(payout_id):
    reason = (request.get_json(silent=True) or {}).get("reason")
    payout = payouts.reject_payout(payout_id, current_user(), reason=reason)
    return jsonify({"message": "Payout rejected", "payout": payout.to_dict()}), 200


@admin_bp.route('/api/admin/payouts/<payout_id>/mark-paid', methods=['POST'])
@role_required("admin")
def mark_payout_paid(payout_id):
    payout = payouts.mark_payout_paid(payout_id, current_user())
    return jsonify({"message": "Payout marked as paid", "payout": payout.to_dict()}), 200


# =========================
# /api/admin/earnings
# =========================
@admin_bp.route('/api/admin/earnings/issues', methods=['GET'])
@role_required("admin")
def earnings_issues():
    report = find_earnings_issues()
    return jsonify({"healthy": not has_issues(report), **report}), 200


@admin_bp.route('/api/admin/earnings/process', methods=['POST'])
@role_required("admin")
def process_earnings():
    """
    Release earnings whose holding period has passed
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            date:
              type: string
              example: "2025-01-31"
    responses:
      200:
        description: Count and total of released earnings
      400:
        description: Invalid date
    """
    data = request.get_json(silent=True) or {}
    today = None
    if data.get("date"):
        try:
            today = date.fromisoformat(data["date"])
        except (TypeError, ValueError):
            raise ValidationError("date must be YYYY-MM-DD")

    result = process_earnings_availability(today)
    return jsonify({"message": f"Released {result['count']} earnings", **result}), 200
