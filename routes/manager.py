import logging

from core.imports import Blueprint, jsonify, request, datetime
from core.extensions import db
from core.errors import NotFoundError, ValidationError
from core.auth import role_required, current_user, get_json_body, require_fields, parse_positive_int
from models.userModel import User
from models.productModels import Product
from models.supportModels import Dispute, ReturnRequest
from services.earnings import apply_refund, refundable_amount, refundable_sub_orders
from services.notifications import notify

logger = logging.getLogger(__name__)

manager_bp = Blueprint("manager", __name__)

STAFF = ("manager", "admin")


def _product(product_id):
    product = db.session.get(Product, product_id)
    if not product or product.status == "deleted":
        raise NotFoundError("Product not found")
    return product


def _seller(seller_id):
    seller = User.query.filter_by(id=seller_id, role="seller").first()
    if not seller:
        raise NotFoundError("Seller not found")
    return seller


# =========================
# Dashboard
# =========================
@manager_bp.route('/api/manager/dashboard', methods=['GET'])
@role_required(*STAFF)
def dashboard():
    """
    Manager: moderation queue counts
    ---
    tags:
      - Manager
    security:
      - Bearer: []
    responses:
      200:
        description: Pending products, sellers, open disputes and returns
      403:
        description: Forbidden (not manager or admin)
    """
    return jsonify({
        "pending_products": Product.query.filter(
            Product.approval_status == "pending", Product.status != "deleted"
        ).count(),
        "pending_sellers": User.query.filter_by(role="seller", seller_status="pending").count(),
        "open_disputes": Dispute.query.filter(Dispute.status.in_(("open", "escalated"))).count(),
        "pending_returns": ReturnRequest.query.filter_by(status="requested").count(),
    }), 200


# =========================
# Product approval
# =========================
@manager_bp.route('/api/manager/products/pending', methods=['GET'])
@role_required(*STAFF)
def pending_products():
    products = (
        Product.query
        .filter(Product.approval_status == "pending", Product.status != "deleted")
        .order_by(Product.created_at.asc())
        .all()
    )
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@manager_bp.route('/api/manager/products/<product_id>/approve', methods=['POST'])
@role_required(*STAFF)
def approve_product(product_id):
    product = _product(product_id)
    product.approval_status = "approved"
    product.rejection_reason = None
    notify(product.seller_id, "product_approved", "Product approved",
           f"'{product.title}' is now live.", link=f"/products/{product.id}")
    db.session.commit()
    return jsonify({"message": "Product approved", "product": product.to_dict()}), 200


@manager_bp.route('/api/manager/products/<product_id>/reject', methods=['POST'])
@role_required(*STAFF)
def reject_product(product_id):
    """
    Manager: reject a product with a reason
    ---
    tags:
      - Manager
    security:
      - Bearer: []
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [reason]
          properties:
            reason:
              type: string
              example: Images are missing
    responses:
      200:
        description: Product rejected
      400:
        description: Reason missing
      404:
        description: Product not found
    """
    product = _product(product_id)
    data = get_json_body()
    require_fields(data, "reason")

    product.approval_status = "rejected"
    product.rejection_reason = data["reason"]
    notify(product.seller_id, "product_rejected", "Product rejected",
           f"'{product.title}' was rejected: {data['reason']}", email=True)
    db.session.commit()
    return jsonify({"message": "Product rejected", "product": product.to_dict()}), 200


@manager_bp.route('/api/manager/products/<product_id>/request-revision', methods=['POST'])
@role_required(*STAFF)
def request_revision(product_id):
    product = _product(product_id)
    data = get_json_body()
    require_fields(data, "reason")

    product.approval_status = "revision_requested"
    product.rejection_reason = data["reason"]
    notify(product.seller_id, "product_revision", "Changes requested",
           f"'{product.title}' needs changes: {data['reason']}")
    db.session.commit()
    return jsonify({"message": "Revision requested", "product": product.to_dict()}), 200


# =========================
# Seller approval
# =========================
@manager_bp.route('/api/manager/sellers/pending', methods=['GET'])
@role_required(*STAFF)
def pending_sellers():
    sellers = (
        User.query
        .filter_by(role="seller", seller_status="pending")
        .order_by(User.created_at.asc())
        .all()
    )
    return jsonify({"sellers": [s.to_dict() for s in sellers], "count": len(sellers)}), 200


@manager_bp.route('/api/manager/sellers/<seller_id>/approve', methods=['POST'])
@role_required(*STAFF)
def approve_seller(seller_id):
    seller = _seller(seller_id)
    seller.seller_status = "approved"
    notify(seller.id, "seller_approved", "Seller account approved",
           "You can now list products.", email=True)
    db.session.commit()
    logger.info("Seller %s approved", seller.id)
    return jsonify({"message": "Seller approved", "seller": seller.to_dict()}), 200


@manager_bp.route('/api/manager/sellers/<seller_id>/reject', methods=['POST'])
@role_required(*STAFF)
def reject_seller(seller_id):
    seller = _seller(seller_id)
    reason = (request.get_json(silent=True) or {}).get("reason")
    seller.seller_status = "rejected"
    notify(seller.id, "seller_rejected", "Seller application rejected",
           f"Your seller application was rejected. {reason or ''}".strip(), email=True)
    db.session.commit()
    return jsonify({"message": "Seller rejected", "seller": seller.to_dict()}), 200


# =========================
# Disputes
# =========================
@manager_bp.route('/api/manager/disputes', methods=['GET'])
@role_required(*STAFF)
def list_disputes():
    query = Dispute.query
    status = request.args.get("status")
    if status:
        query = query.filter_by(status=status)
    disputes = query.order_by(Dispute.created_at.desc()).all()
    return jsonify({"disputes": [d.to_dict() for d in disputes], "count": len(disputes)}), 200


def _open_dispute(dispute_id):
    dispute = db.session.get(Dispute, dispute_id)
    if not dispute:
        raise NotFoundError("Dispute not found")
    if dispute.status == "resolved":
        raise ValidationError("Dispute is already resolved")
    return dispute


@manager_bp.route('/api/manager/disputes/<dispute_id>/resolve', methods=['POST'])
@role_required(*STAFF)
def resolve_dispute(dispute_id):
    dispute = _open_dispute(dispute_id)
    data = get_json_body()
    require_fields(data, "resolution")

    dispute.status = "resolved"
    dispute.resolution = data["resolution"]
    dispute.resolved_by = current_user().id
    notify(dispute.user_id, "dispute_resolved", "Dispute resolved", data["resolution"],
           link=f"/orders/{dispute.order_id}")
    db.session.commit()
    return jsonify({"message": "Dispute resolved", "dispute": dispute.to_dict()}), 200


@manager_bp.route('/api/manager/disputes/<dispute_id>/escalate', methods=['POST'])
@role_required(*STAFF)
def escalate_dispute(dispute_id):
    dispute = _open_dispute(dispute_id)
    if dispute.status == "escalated":
        raise ValidationError("Dispute is already escalated")

    dispute.status = "escalated"
    for admin in User.query.filter_by(role="admin", status="active").all():
        notify(admin.id, "dispute_escalated", "Dispute escalated",
               f"Dispute {dispute.id} on order {dispute.order_id} needs an admin.")
    db.session.commit()
    return jsonify({"message": "Dispute escalated", "dispute": dispute.to_dict()}), 200


# =========================
# Returns
# =========================
@manager_bp.route('/api/manager/returns/pending', methods=['GET'])
@role_required(*STAFF)
def pending_returns():
    returns = ReturnRequest.query.filter_by(status="requested").order_by(ReturnRequest.created_at.asc()).all()
    return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)}), 200


def _requested_return(return_id):
    return_request = db.session.get(ReturnRequest, return_id)
    if not return_request:
        raise NotFoundError("Return request not found")
    if return_request.status != "requested":
        raise ValidationError(f"Return request is already {return_request.status}")
    return return_request


@manager_bp.route('/api/manager/returns/<return_id>/approve', methods=['POST'])
@role_required(*STAFF)
def approve_return(return_id):
    return_request = _requested_return(return_id)
    data = request.get_json(silent=True) or {}

    order = return_request.order
    refund_amount = refundable_amount(order)
    if data.get("refund_amount") is not None:
        refund_amount = parse_positive_int(data["refund_amount"], "refund_amount")
        if refund_amount > order.amount:
            raise ValidationError("Refund cannot exceed the order amount")

    apply_refund(order, refund_amount)
    if not refundable_sub_orders(order):
        order.status = "refunded"

    return_request.status = "approved"
    return_request.refund_amount = refund_amount
    return_request.resolution_note = data.get("note")
    notify(return_request.user_id, "return_approved", "Return approved",
           f"Your return for order {return_request.order_id} was approved.", email=True)
    db.session.commit()
    return jsonify({"message": "Return approved", "return": return_request.to_dict()}), 200


@manager_bp.route('/api/manager/returns/<return_id>/reject', methods=['POST'])
@role_required(*STAFF)
def reject_return(return_id):
    return_request = _requested_return(return_id)
    note = (request.get_json(silent=True) or {}).get("note")

    return_request.status = "rejected"
    return_request.resolution_note = note
    return_request.updated_at = datetime.utcnow()
    notify(return_request.user_id, "return_rejected", "Return rejected",
           f"Your return for order {return_request.order_id} was rejected. {note or ''}".strip())
    db.session.commit()
    return jsonify({"message": "Return rejected", "return": return_request.to_dict()}), 200
