"""Customer return requests and disputes on their own orders."""
from core.imports import Blueprint, jsonify, get_jwt_identity
from core.extensions import db
from core.errors import NotFoundError, ValidationError, ConflictError
from core.auth import role_required, current_role, get_json_body, require_fields
from models.orderModels import Order
from models.supportModels import ReturnRequest, Dispute
from models.userModel import User
from services.notifications import notify

support_bp = Blueprint("support", __name__)

RETURNABLE_ORDER_STATUSES = ("paid", "processing", "shipped", "delivered")


def _own_order(order_id):
    order = Order.query.filter_by(id=order_id, user_id=get_jwt_identity()).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _notify_managers(type_, title, message, link):
    for manager in User.query.filter_by(role="manager", status="active").all():
        notify(manager.id, type_, title, message, link=link)


@support_bp.route('/api/returns', methods=['POST'])
@role_required("customer")
def request_return():
    data = get_json_body()
    require_fields(data, "order_id", "reason")

    order = _own_order(data["order_id"])
    if order.status not in RETURNABLE_ORDER_STATUSES:
        raise ValidationError(f"Returns are not possible for a {order.status} order")

    open_request = ReturnRequest.query.filter(
        ReturnRequest.order_id == order.id,
        ReturnRequest.status.in_(("requested", "approved"))
    ).first()
    if open_request:
        raise ConflictError("A return request for this order is already open")

    return_request = ReturnRequest(order_id=order.id, user_id=order.user_id, reason=str(data["reason"]).strip())
    db.session.add(return_request)
    db.session.flush()
    _notify_managers("return_requested", "Return requested",
                     f"A return was requested for order {order.id}.", f"/manager/returns/{return_request.id}")
    db.session.commit()

    return jsonify({"message": "Return request submitted", "return": return_request.to_dict()}), 201


@support_bp.route('/api/returns/mine', methods=['GET'])
@role_required("customer")
def my_returns():
    returns = (
        ReturnRequest.query
        .filter_by(user_id=get_jwt_identity())
        .order_by(ReturnRequest.created_at.desc())
        .all()
    )
    return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)}), 200


@support_bp.route('/api/returns/<return_id>', methods=['GET'])
@role_required()
def get_return(return_id):
    return_request = db.session.get(ReturnRequest, return_id)
    if not return_request:
        raise NotFoundError("Return request not found")
    if return_request.user_id != get_jwt_identity() and current_role() not in ("admin", "manager"):
        raise NotFoundError("Return request not found")
    return jsonify(return_request.to_dict()), 200


@support_bp.route('/api/disputes', methods=['POST'])
@role_required("customer")
def open_dispute():
    data = get_json_body()
    require_fields(data, "order_id", "subject", "description")

    order = _own_order(data["order_id"])
    if order.status == "pending_payment":
        raise ValidationError("Disputes can only be opened for paid orders")

    dispute = Dispute(
        order_id=order.id,
        user_id=order.user_id,
        subject=str(data["subject"]).strip()[:200],
        description=str(data["description"]),
    )
    db.session.add(dispute)
    db.session.flush()
    _notify_managers("dispute_opened", "Dispute opened",
                     f"A dispute was opened for order {order.id}.", f"/manager/disputes/{dispute.id}")
    db.session.commit()

    return jsonify({"message": "Dispute opened", "dispute": dispute.to_dict()}), 201


@support_bp.route('/api/disputes/mine', methods=['GET'])
@role_required("customer")
def my_disputes():
    disputes = Dispute.query.filter_by(user_id=get_jwt_identity()).order_by(Dispute.created_at.desc()).all()
    return jsonify({"disputes": [d.to_dict() for d in disputes], "count": len(disputes)}), 200
