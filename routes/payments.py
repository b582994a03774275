import logging

from core.imports import Blueprint, jsonify, request, current_app, get_jwt_identity
from core.errors import ValidationError, NotFoundError, ConflictError
from core.auth import role_required, get_json_body, require_fields
from models.orderModels import Order
from services.order_split import confirm_payment
from services import payments

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payments", __name__)


def _own_order(order_id):
    order = Order.query.filter_by(id=order_id, user_id=get_jwt_identity()).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


@payment_bp.route('/api/payments/intents', methods=['POST'])
@role_required("customer")
def create_intent():
    """
    Create a payment intent for one of the customer's orders
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [order_id]
          properties:
            order_id:
              type: string
    responses:
      201:
        description: Intent id and client secret
      400:
        description: Order is not awaiting payment
      502:
        description: Payment provider error
    """
    data = get_json_body()
    require_fields(data, "order_id")
    intent = payments.create_payment_intent(_own_order(data["order_id"]))
    return jsonify(intent), 201


@payment_bp.route('/api/payments/confirm', methods=['POST'])
@role_required("customer")
def confirm():
    data = get_json_body()
    require_fields(data, "order_id")
    order = _own_order(data["order_id"])

    intent_id = data.get("payment_intent_id") or order.payment_intent_id
    if not intent_id:
        raise ValidationError("No payment intent for this order")
    if not isinstance(intent_id, str):
        raise ValidationError("payment_intent_id must be a string")
    if order.payment_intent_id and intent_id != order.payment_intent_id:
        raise ValidationError("Payment intent does not belong to this order")

    intent = payments.retrieve_payment_intent(intent_id)
    payments.ensure_intent_pays_order(intent, order)

    sub_orders = confirm_payment(order, intent_id)
    return jsonify({
        "message": "Payment confirmed",
        "order": order.to_dict(),
        "sub_orders": [s.to_dict() for s in sub_orders]
    }), 200


@payment_bp.route('/api/payments/webhook', methods=['POST'])
def stripe_webhook():
    """
    Handle provider webhook events after payment
    """
    event = payments.verify_webhook_signature(
        request.get_data(),
        request.headers.get("Stripe-Signature"),
        current_app.config.get("STRIPE_WEBHOOK_SECRET"),
        tolerance=current_app.config.get("STRIPE_WEBHOOK_TOLERANCE", 300),
    )

    if event.get("type") != "payment_intent.succeeded":
        return jsonify({"message": "Unhandled event"}), 200

    intent = event.get("data", {}).get("object", {})
    order = payments.find_order_for_intent(intent)

    if intent.get("amount") is not None and int(intent["amount"]) != order.amount:
        logger.error("Webhook amount %s does not match order %s amount %s", intent["amount"], order.id, order.amount)
        raise ValidationError("Payment amount does not match order amount")

    try:
        confirm_payment(order, intent.get("id"))
    except ConflictError:
        # provider retries deliver the same event more than once
        logger.info("Webhook for already processed order %s", order.id)
        return jsonify({"message": "Order already processed"}), 200

    return jsonify({"message": "Order payment verified"}), 200
