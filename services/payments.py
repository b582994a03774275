"""Stripe-style payment intents over the Stripe REST API.

Without ``STRIPE_SECRET_KEY`` intents are created locally with a
``pi_test_`` id so the checkout flow can be exercised end to end.
"""
import json
import logging
import time

from core.imports import current_app, requests, hmac, hashlib, secrets
from core.extensions import db
from core.errors import AppError, ValidationError, AuthError, NotFoundError
from models.orderModels import Order

logger = logging.getLogger(__name__)


class PaymentProviderError(AppError):
    status_code = 502


class PaymentsUnavailableError(AppError):
    status_code = 503


def local_intents_allowed():
    """Local ``pi_test_`` intents stand in for Stripe outside production only."""
    config = current_app.config
    return bool(config.get("TESTING")) or config.get("APP_ENV") in ("development", "test")


def _require_provider():
    if not current_app.config.get("STRIPE_SECRET_KEY") and not local_intents_allowed():
        raise PaymentsUnavailableError("Payments are not configured")


def _stripe_post(path, data):
    config = current_app.config
    try:
        response = requests.post(
            f"{config['STRIPE_API_BASE']}/{path}",
            data=data,
            auth=(config["STRIPE_SECRET_KEY"], ""),
            timeout=15,
        )
    except requests.RequestException as e:
        raise PaymentProviderError(f"Payment provider unreachable: {e}")

    body = response.json() if response.content else {}
    if response.status_code >= 400:
        message = body.get("error", {}).get("message", "Payment provider error")
        raise PaymentProviderError(message)
    return body


def create_payment_intent(order):
    _require_provider()
    if order.status != "pending_payment":
        raise ValidationError(f"Order is {order.status}, payment is not possible")
    if order.amount <= 0:
        raise ValidationError("Order amount must be positive")

    config = current_app.config
    if config.get("STRIPE_SECRET_KEY"):
        intent = _stripe_post("payment_intents", {
            "amount": order.amount,
            "currency": config.get("CURRENCY", "usd"),
            "metadata[order_id]": order.id,
            "automatic_payment_methods[enabled]": "true",
        })
        intent_id, client_secret = intent["id"], intent.get("client_secret")
    else:
        intent_id = f"pi_test_{secrets.token_hex(12)}"
        client_secret = f"{intent_id}_secret_{secrets.token_hex(8)}"
        logger.warning("STRIPE_SECRET_KEY not set, created local test intent %s", intent_id)

    order.payment_intent_id = intent_id
    db.session.commit()
    return {"payment_intent_id": intent_id, "client_secret": client_secret, "amount": order.amount}


def sign_payload(payload, secret, timestamp=None):
    timestamp = int(timestamp if timestamp is not None else time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def verify_webhook_signature(payload, header, secret, tolerance=300, now=None):
    """Check a ``Stripe-Signature`` header of the form ``t=...,v1=...``."""
    if not header or not secret:
        raise AuthError("Missing webhook signature")

    parts = {}
    for item in header.split(","):
        key, _, value = item.partition("=")
        parts.setdefault(key.strip(), []).append(value.strip())

    try:
        timestamp = int(parts["t"][0])
    except (KeyError, ValueError):
        raise AuthError("Invalid webhook signature")

    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in parts.get("v1", [])):
        raise AuthError("Invalid webhook signature")

    now = now if now is not None else time.time()
    if abs(now - timestamp) > tolerance:
        raise AuthError("Webhook timestamp outside tolerance")

    try:
        event = json.loads(payload.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid webhook payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid webhook payload")
    return event


def find_order_for_intent(intent):
    order = None
    order_id = (intent.get("metadata") or {}).get("order_id")
    if order_id:
        order = db.session.get(Order, order_id)
    if order is None and intent.get("id"):
        order = Order.query.filter_by(payment_intent_id=intent["id"]).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def retrieve_payment_intent(intent_id):
    """Fetch an intent as ``{"id", "status", "amount", "metadata"}``."""
    _require_provider()
    config = current_app.config
    if not config.get("STRIPE_SECRET_KEY"):
        # a local intent only exists as the id stored on its order
        order = Order.query.filter_by(payment_intent_id=intent_id).first()
        if not intent_id.startswith("pi_test_") or order is None:
            return {"id": intent_id, "status": "requires_payment_method", "amount": None, "metadata": {}}
        return {"id": intent_id, "status": "succeeded", "amount": order.amount, "metadata": {"order_id": order.id}}

    try:
        response = requests.get(
            f"{config['STRIPE_API_BASE']}/payment_intents/{intent_id}",
            auth=(config["STRIPE_SECRET_KEY"], ""),
            timeout=15,
        )
    except requests.RequestException as e:
        raise PaymentProviderError(f"Payment provider unreachable: {e}")
    if response.status_code >= 400:
        raise PaymentProviderError("Could not retrieve payment intent")
    return response.json()


def ensure_intent_pays_order(intent, order):
    if intent.get("status") != "succeeded":
        raise ValidationError(f"Payment not completed (status: {intent.get('status')})")
    if (intent.get("metadata") or {}).get("order_id") != order.id:
        logger.error("Intent %s was not created for order %s", intent.get("id"), order.id)
        raise ValidationError("Payment intent does not belong to this order")
    amount = intent.get("amount")
    if amount is None or int(amount) != order.amount:
        logger.error("Intent %s amount %s does not match order %s amount %s",
                     intent.get("id"), amount, order.id, order.amount)
        raise ValidationError("Payment amount does not match order amount")
