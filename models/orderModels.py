from core.extensions import db
from core.imports import datetime, uuid

ORDER_STATUSES = ("pending_payment", "paid", "processing", "shipped", "delivered", "cancelled", "refunded")
FULFILLMENT_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYOUT_STATUSES = ("pending", "ready", "processing", "completed")


def _iso(value):
    return value.isoformat() if value else None


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    basket = db.Column(db.JSON, nullable=False, default=list)  # snapshot of lines at checkout
    amount = db.Column(db.Integer, nullable=False)  # cents
    status = db.Column(db.String(30), nullable=False, default="pending_payment", index=True)
    payment_intent_id = db.Column(db.String(100), unique=True, nullable=True)
    shipping_address = db.Column(db.JSON, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", backref="orders")
    sub_orders = db.relationship("SubOrder", backref="parent_order", order_by="SubOrder.created_at")

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_orders_amount"),
    )

    def to_dict(self, include_sub_orders=False):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "basket": self.basket,
            "amount": self.amount,
            "status": self.status,
            "payment_intent_id": self.payment_intent_id,
            "shipping_address": self.shipping_address,
            "paid_at": _iso(self.paid_at),
            "created_at": _iso(self.created_at),
        }
        if include_sub_orders:
            data["sub_orders"] = [s.to_dict() for s in self.sub_orders]
        return data


class SubOrder(db.Model):
    """The part of an order fulfilled and paid out to a single seller."""
    __tablename__ = "sub_orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    parent_order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    seller_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False)
    commission_amount = db.Column(db.Integer, nullable=False)
    processing_fee = db.Column(db.Integer, nullable=False, default=0)
    platform_fee = db.Column(db.Integer, nullable=False, default=0)
    seller_payout_amount = db.Column(db.Integer, nullable=False)

    fulfillment_status = db.Column(db.String(20), nullable=False, default="pending")  # pending, processing, shipped, delivered, cancelled
    payout_status = db.Column(db.String(20), nullable=False, default="pending")  # pending, ready, processing, completed
    earnings_available_date = db.Column(db.Date, nullable=True)
    fulfilled_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("parent_order_id", "seller_id", name="uq_sub_orders_parent_seller"),
        db.CheckConstraint(
            "seller_payout_amount = total_amount - commission_amount - processing_fee - platform_fee",
            name="ck_sub_orders_payout",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "parent_order_id": self.parent_order_id,
            "seller_id": self.seller_id,
            "items": self.items,
            "subtotal": self.subtotal,
            "total_amount": self.total_amount,
            "commission_rate": float(self.commission_rate),
            "commission_amount": self.commission_amount,
            "processing_fee": self.processing_fee,
            "platform_fee": self.platform_fee,
            "seller_payout_amount": self.seller_payout_amount,
            "fulfillment_status": self.fulfillment_status,
            "payout_status": self.payout_status,
            "earnings_available_date": _iso(self.earnings_available_date),
            "fulfilled_at": _iso(self.fulfilled_at),
            "created_at": _iso(self.created_at),
        }
