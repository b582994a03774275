from core.extensions import db
from core.imports import datetime, uuid

EARNING_STATUSES = ("pending", "available", "processing", "paid", "cancelled")
PAYOUT_METHODS = ("bank_transfer", "paypal", "stripe")
RATE_TYPES = ("global", "category", "seller")


def _iso(value):
    return value.isoformat() if value else None


class SellerEarning(db.Model):
    __tablename__ = "seller_earnings"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    parent_order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    sub_order_id = db.Column(db.String(36), db.ForeignKey("sub_orders.id"), unique=True, nullable=False)
    payout_id = db.Column(db.String(36), db.ForeignKey("payouts.id"), nullable=True, index=True)

    gross_amount = db.Column(db.Integer, nullable=False)
    commission_amount = db.Column(db.Integer, nullable=False)
    processing_fee = db.Column(db.Integer, nullable=False, default=0)
    platform_fee = db.Column(db.Integer, nullable=False, default=0)
    net_amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, available, processing, paid, cancelled
    available_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sub_order = db.relationship("SubOrder", backref=db.backref("earning", uselist=False))

    __table_args__ = (
        db.CheckConstraint(
            "net_amount = gross_amount - commission_amount - processing_fee - platform_fee",
            name="ck_seller_earnings_net",
        ),
        db.CheckConstraint("net_amount >= 0", name="ck_seller_earnings_net_positive"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "parent_order_id": self.parent_order_id,
            "sub_order_id": self.sub_order_id,
            "payout_id": self.payout_id,
            "gross_amount": self.gross_amount,
            "commission_amount": self.commission_amount,
            "processing_fee": self.processing_fee,
            "platform_fee": self.platform_fee,
            "net_amount": self.net_amount,
            "status": self.status,
            "available_date": _iso(self.available_date),
            "created_at": _iso(self.created_at),
        }


class CommissionRate(db.Model):
    __tablename__ = "commission_rates"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rate_type = db.Column(db.String(20), nullable=False)  # global, category, seller
    commission_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    seller_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_commission_rates_percentage",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "rate_type": self.rate_type,
            "commission_percentage": float(self.commission_percentage),
            "seller_id": self.seller_id,
            "category_id": self.category_id,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class Payout(db.Model):
    __tablename__ = "payouts"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(30), nullable=False, default="bank_transfer")
    status = db.Column(db.String(30), nullable=False, default="pending_approval", index=True)  # pending_approval, approved, rejected, paid
    notes = db.Column(db.Text, nullable=True)
    processed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    requested_at = db.Column(db.DateTime, default=datetime.utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)

    seller = db.relationship("User", foreign_keys=[seller_id])
    earnings = db.relationship("SellerEarning", backref="payout", foreign_keys=[SellerEarning.payout_id])

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payouts_amount"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "amount": self.amount,
            "method": self.method,
            "status": self.status,
            "notes": self.notes,
            "processed_by": self.processed_by,
            "requested_at": _iso(self.requested_at),
            "processed_at": _iso(self.processed_at),
            "earning_ids": [e.id for e in self.earnings],
        }
