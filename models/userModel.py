from core.extensions import db
from core.imports import datetime, uuid

ROLES = ("admin", "manager", "seller", "customer")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password = db.Column(db.String(200), nullable=False)
    display_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="customer", index=True)  # admin, manager, seller, customer
    status = db.Column(db.String(20), nullable=False, default="active")  # active, suspended

    business_name = db.Column(db.String(150), nullable=True)
    seller_status = db.Column(db.String(20), nullable=False, default="none")  # none, pending, approved, rejected

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'manager', 'seller', 'customer')", name="ck_users_role"),
    )

    def to_dict(self):
        data = {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "phone": self.phone,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if self.role == "seller":
            data["business_name"] = self.business_name
            data["seller_status"] = self.seller_status
        return data


class PasswordResetToken(db.Model):
    __tablename__ = "password_reset_tokens"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    otp_code = db.Column(db.String(6), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
