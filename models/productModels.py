from core.extensions import db
from core.imports import datetime, uuid


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
        }


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seller_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    price = db.Column(db.Integer, nullable=False)  # cents
    stock = db.Column(db.Integer, nullable=False, default=0)
    images = db.Column(db.JSON, default=list)

    approval_status = db.Column(db.String(30), nullable=False, default="pending", index=True)  # pending, approved, rejected, revision_requested
    rejection_reason = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")  # active, inactive, deleted

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller = db.relationship("User", backref="products")
    category = db.relationship("Category", backref="products")

    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_products_price"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock"),
    )

    @property
    def is_public(self):
        return self.approval_status == "approved" and self.status == "active"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "images": self.images or [],
            "category": self.category.to_dict() if self.category else None,
            "seller": {
                "id": self.seller.id,
                "business_name": self.seller.business_name or self.seller.display_name,
            } if self.seller else None,
            "approval_status": self.approval_status,
            "rejection_reason": self.rejection_reason,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
