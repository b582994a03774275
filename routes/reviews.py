from core.imports import Blueprint, jsonify, get_jwt_identity, func
from core.extensions import db
from core.errors import NotFoundError, ValidationError, ConflictError, ForbiddenError
from core.auth import role_required, get_json_body, require_fields, parse_positive_int
from models.productModels import Product
from models.orderModels import Order
from models.supportModels import Review

review_bp = Blueprint("reviews", __name__)

REVIEWABLE_ORDER_STATUSES = ("paid", "processing", "shipped", "delivered")


def _purchase_for(user_id, product_id, order_id=None):
    query = Order.query.filter(Order.user_id == user_id, Order.status.in_(REVIEWABLE_ORDER_STATUSES))
    if order_id:
        query = query.filter(Order.id == order_id)
    for order in query.order_by(Order.created_at.desc()).all():
        if any(line.get("product_id") == product_id for line in order.basket or []):
            return order
    return None


@review_bp.route('/api/reviews', methods=['POST'])
@role_required("customer")
def create_review():
    """
    Review a product the customer has bought
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [product_id, rating]
          properties:
            product_id:
              type: string
            order_id:
              type: string
            rating:
              type: integer
              example: 5
            comment:
              type: string
    responses:
      201:
        description: Review created
      400:
        description: Invalid rating or no qualifying purchase
      409:
        description: Product already reviewed
    """
    user_id = get_jwt_identity()
    data = get_json_body()
    require_fields(data, "product_id", "rating")

    rating = parse_positive_int(data["rating"], "rating")
    if rating > 5:
        raise ValidationError("rating must be between 1 and 5")

    product = db.session.get(Product, data["product_id"])
    if not product:
        raise NotFoundError("Product not found")

    if Review.query.filter_by(product_id=product.id, user_id=user_id).first():
        raise ConflictError("You have already reviewed this product")

    order = _purchase_for(user_id, product.id, data.get("order_id"))
    if not order:
        raise ValidationError("You can only review products from your paid or delivered orders")

    review = Review(
        product_id=product.id,
        user_id=user_id,
        order_id=order.id,
        rating=rating,
        comment=data.get("comment"),
    )
    db.session.add(review)
    db.session.commit()
    return jsonify({"message": "Review submitted", "review": review.to_dict()}), 201


@review_bp.route('/api/reviews/product/<product_id>', methods=['GET'])
def product_reviews(product_id):
    reviews = (
        Review.query
        .filter_by(product_id=product_id, status="approved")
        .order_by(Review.created_at.desc())
        .all()
    )
    average, count = (
        db.session.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.product_id == product_id, Review.status == "approved")
        .one()
    )
    distribution = {str(star): 0 for star in range(1, 6)}
    for review in reviews:
        distribution[str(review.rating)] += 1

    return jsonify({
        "reviews": [r.to_dict() for r in reviews],
        "stats": {
            "average_rating": round(float(average), 2) if average is not None else 0,
            "review_count": count,
            "distribution": distribution,
        }
    }), 200


@review_bp.route('/api/reviews/mine', methods=['GET'])
@role_required("customer")
def my_reviews():
    reviews = Review.query.filter_by(user_id=get_jwt_identity()).order_by(Review.created_at.desc()).all()
    return jsonify({"reviews": [r.to_dict() for r in reviews], "count": len(reviews)}), 200


@review_bp.route('/api/reviews/<review_id>', methods=['DELETE'])
@role_required("customer")
def delete_review(review_id):
    review = db.session.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found")
    if review.user_id != get_jwt_identity():
        raise ForbiddenError("You can only delete your own reviews")

    db.session.delete(review)
    db.session.commit()
    return jsonify({"message": "Review deleted"}), 200
