import logging

from core.imports import Blueprint, jsonify, get_jwt_identity, request
from core.extensions import db
from core.errors import NotFoundError, ValidationError, ForbiddenError
from core.auth import role_required, current_role, parse_positive_int
from models.cartModels import Cart, CartItem
from models.productModels import Product
from models.orderModels import Order

logger = logging.getLogger(__name__)

order_bp = Blueprint("order_bp", __name__)


def _requested_items(data, cart):
    items = data.get("items") or []
    if not items and cart:
        items = [{"product_id": ci.product_id, "quantity": ci.quantity} for ci in cart.cart_items]
    if not items:
        raise ValidationError("No items in order")
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    return items


def build_basket(items):
    """Reserve stock and snapshot each line with its seller and unit price."""
    basket = []
    merged = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Every item must be an object")
        product_id = item.get("product_id")
        if not product_id:
            raise ValidationError("Every item needs a product_id")
        merged[product_id] = merged.get(product_id, 0) + parse_positive_int(item.get("quantity", 1), "quantity")

    for product_id, quantity in merged.items():
        product = Product.query.filter_by(id=product_id).with_for_update().first()
        if not product or not product.is_public:
            raise NotFoundError(f"Product with id {product_id} not found")
        if quantity > product.stock:
            raise ValidationError(f"Only {product.stock} of '{product.title}' available")

        product.stock -= quantity
        basket.append({
            "product_id": product.id,
            "title": product.title,
            "price": product.price,
            "quantity": quantity,
            "line_total": product.price * quantity,
            "seller_id": product.seller_id,
            "category_id": product.category_id,
        })
    return basket


def restore_stock(lines):
    """Put the quantities of the given basket lines back on sale."""
    for line in lines:
        product = db.session.get(Product, line["product_id"])
        if product:
            product.stock += int(line["quantity"])


def get_visible_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.user_id != get_jwt_identity() and current_role() not in ("admin", "manager"):
        raise NotFoundError("Order not found")
    return order


@order_bp.route('/api/orders', methods=['POST'])
@role_required("customer")
def create_order():
    """
    Create an order from the request items or the customer's cart
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: false
        schema:
          type: object
          properties:
            items:
              type: array
              description: "Optional if the cart has items. If provided, overrides the cart."
              items:
                type: object
                properties:
                  product_id:
                    type: string
                  quantity:
                    type: integer
                    example: 2
            shipping_address:
              type: object
    responses:
      201:
        description: Order created in pending_payment, amount in cents
      400:
        description: No items or not enough stock
      404:
        description: Product not found
    """
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}

    cart = Cart.query.filter_by(user_id=user_id).first()
    use_cart = not data.get("items")
    basket = build_basket(_requested_items(data, cart))

    order = Order(
        user_id=user_id,
        basket=basket,
        amount=sum(line["line_total"] for line in basket),
        status="pending_payment",
        shipping_address=data.get("shipping_address"),
    )
    db.session.add(order)

    if cart and use_cart:
        CartItem.query.filter_by(cart_id=cart.id).delete()

    db.session.commit()
    logger.info("Order %s created for %s, %d cents", order.id, user_id, order.amount)

    return jsonify({"message": "Order created successfully", "order": order.to_dict()}), 201


@order_bp.route('/api/orders', methods=['GET'])
@role_required("customer")
def get_user_orders():
    orders = (
        Order.query
        .filter_by(user_id=get_jwt_identity())
        .order_by(Order.created_at.desc())
        .all()
    )
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@order_bp.route('/api/orders/<order_id>', methods=['GET'])
@role_required()
def get_order(order_id):
    order = get_visible_order(order_id)
    return jsonify(order.to_dict(include_sub_orders=True)), 200


@order_bp.route('/api/orders/<order_id>/cancel', methods=['POST'])
@role_required("customer")
def cancel_order(order_id):
    order = get_visible_order(order_id)
    if order.user_id != get_jwt_identity():
        raise ForbiddenError("You can only cancel your own orders")
    if order.status != "pending_payment":
        raise ValidationError(f"Order cannot be cancelled once {order.status}")

    restore_stock(order.basket)
    order.status = "cancelled"
    db.session.commit()
    return jsonify({"message": "Order cancelled", "order": order.to_dict()}), 200
